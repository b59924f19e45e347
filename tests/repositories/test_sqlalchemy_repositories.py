# tests/repositories/test_sqlalchemy_repositories.py
import random
from datetime import datetime

import pytest

from src.config import PanelConfig
from src.database import models
from src.database.database import Base, build_engine, build_session_factory
from src.database.db_init import DEMO_USERNAMES, initialize_db, seed_users
from src.repositories.sqlalchemy.sqlalchemy_user_repository import SqlalchemyUserRepository
from src.repositories.sqlalchemy.sqlalchemy_vps_repository import SqlalchemyVPSRepository
from src.repositories.sqlalchemy.sqlalchemy_activity_log_repository import SqlalchemyActivityLogRepository
from src.services.authorization import Caller
from src.services.compute_service import ComputeService
from src.services.exceptions import DuplicateVpsError

# ===================================================================
#  Fixture 설정 (인메모리 SQLite)
# ===================================================================

@pytest.fixture
def engine():
    db_engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=db_engine)
    yield db_engine
    db_engine.dispose()

@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)

@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()

@pytest.fixture
def sa_user_repo(db_session):
    return SqlalchemyUserRepository(db_session)

@pytest.fixture
def sa_vps_repo(db_session):
    return SqlalchemyVPSRepository(db_session)

@pytest.fixture
def sa_log_repo(db_session):
    return SqlalchemyActivityLogRepository(db_session)

@pytest.fixture
def owner(sa_user_repo):
    return sa_user_repo.create(models.User(username="alice", password_hash="x"))

def make_vps(user_id, container_id, status="running"):
    return models.VPS(user_id=user_id, name=f"vps-{container_id}", status=status, container_id=container_id,
                      cpu="2 cores", ram="2GB", disk="20GB SSD")

# ===================================================================
#  리포지토리 테스트
# ===================================================================
class TestUserRepository:
    def test_create_applies_defaults(self, sa_user_repo, owner):
        assert owner.id is not None
        assert owner.role == "user"
        assert owner.is_active is True
        assert owner.created_at is not None
        assert sa_user_repo.find_by_username("alice").id == owner.id

    def test_list_and_delete(self, sa_user_repo, owner):
        sa_user_repo.create(models.User(username="bob", password_hash="x"))
        assert [u.username for u in sa_user_repo.list_all()] == ["alice", "bob"]

        assert sa_user_repo.delete(owner) is True
        assert sa_user_repo.find_by_id(owner.id) is None


class TestVPSRepository:
    def test_counts(self, sa_vps_repo, owner):
        sa_vps_repo.create(make_vps(owner.id, "vps_a"))
        sa_vps_repo.create(make_vps(owner.id, "vps_b", status="stopped"))

        assert sa_vps_repo.count_by_user_id(owner.id) == 2
        assert sa_vps_repo.count_by_status("running") == 1
        assert sa_vps_repo.count_by_status() == 2

    def test_json_columns(self, sa_vps_repo, owner):
        vps = make_vps(owner.id, "vps_json")
        vps.ports = [22, 8080]
        vps.environment_vars = {"MODE": "dev"}
        created = sa_vps_repo.create(vps)

        found = sa_vps_repo.find_by_id(created.id)
        assert found.ports == [22, 8080]
        assert found.environment_vars == {"MODE": "dev"}
        assert found.docker_image == "ubuntu:22.04"

    def test_transition_if_status(self, sa_vps_repo, owner):
        vps = sa_vps_repo.create(make_vps(owner.id, "vps_cond", status="deploying"))

        # 상태가 다르면 아무것도 바꾸지 않음
        assert sa_vps_repo.transition_if_status(vps.id, "pending", "running") is None
        assert sa_vps_repo.find_by_id(vps.id).status == "deploying"

        moved = sa_vps_repo.transition_if_status(vps.id, "deploying", "running", last_started_at=datetime(2024, 1, 1))
        assert moved.status == "running"
        assert moved.last_started_at == datetime(2024, 1, 1)

    def test_transition_if_status_after_delete(self, sa_vps_repo, owner):
        vps = sa_vps_repo.create(make_vps(owner.id, "vps_gone", status="deploying"))
        vps_id = vps.id
        sa_vps_repo.delete(vps)

        assert sa_vps_repo.transition_if_status(vps_id, "deploying", "running") is None
        assert sa_vps_repo.find_by_id(vps_id) is None

    def test_delete(self, sa_vps_repo, owner):
        vps = sa_vps_repo.create(make_vps(owner.id, "vps_del"))
        assert sa_vps_repo.delete(vps) is True
        assert sa_vps_repo.find_by_id(vps.id) is None
        assert sa_vps_repo.find_by_user_id(owner.id) is None


class TestActivityLogRepository:
    def test_newest_first_and_filters(self, sa_log_repo):
        for vps_id, action in ((1, "deploy"), (2, "deploy"), (1, "stop")):
            sa_log_repo.append(models.ActivityLog(vps_id=vps_id, action=action, status="success", details={}))

        assert [l.action for l in sa_log_repo.list_recent(vps_id=1)] == ["stop", "deploy"]
        assert len(sa_log_repo.list_recent(limit=2)) == 2
        assert {l.vps_id for l in sa_log_repo.list_for_vps_ids([2])} == {2}
        assert sa_log_repo.list_for_vps_ids([]) == []


# ===================================================================
#  서비스 통합 테스트 (SQLAlchemy 리포지토리 사용)
# ===================================================================
class TestComputeServiceOnSqlalchemy:
    def test_lifecycle(self, sa_vps_repo, sa_log_repo, owner, scheduler):
        service = ComputeService(sa_vps_repo, sa_log_repo, scheduler, PanelConfig(), rng=random.Random(5))
        caller = Caller(user_id=owner.id, username=owner.username, role="user")

        vps = service.deploy(caller)
        with pytest.raises(DuplicateVpsError):
            service.deploy(caller)
        assert service.complete_transition(vps["id"], "deploying") is True
        service.stop(caller, vps["id"])
        service.destroy(caller, vps["id"])

        assert sa_vps_repo.find_by_id(vps["id"]) is None
        assert [l.action for l in sa_log_repo.list_recent(vps_id=vps["id"])] == ["destroy", "stop", "deploy"]


# ===================================================================
#  초기 데이터 테스트
# ===================================================================
class TestSeed:
    def test_initialize_db_seeds_once(self, engine, session_factory):
        config = PanelConfig()
        initialize_db(engine, session_factory, config)
        initialize_db(engine, session_factory, config)

        session = session_factory()
        try:
            users = SqlalchemyUserRepository(session).list_all()
        finally:
            session.close()
        assert sorted(u.username for u in users) == sorted(("admin",) + DEMO_USERNAMES)
        assert [u.role for u in users if u.username == "admin"] == ["admin"]

    def test_seed_without_demo_users(self, sa_user_repo):
        assert seed_users(sa_user_repo, PanelConfig(seed_demo_users=False)) == 1
