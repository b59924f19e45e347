# tests/conftest.py
import pytest

from src.database import models
from src.repositories.memory import MemoryStore, MemoryUserRepository, MemoryVPSRepository, MemoryActivityLogRepository
from src.services.authorization import Caller
from src.services.identity_service import IdentityService

# ===================================================================
#  공용 가짜 객체 및 Fixture
# ===================================================================

class FakeScheduler:
    """TransitionScheduler를 흉내 내는 가짜 클래스. 예약을 기록만 하고, 테스트가 직접 실행합니다."""
    def __init__(self):
        self.scheduled = {}
        self.cancelled = []

    def schedule(self, vps_id, delay, expected_status):
        self.scheduled[vps_id] = (delay, expected_status)

    def cancel(self, vps_id):
        self.cancelled.append(vps_id)
        return self.scheduled.pop(vps_id, None) is not None

    def is_pending(self, vps_id):
        return vps_id in self.scheduled

    def shutdown(self):
        self.scheduled.clear()


@pytest.fixture(autouse=True)
def clear_token_cache():
    """IdentityService의 토큰 캐시는 클래스 변수이므로 테스트마다 초기화합니다."""
    IdentityService._token_cache.clear()
    yield
    IdentityService._token_cache.clear()

@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()

@pytest.fixture
def user_repo(store) -> MemoryUserRepository:
    return MemoryUserRepository(store)

@pytest.fixture
def vps_repo(store) -> MemoryVPSRepository:
    return MemoryVPSRepository(store)

@pytest.fixture
def log_repo(store) -> MemoryActivityLogRepository:
    return MemoryActivityLogRepository(store)

@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()

@pytest.fixture
def users(user_repo):
    """관리자 1명, 일반 사용자 2명을 생성합니다."""
    return {
        name: user_repo.create(models.User(username=name, password_hash="x", role=role))
        for name, role in (("admin", "admin"), ("alice", "user"), ("bob", "user"))
    }

@pytest.fixture
def admin(users) -> Caller:
    return Caller(user_id=users["admin"].id, username="admin", role="admin")

@pytest.fixture
def alice(users) -> Caller:
    return Caller(user_id=users["alice"].id, username="alice", role="user")

@pytest.fixture
def bob(users) -> Caller:
    return Caller(user_id=users["bob"].id, username="bob", role="user")
