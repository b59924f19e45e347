import hashlib
import logging

from .database import Base, build_engine, build_session_factory
from .models import User
from src.config import PanelConfig, load_config

logger = logging.getLogger(__name__)

DEMO_USERNAMES = ("john_doe", "jane_smith", "bob_wilson")
DEMO_PASSWORD = "password"


def _hash(password: str) -> str:
    return hashlib.sha256(password.encode('utf-8')).hexdigest()


def seed_users(user_repo, config: PanelConfig) -> int:
    """
    관리자 계정과 (설정 시) 데모 사용자를 삽입합니다.
    사용자가 이미 하나라도 있으면 아무것도 하지 않습니다. 메모리 저장소에도 동일하게 사용됩니다.

    Returns:
        새로 삽입한 사용자 수.
    """
    if user_repo.list_all():
        logger.info("Users already exist. Skipping seed.")
        return 0

    user_repo.create(User(
        username=config.admin_username,
        password_hash=_hash(config.admin_password),
        role='admin',
        is_active=True,
    ))
    created = 1

    if config.seed_demo_users:
        for username in DEMO_USERNAMES:
            user_repo.create(User(username=username, password_hash=_hash(DEMO_PASSWORD), role='user', is_active=True))
            created += 1

    logger.info("Seeded %d users.", created)
    return created


def initialize_db(engine, session_factory, config: PanelConfig):
    """
    DB와 테이블을 생성하고, 기본 데이터를 삽입합니다.
    SQLAlchemy 모델을 사용하여 모든 작업을 수행합니다.
    """
    from src.repositories.sqlalchemy.sqlalchemy_user_repository import SqlalchemyUserRepository

    logger.info("Initializing database tables...")
    # 모든 테이블을 생성합니다. (이미 존재하면 생성하지 않음)
    Base.metadata.create_all(bind=engine)

    db = session_factory()
    try:
        seed_users(SqlalchemyUserRepository(db), config)
    except Exception:
        logger.exception("Database seed failed. Rolling back.")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == '__main__':
    from src.logging_setup import configure_logging

    settings = load_config()
    configure_logging(settings.log_level)
    db_engine = build_engine(settings.database_url)
    initialize_db(db_engine, build_session_factory(db_engine), settings)
