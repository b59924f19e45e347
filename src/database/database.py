from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

# 모든 모델 클래스가 상속받을 Base 클래스
# 이 클래스를 상속받아 모델을 정의하면, SQLAlchemy가 테이블을 인식합니다.
Base = declarative_base()


def build_engine(database_url: str):
    """
    설정의 database_url로 SQLAlchemy 엔진을 생성합니다.
    connect_args는 SQLite에서만 필요합니다. (예약된 전이가 타이머 스레드에서 실행되므로)
    """
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    return create_engine(database_url, connect_args=connect_args)


def build_session_factory(engine):
    # autoflush=False로 설정하여, 명시적으로 commit을 호출해야 DB에 반영됩니다.
    return sessionmaker(autoflush=False, bind=engine)
