from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime
from ..database import Base

class User(Base):
    """
    패널에 로그인하여 VPS를 소유하거나 관리할 수 있는 사용자를 나타냅니다.
    role은 'admin' 또는 'user'이며 생성 이후 변경되지 않습니다.
    일반 사용자는 최대 1개의 VPS만 보유할 수 있습니다.
    """
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    role = Column(String, nullable=False, default="user")
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
