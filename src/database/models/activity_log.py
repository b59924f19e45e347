from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, JSON
from ..database import Base

ACTIVITY_ACTIONS = ("deploy", "start", "stop", "restart", "destroy", "exec")
ACTIVITY_STATUSES = ("success", "error", "pending")

class ActivityLog(Base):
    """
    VPS에 대해 수행된 작업의 감사 기록(append-only)입니다.
    vps_id는 외래 키가 아닌 약한 참조이므로, VPS가 삭제된 뒤에도 기록은 남습니다.
    """
    __tablename__ = "vps_activity_logs"
    id = Column(Integer, primary_key=True, index=True)
    vps_id = Column(Integer, nullable=False, index=True)
    action = Column(String, nullable=False)
    status = Column(String, nullable=False)
    details = Column(JSON)
    created_at = Column(DateTime, default=datetime.now, index=True)
    created_by = Column(Integer)
