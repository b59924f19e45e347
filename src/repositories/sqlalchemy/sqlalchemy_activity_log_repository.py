from typing import Iterable, List, Optional
from sqlalchemy.orm import Session
from src.database import models
from src.repositories.interfaces import IActivityLogRepository

class SqlalchemyActivityLogRepository(IActivityLogRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def append(self, log_model: models.ActivityLog) -> models.ActivityLog:
        self.db.add(log_model)
        self.db.commit()
        self.db.refresh(log_model)
        return log_model

    def list_recent(self, limit: int = 100, vps_id: Optional[int] = None) -> List[models.ActivityLog]:
        query = self.db.query(models.ActivityLog)
        if vps_id is not None:
            query = query.filter(models.ActivityLog.vps_id == vps_id)
        return query.order_by(models.ActivityLog.created_at.desc(), models.ActivityLog.id.desc()).limit(limit).all()

    def list_for_vps_ids(self, vps_ids: Iterable[int], limit: int = 100) -> List[models.ActivityLog]:
        ids = list(vps_ids)
        if not ids:
            return []
        return self.db.query(models.ActivityLog).filter(
            models.ActivityLog.vps_id.in_(ids)
        ).order_by(models.ActivityLog.created_at.desc(), models.ActivityLog.id.desc()).limit(limit).all()
