from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Session
from src.database import models
from src.repositories.interfaces import IVPSRepository

class SqlalchemyVPSRepository(IVPSRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, vps_model: models.VPS) -> models.VPS:
        self.db.add(vps_model)
        self.db.commit()
        self.db.refresh(vps_model)
        return vps_model

    def update(self, vps_model: models.VPS) -> models.VPS:
        self.db.add(vps_model)
        self.db.commit()
        self.db.refresh(vps_model)
        return vps_model

    def find_by_id(self, vps_id: int) -> Optional[models.VPS]:
        return self.db.query(models.VPS).filter(models.VPS.id == vps_id).first()

    def find_by_user_id(self, user_id: int) -> Optional[models.VPS]:
        return self.db.query(models.VPS).filter(models.VPS.user_id == user_id).order_by(models.VPS.id.desc()).first()

    def list_all(self) -> List[models.VPS]:
        return self.db.query(models.VPS).order_by(models.VPS.created_at.desc(), models.VPS.id.desc()).all()

    def list_by_user_id(self, user_id: int) -> List[models.VPS]:
        return self.db.query(models.VPS).filter(models.VPS.user_id == user_id).order_by(models.VPS.created_at.desc(), models.VPS.id.desc()).all()

    def count_by_user_id(self, user_id: int) -> int:
        return self.db.query(models.VPS).filter(models.VPS.user_id == user_id).count()

    def count_by_status(self, status: Optional[str] = None) -> int:
        query = self.db.query(models.VPS)
        if status:
            query = query.filter(models.VPS.status == status)
        return query.count()

    def delete(self, vps: models.VPS) -> bool:
        if vps:
            self.db.delete(vps)
            self.db.commit()
            return True
        return False

    def transition_if_status(self, vps_id: int, expected_status: str, new_status: str, **changes) -> Optional[models.VPS]:
        # 조건부 UPDATE 한 문장으로 처리하여, 그 사이에 삭제/변경된 레코드는 건드리지 않음
        values = {"status": new_status, "updated_at": datetime.now(), **changes}
        updated = self.db.query(models.VPS).filter(
            models.VPS.id == vps_id, models.VPS.status == expected_status
        ).update(values, synchronize_session=False)
        self.db.commit()
        return self.find_by_id(vps_id) if updated else None
