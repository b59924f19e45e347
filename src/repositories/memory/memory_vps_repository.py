from typing import List, Optional
from src.database import models
from src.repositories.interfaces import IVPSRepository
from src.services.exceptions import VpsNotFoundError
from .store import MemoryStore

def _newest_first(records):
    return sorted(records, key=lambda v: (v.created_at, v.id), reverse=True)

class MemoryVPSRepository(IVPSRepository):
    def __init__(self, store: MemoryStore):
        self.store = store

    def create(self, vps_model: models.VPS) -> models.VPS:
        with self.store.lock:
            vps_model.id = self.store.next_id("vps")
            self.store.stamp_created(vps_model)
            self.store.vps[vps_model.id] = vps_model
        return vps_model

    def update(self, vps_model: models.VPS) -> models.VPS:
        with self.store.lock:
            # 삭제된 레코드를 다시 써넣지 않음
            if vps_model.id not in self.store.vps:
                raise VpsNotFoundError(f"VPS instance '{vps_model.id}' not found.")
            self.store.stamp_updated(vps_model)
            self.store.vps[vps_model.id] = vps_model
        return vps_model

    def find_by_id(self, vps_id: int) -> Optional[models.VPS]:
        return self.store.vps.get(vps_id)

    def find_by_user_id(self, user_id: int) -> Optional[models.VPS]:
        owned = self.list_by_user_id(user_id)
        return owned[0] if owned else None

    def list_all(self) -> List[models.VPS]:
        with self.store.lock:
            return _newest_first(self.store.vps.values())

    def list_by_user_id(self, user_id: int) -> List[models.VPS]:
        with self.store.lock:
            return _newest_first(v for v in self.store.vps.values() if v.user_id == user_id)

    def count_by_user_id(self, user_id: int) -> int:
        return len(self.list_by_user_id(user_id))

    def count_by_status(self, status: Optional[str] = None) -> int:
        with self.store.lock:
            return sum(1 for v in self.store.vps.values() if status is None or v.status == status)

    def delete(self, vps: models.VPS) -> bool:
        with self.store.lock:
            return self.store.vps.pop(vps.id, None) is not None if vps else False

    def transition_if_status(self, vps_id: int, expected_status: str, new_status: str, **changes) -> Optional[models.VPS]:
        with self.store.lock:
            vps = self.store.vps.get(vps_id)
            if vps is None or vps.status != expected_status:
                return None
            vps.status = new_status
            for field, value in changes.items():
                setattr(vps, field, value)
            self.store.stamp_updated(vps)
            return vps
