from typing import Iterable, List, Optional
from src.database import models
from src.repositories.interfaces import IActivityLogRepository
from .store import MemoryStore

class MemoryActivityLogRepository(IActivityLogRepository):
    def __init__(self, store: MemoryStore):
        self.store = store

    def append(self, log_model: models.ActivityLog) -> models.ActivityLog:
        with self.store.lock:
            log_model.id = self.store.next_id("logs")
            self.store.stamp_created(log_model)
            self.store.logs[log_model.id] = log_model
        return log_model

    def list_recent(self, limit: int = 100, vps_id: Optional[int] = None) -> List[models.ActivityLog]:
        with self.store.lock:
            entries = [l for l in self.store.logs.values() if vps_id is None or l.vps_id == vps_id]
        return sorted(entries, key=lambda l: (l.created_at, l.id), reverse=True)[:limit]

    def list_for_vps_ids(self, vps_ids: Iterable[int], limit: int = 100) -> List[models.ActivityLog]:
        ids = set(vps_ids)
        with self.store.lock:
            entries = [l for l in self.store.logs.values() if l.vps_id in ids]
        return sorted(entries, key=lambda l: (l.created_at, l.id), reverse=True)[:limit]
