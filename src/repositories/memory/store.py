import itertools
import threading
from datetime import datetime
from typing import Dict

from src.database import models


class MemoryStore:
    """
    프로세스 메모리에 유지되는 저장소입니다. 테스트와 데모 모드(storage_backend: memory)에서 사용합니다.
    앱이 하나의 인스턴스를 생성하여 요청마다 리포지토리에 주입하며, 전역 상태에 의존하지 않습니다.
    """
    def __init__(self):
        self.lock = threading.RLock()
        self.users: Dict[int, models.User] = {}
        self.vps: Dict[int, models.VPS] = {}
        self.logs: Dict[int, models.ActivityLog] = {}
        self._id_counters = {
            "users": itertools.count(1),
            "vps": itertools.count(1),
            "logs": itertools.count(1),
        }

    def next_id(self, table: str) -> int:
        return next(self._id_counters[table])

    @staticmethod
    def stamp_created(obj):
        now = datetime.now()
        if getattr(obj, "created_at", None) is None:
            obj.created_at = now
        if hasattr(obj, "updated_at"):
            obj.updated_at = now

    @staticmethod
    def stamp_updated(obj):
        obj.updated_at = datetime.now()
