from abc import ABC, abstractmethod
from typing import Iterable, List, Optional
from src.database import models

class IActivityLogRepository(ABC):
    """활동 로그는 추가만 가능하며, 개별 항목의 수정/삭제 연산은 제공하지 않습니다."""

    @abstractmethod
    def append(self, log_model: models.ActivityLog) -> models.ActivityLog:
        """새로운 활동 로그 항목을 추가합니다."""
        pass

    @abstractmethod
    def list_recent(self, limit: int = 100, vps_id: Optional[int] = None) -> List[models.ActivityLog]:
        """최근 활동 로그를 최신순으로 조회합니다. vps_id가 주어지면 해당 VPS의 로그만 조회합니다."""
        pass

    @abstractmethod
    def list_for_vps_ids(self, vps_ids: Iterable[int], limit: int = 100) -> List[models.ActivityLog]:
        """여러 VPS에 대한 활동 로그를 최신순으로 조회합니다."""
        pass
