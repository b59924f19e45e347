from abc import ABC, abstractmethod
from typing import List, Optional
from src.database import models

class IVPSRepository(ABC):
    @abstractmethod
    def create(self, vps_model: models.VPS) -> models.VPS:
        """새로운 VPS 레코드를 저장소에 생성합니다."""
        pass

    @abstractmethod
    def update(self, vps_model: models.VPS) -> models.VPS:
        """상태 전이 등으로 변경된 VPS 레코드를 저장합니다."""
        pass

    @abstractmethod
    def find_by_id(self, vps_id: int) -> Optional[models.VPS]:
        """고유 ID로 특정 VPS를 조회합니다."""
        pass

    @abstractmethod
    def find_by_user_id(self, user_id: int) -> Optional[models.VPS]:
        """사용자가 소유한 VPS를 조회합니다. (일반 사용자는 최대 1개)"""
        pass

    @abstractmethod
    def list_all(self) -> List[models.VPS]:
        """모든 VPS의 목록을 최신순으로 조회합니다."""
        pass

    @abstractmethod
    def list_by_user_id(self, user_id: int) -> List[models.VPS]:
        """특정 사용자가 소유한 모든 VPS의 목록을 최신순으로 조회합니다."""
        pass

    @abstractmethod
    def count_by_user_id(self, user_id: int) -> int:
        """특정 사용자가 소유한 VPS의 개수를 조회합니다."""
        pass

    @abstractmethod
    def count_by_status(self, status: Optional[str] = None) -> int:
        """상태별 VPS 개수를 조회합니다. status가 없으면 전체 개수를 반환합니다."""
        pass

    @abstractmethod
    def delete(self, vps: models.VPS) -> bool:
        """특정 VPS 레코드를 저장소에서 삭제합니다."""
        pass

    @abstractmethod
    def transition_if_status(self, vps_id: int, expected_status: str, new_status: str, **changes) -> Optional[models.VPS]:
        """
        VPS가 존재하고 현재 상태가 expected_status일 때만 new_status로 바꿉니다. 조회, 비교, 쓰기는 원자적으로 수행됩니다.
        조건이 맞지 않으면 아무것도 바꾸지 않고 None을 반환합니다.
        """
        pass
