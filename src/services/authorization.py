# src/services/authorization.py
import logging
from dataclasses import dataclass
from typing import Optional

from src.database import models
from src.services.exceptions import ForbiddenError, VpsNotFoundError

logger = logging.getLogger(__name__)

ROLES = ("admin", "user")


@dataclass(frozen=True)
class Caller:
    """인증 토큰으로부터 복원된 요청자 정보."""
    user_id: int
    username: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def authorize_vps_access(caller: Caller, vps: Optional[models.VPS], vps_id=None) -> models.VPS:
    """
    모든 수명 주기/명령 실행/조회 작업 전에 적용되는 단일 권한 검사입니다.
    VPS 소유자이거나 관리자인 경우에만 통과합니다.

    Raises:
        VpsNotFoundError: VPS가 존재하지 않을 때.
        ForbiddenError: 요청자가 소유자도 관리자도 아닐 때.
    """
    if vps is None:
        raise VpsNotFoundError(f"VPS instance '{vps_id}' not found.")
    if vps.user_id != caller.user_id and not caller.is_admin:
        logger.warning("User '%s' denied access to VPS %s", caller.username, vps.id)
        raise ForbiddenError("Insufficient permissions")
    return vps


def require_admin(caller: Caller):
    if not caller.is_admin:
        logger.warning("User '%s' attempted an admin-only operation", caller.username)
        raise ForbiddenError("Insufficient permissions")
