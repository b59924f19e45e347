from typing import Any, Dict, List, Optional

from src.database import models
from src.repositories.interfaces import IUserRepository, IVPSRepository, IActivityLogRepository
from src.services.authorization import Caller, authorize_vps_access, require_admin
from src.services.compute_service import serialize_vps
from src.services.identity_service import serialize_user
from src.services.exceptions import UserNotFoundError


def serialize_log(entry: models.ActivityLog) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "vps_id": entry.vps_id,
        "action": entry.action,
        "status": entry.status,
        "details": entry.details,
        "created_at": entry.created_at.isoformat() if entry.created_at else None,
        "created_by": entry.created_by,
    }


class DashboardService:
    """역할별 대시보드 화면(일반 사용자: 단일 VPS, 관리자: 전체 VPS와 사용자 목록)에 필요한 데이터를 조합합니다."""

    def __init__(self, user_repo: IUserRepository, vps_repo: IVPSRepository, log_repo: IActivityLogRepository):
        self.user_repo = user_repo
        self.vps_repo = vps_repo
        self.log_repo = log_repo

    def dashboard(self, caller: Caller) -> Dict[str, Any]:
        return self.admin_dashboard(caller) if caller.is_admin else self.user_dashboard(caller)

    def user_dashboard(self, caller: Caller) -> Dict[str, Any]:
        user = self.user_repo.find_by_id(caller.user_id)
        if not user:
            raise UserNotFoundError(f"User with id '{caller.user_id}' not found.")
        vps = self.vps_repo.find_by_user_id(caller.user_id)
        return {
            "view": "user",
            "user": serialize_user(user),
            "vps": serialize_vps(vps) if vps else None,
            "stats": {
                "total_vps": 1 if vps else 0,
                "running_vps": 1 if vps and vps.status == "running" else 0,
            },
            "activity": [serialize_log(l) for l in self.log_repo.list_recent(limit=20, vps_id=vps.id)] if vps else [],
        }

    def admin_dashboard(self, caller: Caller) -> Dict[str, Any]:
        """
        관리자 화면용 데이터. 사용자마다 VPS 보유 여부와 상태를, VPS마다 소유자 이름을 붙여 반환합니다.

        Raises:
            ForbiddenError: 관리자가 아닐 때.
        """
        require_admin(caller)
        users = self.user_repo.list_all()
        usernames = {u.id: u.username for u in users}
        all_vps = self.vps_repo.list_all()
        vps_by_owner = {}
        for vps in all_vps:
            vps_by_owner.setdefault(vps.user_id, vps)

        user_rows = []
        for user in users:
            row = serialize_user(user)
            owned = vps_by_owner.get(user.id)
            row["has_vps"] = owned is not None
            row["vps_status"] = owned.status if owned else None
            user_rows.append(row)

        vps_rows = []
        for vps in all_vps:
            row = serialize_vps(vps)
            row["owner"] = usernames.get(vps.user_id)
            vps_rows.append(row)

        return {
            "view": "admin",
            "users": user_rows,
            "vps": vps_rows,
            "stats": {
                "total_users": len(users),
                "total_vps": len(all_vps),
                "running_vps": self.vps_repo.count_by_status("running"),
            },
            "activity": [serialize_log(l) for l in self.log_repo.list_recent(limit=50)],
        }

    def list_activity(self, caller: Caller, vps_id: Optional[int] = None, limit: int = 100) -> List[Dict[str, Any]]:
        """
        활동 로그를 조회합니다.
        관리자는 전체 로그를, 일반 사용자는 자신이 보유한 VPS의 로그만 볼 수 있습니다.
        vps_id가 주어지면 권한 검사를 통과한 경우에만 해당 VPS의 로그를 반환합니다.
        """
        if vps_id is not None:
            authorize_vps_access(caller, self.vps_repo.find_by_id(vps_id), vps_id)
            entries = self.log_repo.list_recent(limit=limit, vps_id=vps_id)
        elif caller.is_admin:
            entries = self.log_repo.list_recent(limit=limit)
        else:
            owned_ids = [v.id for v in self.vps_repo.list_by_user_id(caller.user_id)]
            entries = self.log_repo.list_for_vps_ids(owned_ids, limit=limit)
        return [serialize_log(e) for e in entries]
