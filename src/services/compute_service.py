import logging
import random
from datetime import datetime
from typing import Any, Dict, List, Optional

from src.config import PanelConfig
from src.database import models
from src.repositories.interfaces import IVPSRepository, IActivityLogRepository
from src.services.authorization import Caller, authorize_vps_access
from src.services.exceptions import (
    DuplicateVpsError,
    InvalidActionError,
    InvalidTransitionError,
    ValidationError,
)
from src.utils.container_simulator import generate_container_id, generate_ip_address, sample_resource_usage

logger = logging.getLogger(__name__)

MANAGER_ACTIONS = ("deploy", "start", "stop", "restart", "destroy", "status")

# 액션별로 허용되는 출발 상태. destroy는 모든 상태에서 허용됩니다.
ALLOWED_SOURCE_STATES = {
    "start": ("stopped",),
    "stop": ("running",),
    "restart": ("running", "stopped"),
}


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_vps(vps: models.VPS) -> Dict[str, Any]:
    return {
        "id": vps.id,
        "user_id": vps.user_id,
        "name": vps.name,
        "status": vps.status,
        "container_id": vps.container_id,
        "docker_image": vps.docker_image,
        "resources": {"cpu": vps.cpu, "ram": vps.ram, "disk": vps.disk},
        "ip_address": vps.ip_address,
        "ports": list(vps.ports or []),
        "environment_vars": dict(vps.environment_vars or {}),
        "created_at": _iso(vps.created_at),
        "updated_at": _iso(vps.updated_at),
        "deployed_at": _iso(vps.deployed_at),
        "last_started_at": _iso(vps.last_started_at),
    }


class ComputeService:
    """
    시뮬레이션 VPS의 수명 주기(상태 머신)를 관리합니다.

    pending -> deploying -> running <-> stopped 의 전이와, restart의 (running|stopped) -> pending -> running
    우회 전이, 그리고 모든 상태에서 가능한 destroy를 처리합니다. 모든 전이 시도는 활동 로그에 정확히 1건을 남깁니다.
    """
    def __init__(self, vps_repo: IVPSRepository, log_repo: IActivityLogRepository, scheduler,
                 config: Optional[PanelConfig] = None, rng: Optional[random.Random] = None):
        self.vps_repo = vps_repo
        self.log_repo = log_repo
        self.scheduler = scheduler  # TransitionScheduler와 동일한 schedule/cancel 인터페이스
        self.config = config or PanelConfig()
        self.rng = rng or random.Random()

    def deploy(self, caller: Caller, name: Optional[str] = None, config: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        요청자 소유의 새 VPS를 배포합니다.

        레코드를 deploying 상태로 생성하면서 container_id, ip_address를 즉시 할당하고,
        deploy_delay_seconds 후 running으로 전이되도록 예약합니다.

        Args:
            caller: 요청자. 생성될 VPS의 소유자가 됩니다.
            name: VPS 이름. 없으면 '<username>-vps'.
            config: image/docker_image, resources(cpu, ram|memory, disk), ports, environment/environment_vars.

        Returns:
            생성된 VPS 정보 딕셔너리.

        Raises:
            ValidationError: config 형식이 잘못되었을 때.
            DuplicateVpsError: 일반 사용자가 이미 VPS를 보유하고 있을 때. (관리자는 제한 없음)
        """
        settings = self._parse_deploy_config(config or {})
        if not caller.is_admin and self.vps_repo.count_by_user_id(caller.user_id) > 0:
            raise DuplicateVpsError("You already have a VPS deployed. Only one VPS per user is allowed.")

        now = datetime.now()
        new_vps = models.VPS(
            user_id=caller.user_id,
            name=name or settings.pop("name", None) or f"{caller.username}-vps",
            status="deploying",
            container_id=generate_container_id(self.rng),
            ip_address=generate_ip_address(self.rng),
            docker_image=settings["docker_image"],
            cpu=settings["cpu"],
            ram=settings["ram"],
            disk=settings["disk"],
            ports=settings["ports"],
            environment_vars=settings["environment_vars"],
            deployed_at=now,
        )
        vps = self.vps_repo.create(new_vps)
        logger.info("Deploying container %s for VPS %s (owner '%s')", vps.container_id, vps.id, caller.username)

        self._log(vps.id, "deploy", "success", caller, {"container_id": vps.container_id, "image": vps.docker_image})
        self.scheduler.schedule(vps.id, self.config.deploy_delay_seconds, "deploying")
        return serialize_vps(vps)

    def start(self, caller: Caller, vps_id: int) -> Dict[str, Any]:
        """stopped 상태의 VPS를 즉시 running으로 전이합니다."""
        return serialize_vps(self._transition(caller, vps_id, "start", "running"))

    def stop(self, caller: Caller, vps_id: int) -> Dict[str, Any]:
        """running 상태의 VPS를 즉시 stopped로 전이합니다."""
        return serialize_vps(self._transition(caller, vps_id, "stop", "stopped"))

    def restart(self, caller: Caller, vps_id: int) -> Dict[str, Any]:
        """
        VPS를 pending으로 전이한 뒤, restart_delay_seconds 후 running으로 전이되도록 예약합니다.
        예약된 전이는 VPS가 삭제되거나 다른 상태로 바뀌면 취소됩니다.
        """
        vps = self._transition(caller, vps_id, "restart", "pending")
        self.scheduler.schedule(vps.id, self.config.restart_delay_seconds, "pending")
        return serialize_vps(vps)

    def destroy(self, caller: Caller, vps_id: int) -> Dict[str, Any]:
        """
        VPS 레코드를 삭제합니다. 되돌릴 수 없습니다.
        대기 중인 예약 전이를 먼저 취소하고, 로그는 삭제 이후에도 남습니다.

        Raises:
            VpsNotFoundError: VPS를 찾을 수 없을 때.
            ForbiddenError: 소유자도 관리자도 아닐 때.
        """
        vps = authorize_vps_access(caller, self.vps_repo.find_by_id(vps_id), vps_id)
        self.scheduler.cancel(vps.id)
        snapshot = serialize_vps(vps)

        logger.info("Destroying container %s (VPS %s)", vps.container_id, vps.id)
        self.vps_repo.delete(vps)
        self._log(snapshot["id"], "destroy", "success", caller, {"container_id": snapshot["container_id"]})
        return snapshot

    def get_vps(self, caller: Caller, vps_id: int) -> Dict[str, Any]:
        return serialize_vps(authorize_vps_access(caller, self.vps_repo.find_by_id(vps_id), vps_id))

    def get_status(self, caller: Caller, vps_id: int) -> Dict[str, Any]:
        """
        VPS 정보와 가짜 가동 시간/자원 사용량을 반환합니다. 읽기 전용이며 로그를 남기지 않습니다.
        사용량 수치는 호출마다 무작위로 생성되며, running이 아니면 0입니다.
        """
        vps = authorize_vps_access(caller, self.vps_repo.find_by_id(vps_id), vps_id)
        data = serialize_vps(vps)
        if vps.status == "running":
            data.update(sample_resource_usage(self.rng))
        else:
            data.update({"uptime_seconds": 0, "resource_usage": {"cpu": 0, "memory": 0, "disk": 0}})
        return data

    def list_vps(self, caller: Caller) -> List[Dict[str, Any]]:
        """관리자는 전체 VPS를, 일반 사용자는 자신의 VPS만 조회합니다."""
        records = self.vps_repo.list_all() if caller.is_admin else self.vps_repo.list_by_user_id(caller.user_id)
        return [serialize_vps(v) for v in records]

    def complete_transition(self, vps_id: int, expected_status: str) -> bool:
        """
        예약된 전이를 완료합니다. (deploying -> running, pending -> running)

        VPS가 이미 삭제되었거나 예약 이후 다른 상태로 바뀌었다면 아무것도 하지 않습니다.

        Returns:
            실제로 running으로 전이했으면 True.
        """
        vps = self.vps_repo.transition_if_status(vps_id, expected_status, "running", last_started_at=datetime.now())
        if vps is None:
            logger.debug("Skipping stale transition for VPS %s: no longer exists or left '%s'", vps_id, expected_status)
            return False

        logger.info("VPS %s is now running (was '%s')", vps_id, expected_status)
        return True

    def manage(self, caller: Caller, action: str, vps_id: Optional[int] = None,
               config: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        docker-manager 원격 작업의 진입점입니다.

        Returns:
            container_id, ip_address, status, timestamps를 담은 딕셔너리.
            status 액션은 가동 시간과 자원 사용량이 추가됩니다.

        Raises:
            InvalidActionError: 지원하지 않는 액션일 때.
            ValidationError: deploy 이외의 액션에 vps_id가 없을 때.
        """
        if action not in MANAGER_ACTIONS:
            raise InvalidActionError(f"Invalid action '{action}'.")

        if action == "deploy":
            return self._manager_result(self.deploy(caller, config=config))

        if vps_id is None:
            raise ValidationError(f"'vps_id' is required for action '{action}'.")

        if action == "status":
            data = self.get_status(caller, vps_id)
            result = self._manager_result(data)
            result.update({"uptime_seconds": data["uptime_seconds"], "resource_usage": data["resource_usage"]})
            return result
        if action == "destroy":
            return self._manager_result(self.destroy(caller, vps_id), status="destroyed")

        handler = getattr(self, action)
        return self._manager_result(handler(caller, vps_id))

    def _transition(self, caller: Caller, vps_id: int, action: str, target_status: str) -> models.VPS:
        vps = authorize_vps_access(caller, self.vps_repo.find_by_id(vps_id), vps_id)
        allowed = ALLOWED_SOURCE_STATES[action]
        if vps.status not in allowed:
            self._log(vps.id, action, "error", caller, {"reason": "invalid_transition", "from": vps.status})
            raise InvalidTransitionError(
                f"Cannot {action} VPS {vps.id} from status '{vps.status}'. Allowed: {', '.join(allowed)}."
            )

        self.scheduler.cancel(vps.id)
        previous = vps.status
        vps.status = target_status
        if target_status == "running":
            vps.last_started_at = datetime.now()
        self.vps_repo.update(vps)

        logger.info("VPS %s: %s (%s -> %s, container %s)", vps.id, action, previous, target_status, vps.container_id)
        self._log(vps.id, action, "success", caller, {"container_id": vps.container_id, "from": previous, "to": target_status})
        return vps

    def _log(self, vps_id: int, action: str, status: str, caller: Optional[Caller], details: Dict[str, Any]):
        self.log_repo.append(models.ActivityLog(
            vps_id=vps_id,
            action=action,
            status=status,
            details=details,
            created_by=caller.user_id if caller else None,
        ))

    def _parse_deploy_config(self, config: Dict[str, Any]) -> Dict[str, Any]:
        if not isinstance(config, dict):
            raise ValidationError("'config' must be an object.")

        defaults = self.config.default_resources
        resources = config.get("resources") or {}
        ports = config.get("ports") or []
        environment = config.get("environment_vars") or config.get("environment") or {}

        if not isinstance(resources, dict):
            raise ValidationError("'resources' must be an object.")
        if not isinstance(ports, list) or not all(isinstance(p, int) and 0 < p < 65536 for p in ports):
            raise ValidationError("'ports' must be a list of port numbers (1-65535).")
        if not isinstance(environment, dict):
            raise ValidationError("'environment' must be an object.")

        return {
            "name": config.get("name"),
            "docker_image": config.get("docker_image") or config.get("image") or self.config.default_image,
            "cpu": resources.get("cpu") or defaults.cpu,
            "ram": resources.get("ram") or resources.get("memory") or defaults.ram,
            "disk": resources.get("disk") or defaults.disk,
            "ports": ports,
            "environment_vars": {str(k): str(v) for k, v in environment.items()},
        }

    @staticmethod
    def _manager_result(data: Dict[str, Any], status: Optional[str] = None) -> Dict[str, Any]:
        return {
            "id": data["id"],
            "name": data["name"],
            "container_id": data["container_id"],
            "ip_address": data["ip_address"],
            "status": status or data["status"],
            "timestamps": {
                "created_at": data["created_at"],
                "updated_at": data["updated_at"],
                "deployed_at": data["deployed_at"],
                "last_started_at": data["last_started_at"],
            },
        }
