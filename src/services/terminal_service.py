import logging
import random
from datetime import datetime
from typing import Any, Dict, Optional

from src.config import PanelConfig
from src.database import models
from src.repositories.interfaces import IVPSRepository, IActivityLogRepository
from src.services.authorization import Caller, authorize_vps_access
from src.services.exceptions import ValidationError, VpsNotRunningError
from src.utils.command_simulator import simulate_command

logger = logging.getLogger(__name__)


class TerminalService:
    def __init__(self, vps_repo: IVPSRepository, log_repo: IActivityLogRepository,
                 config: Optional[PanelConfig] = None, rng: Optional[random.Random] = None):
        """
        TerminalService를 초기화합니다.

        Args:
            vps_repo: 명령 대상 VPS를 조회하기 위한 리포지토리.
            log_repo: 명령 실행 기록을 남기기 위한 활동 로그 리포지토리.
            config: 기본 작업 디렉터리 등을 담은 설정.
            rng: 시뮬레이터 출력 수치용 난수 생성기.
        """
        self.vps_repo = vps_repo
        self.log_repo = log_repo
        self.config = config or PanelConfig()
        self.rng = rng or random.Random()

    def execute(self, caller: Caller, vps_id: int, command: str, working_directory: Optional[str] = None) -> Dict[str, Any]:
        """
        실행 중인 VPS에서 명령을 (가짜로) 실행하고 결과를 반환합니다.

        실제 프로세스는 실행되지 않으며, 실패한 명령은 예외가 아닌 exit_code로만 표현됩니다.
        호출마다 exec 활동 로그를 1건 남깁니다.

        Returns:
            output, exit_code, executed_at, working_directory를 담은 딕셔너리.

        Raises:
            ValidationError: 명령 문자열이 비어 있을 때.
            VpsNotFoundError: VPS를 찾을 수 없을 때.
            ForbiddenError: 소유자도 관리자도 아닐 때.
            VpsNotRunningError: VPS가 running 상태가 아닐 때.
        """
        if not isinstance(command, str) or not command.strip():
            raise ValidationError("'command' is required.")

        vps = authorize_vps_access(caller, self.vps_repo.find_by_id(vps_id), vps_id)
        if vps.status != "running":
            raise VpsNotRunningError("VPS is not running")

        cwd = working_directory or self.config.default_working_directory
        executed_at = datetime.now()
        result = simulate_command(command, cwd, rng=self.rng, now=executed_at)
        logger.info("Executing command in %s: %s (exit %d)", vps.container_id, command, result.exit_code)

        self.log_repo.append(models.ActivityLog(
            vps_id=vps.id,
            action="exec",
            status="success" if result.exit_code == 0 else "error",
            details={
                "command": command,
                "working_directory": cwd,
                "exit_code": result.exit_code,
                "output_length": len(result.output),
            },
            created_by=caller.user_id,
        ))

        return {
            "output": result.output,
            "exit_code": result.exit_code,
            "executed_at": executed_at.isoformat(),
            "working_directory": cwd,
        }
