# src/services/exceptions.py

class PanelError(Exception):
    """모든 서비스 예외의 기반 클래스. kind는 API 응답에 그대로 노출됩니다."""
    kind = "InternalError"

# --- General Exceptions ---
class VpsNotFoundError(PanelError):
    """VPS를 찾을 수 없을 때"""
    kind = "NotFound"

class UserNotFoundError(PanelError):
    """사용자를 찾을 수 없을 때"""
    kind = "NotFound"

class ValidationError(PanelError):
    """요청 값이 누락되었거나 형식이 잘못되었을 때"""
    kind = "ValidationError"

# --- Creation/Lifecycle Exceptions ---
class DuplicateVpsError(PanelError):
    """사용자가 이미 VPS를 보유하고 있을 때 (사용자당 1개 제한)"""
    kind = "DuplicateVPS"

class UserCreationError(PanelError):
    """사용자 생성 실패 시"""
    kind = "Conflict"

class UserHasVpsError(PanelError):
    """VPS를 보유한 사용자를 삭제하려고 할 때"""
    kind = "Conflict"

class InvalidActionError(PanelError):
    """지원하지 않는 액션을 요청했을 때"""
    kind = "InvalidAction"

class InvalidTransitionError(InvalidActionError):
    """현재 상태에서 허용되지 않는 상태 전이를 요청했을 때 (예: running 상태에서 start)"""
    kind = "InvalidTransition"

class VpsNotRunningError(PanelError):
    """실행 중이 아닌 VPS에 명령을 실행하려고 할 때"""
    kind = "NotRunning"

# --- Auth Exceptions ---
class TokenInvalidError(PanelError):
    """토큰이 유효하지 않거나 없을 때"""
    kind = "Unauthorized"

class AuthenticationError(PanelError):
    """사용자 자격 증명 실패 시"""
    kind = "Unauthorized"

class ForbiddenError(PanelError):
    """VPS 소유자도 관리자도 아닌 사용자가 접근할 때"""
    kind = "Forbidden"
