import hashlib
import logging
import threading
import uuid
from datetime import datetime, timedelta
from typing import Dict, Any, List, Optional

from src.config import PanelConfig
from src.database import models
from src.repositories.interfaces import IUserRepository, IVPSRepository
from src.services.authorization import Caller, ROLES
from src.services.exceptions import (
    UserCreationError, UserHasVpsError, UserNotFoundError,
    AuthenticationError, TokenInvalidError, ValidationError
)

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    return hashlib.sha256(password.encode('utf-8')).hexdigest()


def serialize_user(user: models.User) -> Dict[str, Any]:
    """사용자 정보를 응답용 딕셔너리로 변환합니다. (비밀번호 해시 제외)"""
    return {
        "id": user.id,
        "username": user.username,
        "role": user.role,
        "is_active": user.is_active,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


class IdentityService:
    """사용자, 역할, 인증 토큰 등 신원 및 접근 관리 서비스를 제공합니다."""
    # 서비스 인스턴스는 요청마다 생성되므로, 토큰은 프로세스 전역 캐시에 보관합니다.
    _token_cache: Dict[str, Dict[str, Any]] = {}
    _token_lock = threading.Lock()

    def __init__(self, user_repo: IUserRepository, vps_repo: IVPSRepository, config: Optional[PanelConfig] = None):
        """
        IdentityService를 초기화합니다.

        Args:
            user_repo: 사용자 데이터에 접근하기 위한 리포지토리.
            vps_repo: VPS 데이터에 접근하기 위한 리포지토리 (사용자 삭제 시 검증용).
            config: 토큰 만료 시간, 데모 자동 가입 여부 등을 담은 설정.
        """
        self.user_repo = user_repo
        self.vps_repo = vps_repo
        self.config = config or PanelConfig()

    def create_user(self, username: str, password: str, role: str = "user") -> Dict[str, Any]:
        """
        새로운 사용자를 생성합니다. 비밀번호는 해시하여 저장합니다.

        Raises:
            ValidationError: 사용자 이름/비밀번호가 비어 있거나 역할이 잘못되었을 때.
            UserCreationError: 동일한 이름의 사용자가 이미 존재할 때.
        """
        if not username or not password:
            raise ValidationError("Both 'username' and 'password' are required.")
        if role not in ROLES:
            raise ValidationError(f"Invalid role '{role}'. Expected one of {ROLES}.")
        if self.user_repo.find_by_username(username):
            raise UserCreationError(f"User with username '{username}' already exists.")

        new_user = models.User(username=username, password_hash=hash_password(password), role=role, is_active=True)
        created_user = self.user_repo.create(new_user)
        logger.info("Created %s account '%s'", role, username)
        return serialize_user(created_user)

    def register(self, username: str, password: str) -> Dict[str, Any]:
        """
        인증 없이 호출되는 자가 가입. 항상 일반 사용자(role='user')로 생성되며, 이후 authenticate로 로그인합니다.

        Raises:
            ValidationError: 사용자 이름/비밀번호가 비어 있을 때.
            UserCreationError: 이미 사용 중인 사용자 이름일 때.
        """
        return self.create_user(username, password, role="user")

    def list_users(self) -> List[Dict[str, Any]]:
        """모든 사용자의 목록을 조회합니다. (비밀번호 제외)"""
        return [serialize_user(u) for u in self.user_repo.list_all()]

    def get_user(self, user_id: int) -> Dict[str, Any]:
        """
        ID로 특정 사용자를 조회합니다. (비밀번호 제외)

        Raises:
            UserNotFoundError: 해당 ID의 사용자를 찾을 수 없을 때.
        """
        return serialize_user(self._get_user_model(user_id))

    def set_user_active(self, user_id: int, active: bool) -> Dict[str, Any]:
        """
        사용자 계정을 활성화/비활성화합니다. 비활성 사용자는 로그인할 수 없습니다.
        역할(role)은 생성 이후 변경할 수 없으므로 여기서 다루지 않습니다.
        """
        user = self._get_user_model(user_id)
        user.is_active = bool(active)
        updated = self.user_repo.update(user)
        if not updated.is_active:
            self._revoke_tokens_for(user_id)
        return serialize_user(updated)

    def delete_user(self, user_id: int) -> bool:
        """
        사용자를 삭제합니다. 단, VPS를 보유하지 않은 사용자만 삭제 가능합니다.

        Raises:
            UserNotFoundError: 해당 ID의 사용자를 찾을 수 없을 때.
            UserHasVpsError: 사용자가 VPS를 하나 이상 보유하고 있어 삭제할 수 없을 때.
        """
        user = self._get_user_model(user_id)
        if self.vps_repo.count_by_user_id(user_id) > 0:
            raise UserHasVpsError(f"User '{user.username}' still owns a VPS. Destroy it first.")
        self.user_repo.delete(user)
        self._revoke_tokens_for(user_id)
        logger.info("Deleted user '%s'", user.username)
        return True

    def authenticate(self, username: str, password: str) -> Dict[str, Any]:
        """
        자격증명을 검증하고, 성공 시 Bearer 인증 토큰을 발급합니다.
        demo_auto_register가 켜져 있으면 처음 보는 사용자 이름은 일반 사용자로 자동 가입됩니다.

        Raises:
            AuthenticationError: 사용자, 비밀번호, 활성 상태 검증에 실패했을 때.
        """
        if not username or not password:
            raise AuthenticationError("Invalid username or password.")

        user = self.user_repo.find_by_username(username)
        if not user and self.config.demo_auto_register:
            logger.info("Auto-registering demo user '%s'", username)
            user = self.user_repo.create(
                models.User(username=username, password_hash=hash_password(password), role="user", is_active=True)
            )
        if not user:
            raise AuthenticationError("Invalid username or password.")

        if user.password_hash != hash_password(password):
            raise AuthenticationError("Invalid username or password.")

        if not user.is_active:
            raise AuthenticationError(f"User '{username}' is deactivated.")

        token = str(uuid.uuid4())
        expires_at = datetime.now() + timedelta(minutes=self.config.token_ttl_minutes)
        with self._token_lock:
            self._token_cache[token] = {
                'user_id': user.id,
                'username': user.username,
                'role': user.role,
                'expires_at': expires_at
            }
        return {"token": token, "expires_at": expires_at.isoformat(), "user": serialize_user(user)}

    def validate_token(self, token: str) -> Caller:
        """
        인증 토큰의 유효성을 검증하고, 유효하면 요청자 정보를 반환합니다.

        Raises:
            TokenInvalidError: 토큰을 찾을 수 없거나 만료되었을 때.
        """
        with self._token_lock:
            token_data = self._token_cache.get(token)
            if not token_data:
                raise TokenInvalidError("Token not found or invalid.")

            if datetime.now() > token_data['expires_at']:
                del self._token_cache[token]
                raise TokenInvalidError("Token has expired.")

        return Caller(user_id=token_data['user_id'], username=token_data['username'], role=token_data['role'])

    def revoke_token(self, token: str) -> bool:
        """로그아웃. 이미 없는 토큰이어도 오류를 내지 않습니다."""
        with self._token_lock:
            return self._token_cache.pop(token, None) is not None

    def _revoke_tokens_for(self, user_id: int):
        with self._token_lock:
            for token in [t for t, data in self._token_cache.items() if data['user_id'] == user_id]:
                del self._token_cache[token]

    def _get_user_model(self, user_id: int) -> models.User:
        user = self.user_repo.find_by_id(user_id)
        if not user:
            raise UserNotFoundError(f"User with id '{user_id}' not found.")
        return user
