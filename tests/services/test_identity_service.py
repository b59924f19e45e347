# tests/services/test_identity_service.py
import pytest
from unittest.mock import MagicMock, ANY
from datetime import datetime, timedelta
import hashlib

from src.config import PanelConfig
from src.services.identity_service import IdentityService
from src.services.exceptions import *
from src.repositories.interfaces import IUserRepository, IVPSRepository
from src.database import models

# ===================================================================
#  Fixture 설정
# ===================================================================

@pytest.fixture
def mock_user_repo() -> MagicMock:
    """IUserRepository에 대한 모의 객체를 생성합니다."""
    return MagicMock(spec=IUserRepository)

@pytest.fixture
def mock_vps_repo() -> MagicMock:
    """IVPSRepository에 대한 모의 객체를 생성합니다."""
    return MagicMock(spec=IVPSRepository)

@pytest.fixture
def identity_service(mock_user_repo: MagicMock, mock_vps_repo: MagicMock) -> IdentityService:
    """테스트에 사용될 IdentityService 인스턴스를 생성하고, 의존성을 주입합니다."""
    return IdentityService(mock_user_repo, mock_vps_repo)

def make_user(user_id=1, username="alice", password="secret", role="user", is_active=True) -> models.User:
    return models.User(
        id=user_id,
        username=username,
        password_hash=hashlib.sha256(password.encode('utf-8')).hexdigest(),
        role=role,
        is_active=is_active,
    )

# ===================================================================
#  사용자 관리(User Management) 테스트
# ===================================================================
class TestUserManagement:
    def test_create_user_success(self, identity_service: IdentityService, mock_user_repo: MagicMock):
        """사용자 생성 성공 시, 비밀번호가 해시되어 저장되는지 테스트합니다."""
        # === Arrange (테스트 준비) ===
        mock_user_repo.find_by_username.return_value = None
        mock_user_repo.create.side_effect = lambda user: (setattr(user, "id", 7), user)[1]

        # === Act (실제 테스트 대상 실행) ===
        user = identity_service.create_user("carol", "pw")

        # === Assert (결과 검증) ===
        assert user["id"] == 7
        assert user["role"] == "user"
        assert "password_hash" not in user
        created = mock_user_repo.create.call_args[0][0]
        assert created.password_hash == hashlib.sha256(b"pw").hexdigest()

    def test_create_user_fails_if_username_exists(self, identity_service: IdentityService, mock_user_repo: MagicMock):
        """사용자 이름이 중복될 경우 UserCreationError가 발생하는지 테스트합니다."""
        mock_user_repo.find_by_username.return_value = make_user()

        with pytest.raises(UserCreationError):
            identity_service.create_user("alice", "pw")
        # 검증: create는 호출되지 않았어야 함
        mock_user_repo.create.assert_not_called()

    @pytest.mark.parametrize("username, password, role", [
        ("", "pw", "user"),
        ("carol", "", "user"),
        ("carol", "pw", "superuser"),
    ])
    def test_create_user_validation(self, identity_service, mock_user_repo, username, password, role):
        with pytest.raises(ValidationError):
            identity_service.create_user(username, password, role)
        mock_user_repo.create.assert_not_called()

    def test_get_user_not_found(self, identity_service, mock_user_repo):
        mock_user_repo.find_by_id.return_value = None
        with pytest.raises(UserNotFoundError):
            identity_service.get_user(99)

    def test_delete_user_success(self, identity_service, mock_user_repo, mock_vps_repo):
        """VPS가 없는 사용자 삭제 성공 시나리오를 테스트합니다."""
        # === Arrange ===
        user = make_user(user_id=3)
        mock_user_repo.find_by_id.return_value = user
        mock_vps_repo.count_by_user_id.return_value = 0

        # === Act ===
        result = identity_service.delete_user(3)

        # === Assert ===
        assert result is True
        mock_vps_repo.count_by_user_id.assert_called_once_with(3)
        mock_user_repo.delete.assert_called_once_with(user)

    def test_delete_user_fails_if_has_vps(self, identity_service, mock_user_repo, mock_vps_repo):
        """VPS를 보유한 사용자를 삭제하려고 할 때 UserHasVpsError가 발생하는지 테스트합니다."""
        mock_user_repo.find_by_id.return_value = make_user(user_id=3)
        mock_vps_repo.count_by_user_id.return_value = 1

        with pytest.raises(UserHasVpsError):
            identity_service.delete_user(3)
        mock_user_repo.delete.assert_not_called()

    def test_deactivate_user_revokes_tokens(self, identity_service, mock_user_repo):
        """비활성화된 사용자의 기존 토큰은 즉시 무효화되어야 합니다."""
        # === Arrange ===
        user = make_user()
        mock_user_repo.find_by_username.return_value = user
        mock_user_repo.find_by_id.return_value = user
        mock_user_repo.update.side_effect = lambda u: u
        token = identity_service.authenticate("alice", "secret")["token"]

        # === Act ===
        result = identity_service.set_user_active(1, False)

        # === Assert ===
        assert result["is_active"] is False
        with pytest.raises(TokenInvalidError):
            identity_service.validate_token(token)

# ===================================================================
#  인증 및 토큰(Authentication & Token) 테스트
# ===================================================================
class TestAuthentication:
    def test_authenticate_success(self, identity_service, mock_user_repo):
        """올바른 자격 증명으로 토큰이 발급되고, 검증 시 요청자 정보가 복원되는지 테스트합니다."""
        # === Arrange ===
        mock_user_repo.find_by_username.return_value = make_user(user_id=4, role="admin", username="root")

        # === Act ===
        result = identity_service.authenticate("root", "secret")
        caller = identity_service.validate_token(result["token"])

        # === Assert ===
        assert result["user"]["username"] == "root"
        assert caller.user_id == 4
        assert caller.is_admin

    @pytest.mark.parametrize("password", ["wrong", ""])
    def test_authenticate_wrong_password(self, identity_service, mock_user_repo, password):
        mock_user_repo.find_by_username.return_value = make_user()
        with pytest.raises(AuthenticationError):
            identity_service.authenticate("alice", password)

    def test_authenticate_unknown_user(self, identity_service, mock_user_repo):
        mock_user_repo.find_by_username.return_value = None
        with pytest.raises(AuthenticationError):
            identity_service.authenticate("ghost", "pw")
        mock_user_repo.create.assert_not_called()

    def test_authenticate_inactive_user(self, identity_service, mock_user_repo):
        mock_user_repo.find_by_username.return_value = make_user(is_active=False)
        with pytest.raises(AuthenticationError):
            identity_service.authenticate("alice", "secret")

    def test_demo_auto_register(self, mock_user_repo, mock_vps_repo):
        """demo_auto_register가 켜져 있으면 처음 보는 사용자가 일반 사용자로 가입됩니다."""
        # === Arrange ===
        service = IdentityService(mock_user_repo, mock_vps_repo, PanelConfig(demo_auto_register=True))
        mock_user_repo.find_by_username.return_value = None
        mock_user_repo.create.side_effect = lambda user: (setattr(user, "id", 11), user)[1]

        # === Act ===
        result = service.authenticate("newbie", "pw")

        # === Assert ===
        mock_user_repo.create.assert_called_once_with(ANY)
        assert result["user"]["role"] == "user"
        assert service.validate_token(result["token"]).user_id == 11

    def test_validate_unknown_token(self, identity_service):
        with pytest.raises(TokenInvalidError):
            identity_service.validate_token("no-such-token")

    def test_validate_expired_token(self, identity_service):
        """만료된 토큰은 검증 시 캐시에서 제거되고 TokenInvalidError가 발생해야 합니다."""
        IdentityService._token_cache["old"] = {
            'user_id': 1, 'username': 'alice', 'role': 'user',
            'expires_at': datetime.now() - timedelta(seconds=1),
        }

        with pytest.raises(TokenInvalidError):
            identity_service.validate_token("old")
        assert "old" not in IdentityService._token_cache

    def test_revoke_token(self, identity_service, mock_user_repo):
        mock_user_repo.find_by_username.return_value = make_user()
        token = identity_service.authenticate("alice", "secret")["token"]

        assert identity_service.revoke_token(token) is True
        assert identity_service.revoke_token(token) is False
        with pytest.raises(TokenInvalidError):
            identity_service.validate_token(token)

# ===================================================================
#  자가 가입(Register) 테스트
# ===================================================================
class TestRegister:
    def test_register_creates_regular_user(self, identity_service, mock_user_repo):
        """자가 가입은 항상 일반 사용자로 생성되고, 이후 로그인할 수 있어야 합니다."""
        # === Arrange ===
        mock_user_repo.find_by_username.return_value = None
        mock_user_repo.create.side_effect = lambda user: (setattr(user, "id", 21), user)[1]

        # === Act ===
        user = identity_service.register("dave", "pw")

        # === Assert ===
        assert user["id"] == 21
        assert user["role"] == "user"
        created = mock_user_repo.create.call_args[0][0]
        assert created.role == "user"

        mock_user_repo.find_by_username.return_value = created
        assert identity_service.authenticate("dave", "pw")["user"]["id"] == 21

    def test_register_fails_if_username_taken(self, identity_service, mock_user_repo):
        mock_user_repo.find_by_username.return_value = make_user()

        with pytest.raises(UserCreationError):
            identity_service.register("alice", "pw")
        mock_user_repo.create.assert_not_called()

    def test_register_requires_credentials(self, identity_service, mock_user_repo):
        with pytest.raises(ValidationError):
            identity_service.register("dave", "")
        mock_user_repo.create.assert_not_called()
