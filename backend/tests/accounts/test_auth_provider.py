"""
Tests for the Stytch auth provider adapter.
"""

from unittest.mock import MagicMock, patch

import pytest
from stytch.core.response_base import StytchError, StytchErrorDetails

from apps.accounts.auth_provider import get_current_principal, send_otp, verify_admin_otp, verify_otp
from apps.accounts.models import User
from apps.audit.models import AuditAction, AuditLogEntry
from apps.core.exceptions import AuthorizationError, NotAuthenticatedError, ValidationError
from apps.core.permissions import Role
from tests.accounts.factories import UserFactory


def _stytch_error(error_type: str = "session_not_found", status_code: int = 404) -> StytchError:
    return StytchError(
        StytchErrorDetails(
            status_code=status_code,
            request_id="req-123",
            error_type=error_type,
            error_message="Rejected by provider",
        )
    )


def _member(email: str, name: str = "") -> MagicMock:
    member = MagicMock()
    member.email_address = email
    member.name = name
    return member


@pytest.mark.django_db
class TestGetCurrentPrincipal:
    @patch("apps.accounts.auth_provider.get_stytch_client")
    def test_known_member_resolves(self, mock_get_client: MagicMock) -> None:
        user = UserFactory.create(external_auth_id="member-live-abc", role=Role.ADMIN)
        mock_client = MagicMock()
        mock_client.sessions.authenticate_jwt.return_value.member_session.member_id = "member-live-abc"
        mock_get_client.return_value = mock_client

        principal = get_current_principal("jwt")

        assert principal is not None
        assert principal.user_id == user.id
        assert principal.role == Role.ADMIN
        mock_client.sessions.authenticate.assert_not_called()

    @patch("apps.accounts.auth_provider.get_stytch_client")
    def test_first_login_creates_user(self, mock_get_client: MagicMock) -> None:
        mock_client = MagicMock()
        mock_client.sessions.authenticate_jwt.return_value.member_session.member_id = "member-live-new"
        mock_client.sessions.authenticate.return_value.member = _member("fresh@example.com", "Fresh")
        mock_get_client.return_value = mock_client

        principal = get_current_principal("jwt")

        user = User.objects.get(external_auth_id="member-live-new")
        assert principal is not None
        assert principal.user_id == user.id
        assert principal.role == Role.MEMBER
        assert user.name == "Fresh"

    @patch("apps.accounts.auth_provider.get_stytch_client")
    def test_invalid_session_returns_none(self, mock_get_client: MagicMock) -> None:
        mock_client = MagicMock()
        mock_client.sessions.authenticate_jwt.side_effect = _stytch_error()
        mock_get_client.return_value = mock_client

        assert get_current_principal("expired") is None

    @patch("apps.accounts.auth_provider.get_stytch_client")
    def test_suspended_user_returns_none(self, mock_get_client: MagicMock) -> None:
        UserFactory.create(external_auth_id="member-live-gone", status=User.Status.SUSPENDED)
        mock_client = MagicMock()
        mock_client.sessions.authenticate_jwt.return_value.member_session.member_id = "member-live-gone"
        mock_get_client.return_value = mock_client

        assert get_current_principal("jwt") is None


@pytest.mark.django_db
class TestOtp:
    @patch("apps.accounts.auth_provider.get_stytch_client")
    def test_send_otp_error_is_validation_error(self, mock_get_client: MagicMock) -> None:
        mock_client = MagicMock()
        mock_client.otps.email.login_or_signup.side_effect = _stytch_error("invalid_email", 400)
        mock_get_client.return_value = mock_client

        with pytest.raises(ValidationError) as exc_info:
            send_otp("bad@example")

        assert exc_info.value.field == "email"

    @patch("apps.accounts.auth_provider.get_stytch_client")
    def test_verify_otp_returns_session_and_links_user(self, mock_get_client: MagicMock) -> None:
        mock_client = MagicMock()
        response = mock_client.otps.email.authenticate.return_value
        response.member_id = "member-live-otp"
        response.member = _member("otp@example.com")
        response.session_jwt = "session-jwt-value"
        mock_get_client.return_value = mock_client

        assert verify_otp("otp@example.com", "123456") == "session-jwt-value"
        assert User.objects.filter(email="otp@example.com", external_auth_id="member-live-otp").exists()

    @patch("apps.accounts.auth_provider.get_stytch_client")
    def test_verify_otp_rejected(self, mock_get_client: MagicMock) -> None:
        mock_client = MagicMock()
        mock_client.otps.email.authenticate.side_effect = _stytch_error("otp_code_not_found")
        mock_get_client.return_value = mock_client

        with pytest.raises(NotAuthenticatedError):
            verify_otp("otp@example.com", "000000")

    @patch("apps.accounts.auth_provider.get_stytch_client")
    def test_admin_otp_is_audited(self, mock_get_client: MagicMock, admin_user, admin_principal) -> None:
        mock_client = MagicMock()
        response = mock_client.otps.email.authenticate.return_value
        response.member_id = admin_user.external_auth_id
        response.member = _member(admin_user.email)
        response.session_jwt = "admin-jwt"
        mock_get_client.return_value = mock_client

        assert verify_admin_otp(admin_principal, "123456") == "admin-jwt"
        entry = AuditLogEntry.objects.get(action_type=AuditAction.ADMIN_OTP_VERIFIED)
        assert entry.actor_id == admin_user.id

    def test_admin_otp_denied_for_members(self, member_principal) -> None:
        with pytest.raises(AuthorizationError):
            verify_admin_otp(member_principal, "123456")
