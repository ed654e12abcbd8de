"""
Auth provider adapter (Stytch B2B).

Validates sessions and one-time passcodes with Stytch and maps the
authenticated member to a local User and Principal. Credentials never touch
the local database.
"""

from functools import lru_cache

import stytch
from django.conf import settings
from stytch.core.response_base import StytchError

from apps.accounts.models import User
from apps.accounts.services import get_or_create_user_from_auth, resolve_principal
from apps.audit.models import AuditAction, ResourceType
from apps.audit.services import record
from apps.core.auth import Principal
from apps.core.exceptions import NotAuthenticatedError, ValidationError
from apps.core.logging import get_logger
from apps.core.permissions import Action, ensure_allowed
from apps.core.transactions import atomic_mutation

logger = get_logger(__name__)


@lru_cache(maxsize=1)
def get_stytch_client() -> stytch.B2BClient:
    """
    Get configured Stytch B2B client (singleton).
    """
    return stytch.B2BClient(
        project_id=settings.STYTCH_PROJECT_ID,
        secret=settings.STYTCH_SECRET,
    )


def get_current_principal(session_jwt: str) -> Principal | None:
    """
    Resolve the principal behind a session JWT.

    Returns None when the session is invalid, expired or belongs to a
    suspended user.
    """
    client = get_stytch_client()

    try:
        response = client.sessions.authenticate_jwt(session_jwt=session_jwt)
    except StytchError as e:
        logger.info("session_rejected", error=e.details.error_message)
        return None

    member_id = response.member_session.member_id
    user = User.objects.filter(external_auth_id=member_id).first()

    if user is None:
        # First authentication: fetch the member profile from the full session
        try:
            full = client.sessions.authenticate(session_jwt=session_jwt)
        except StytchError as e:
            logger.warning("session_member_lookup_failed", error=e.details.error_message)
            return None
        user = get_or_create_user_from_auth(
            external_auth_id=member_id,
            email=full.member.email_address,
            name=full.member.name or "",
        )

    return resolve_principal(user)


def send_otp(email: str) -> None:
    """
    Send an email one-time passcode.

    Raises:
        ValidationError: If the provider rejects the request.
    """
    client = get_stytch_client()

    try:
        client.otps.email.login_or_signup(
            organization_id=settings.STYTCH_ORGANIZATION_ID,
            email_address=email,
        )
    except StytchError as e:
        logger.warning("otp_send_failed", error=e.details.error_message)
        raise ValidationError("Failed to send code. Please check the email address.", field="email") from e

    logger.info("otp_sent")


def verify_otp(email: str, code: str) -> str:
    """
    Verify an email one-time passcode.

    Returns:
        The session JWT issued by the provider.

    Raises:
        NotAuthenticatedError: If the code is invalid or expired.
    """
    client = get_stytch_client()

    try:
        response = client.otps.email.authenticate(
            organization_id=settings.STYTCH_ORGANIZATION_ID,
            email_address=email,
            code=code,
        )
    except StytchError as e:
        logger.info("otp_rejected", error=e.details.error_message)
        raise NotAuthenticatedError("Invalid or expired code") from e

    get_or_create_user_from_auth(
        external_auth_id=response.member_id,
        email=response.member.email_address,
        name=response.member.name or "",
    )
    return response.session_jwt


def verify_admin_otp(principal: Principal, code: str) -> str:
    """
    Step-up verification before entering the admin surface.

    The code must belong to the principal's own email. Success is audited.

    Raises:
        AuthorizationError: Unless the principal is admin or super user.
        NotAuthenticatedError: If the code is invalid.
    """
    ensure_allowed(principal, Action.ADMIN_SURFACE)
    session_jwt = verify_otp(principal.email, code)

    with atomic_mutation("admin_otp_verified"):
        record(
            principal,
            AuditAction.ADMIN_OTP_VERIFIED,
            ResourceType.USER,
            principal.user_id,
        )

    logger.info("admin_otp_verified")
    return session_jwt
