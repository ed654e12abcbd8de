"""
Authorization guard - the single role matrix for every core mutation.

Services never compare role strings themselves. They ask the guard::

    from apps.core.permissions import Action, ensure_allowed

    ensure_allowed(principal, Action.FINANCE_CREATE)

``authorize`` is a pure function so the policy can be tested without a
database. ``ensure_allowed`` wraps it, logs denials and raises
``AuthorizationError`` carrying the stable reason code.
"""

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, cast

from django.db import models

from apps.core.exceptions import AuthorizationError
from apps.core.logging import get_logger

if TYPE_CHECKING:
    from apps.core.auth import Principal

logger = get_logger(__name__)


class Role(models.TextChoices):
    VISITOR = "visitor", "Visitor"
    MEMBER = "member", "Member"
    SUPER_USER = "super_user", "Super User"
    ADMIN = "admin", "Admin"


STAFF_ROLES = frozenset({Role.ADMIN, Role.SUPER_USER})


class DenyReason(StrEnum):
    NOT_AUTHORIZED = "not_authorized"
    SELF_ELEVATION_FORBIDDEN = "self_elevation_forbidden"
    NOT_OWNER = "not_owner"


class Action(StrEnum):
    """Every guarded operation in the core."""

    FINANCE_CREATE = "finance.create"
    FINANCE_UPDATE = "finance.update"
    FINANCE_DELETE = "finance.delete"
    FINANCE_TRANSITION = "finance.transition"
    FINANCE_VIEW = "finance.view"
    FINANCE_OVERVIEW_GLOBAL = "finance.overview_global"

    USER_ROLE_CHANGE = "user.role_change"
    USER_ROLE_GRANT_ADMIN = "user.role_grant_admin"
    USER_STATUS_CHANGE = "user.status_change"

    PROFILE_EDIT = "profile.edit"
    PROFILE_REVIEW = "profile.review"

    CONTENT_MANAGE = "content.manage"

    AUDIT_VIEW = "audit.view"
    ADMIN_SURFACE = "admin.surface"


LEDGER_MUTATIONS = frozenset(
    {
        Action.FINANCE_CREATE,
        Action.FINANCE_UPDATE,
        Action.FINANCE_DELETE,
        Action.FINANCE_TRANSITION,
    }
)

STAFF_ONLY = LEDGER_MUTATIONS | {
    Action.FINANCE_OVERVIEW_GLOBAL,
    Action.PROFILE_REVIEW,
    Action.CONTENT_MANAGE,
    Action.AUDIT_VIEW,
    Action.ADMIN_SURFACE,
}


@dataclass(frozen=True)
class Decision:
    """Outcome of an authorization check."""

    allowed: bool
    reason: DenyReason | None = None

    @classmethod
    def allow(cls) -> "Decision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: DenyReason) -> "Decision":
        return cls(allowed=False, reason=reason)

    def __bool__(self) -> bool:
        return self.allowed


def authorize(
    actor_role: Role | str,
    action: Action,
    target_owner_id: int | None = None,
    actor_id: int | None = None,
) -> Decision:
    """
    Decide whether a role may perform an action.

    Args:
        actor_role: Role of the acting principal.
        action: The guarded operation.
        target_owner_id: Owner (user id) of the targeted resource, when the
            resource is user-owned (finance records, profiles, the user row itself).
        actor_id: User id of the acting principal.

    Returns:
        Decision.allow() or Decision.deny(reason).
    """
    role = Role(actor_role)
    is_staff = role in STAFF_ROLES
    is_self = target_owner_id is not None and target_owner_id == actor_id

    if action in STAFF_ONLY:
        return Decision.allow() if is_staff else Decision.deny(DenyReason.NOT_AUTHORIZED)

    if action == Action.FINANCE_VIEW:
        if is_staff:
            return Decision.allow()
        if role == Role.VISITOR:
            return Decision.deny(DenyReason.NOT_AUTHORIZED)
        return Decision.allow() if is_self else Decision.deny(DenyReason.NOT_OWNER)

    if action in (Action.USER_ROLE_CHANGE, Action.USER_ROLE_GRANT_ADMIN):
        if is_self:
            return Decision.deny(DenyReason.SELF_ELEVATION_FORBIDDEN)
        if role == Role.ADMIN:
            return Decision.allow()
        if role == Role.SUPER_USER and action == Action.USER_ROLE_GRANT_ADMIN:
            return Decision.deny(DenyReason.SELF_ELEVATION_FORBIDDEN)
        return Decision.deny(DenyReason.NOT_AUTHORIZED)

    if action == Action.USER_STATUS_CHANGE:
        if role != Role.ADMIN:
            return Decision.deny(DenyReason.NOT_AUTHORIZED)
        if is_self:
            return Decision.deny(DenyReason.SELF_ELEVATION_FORBIDDEN)
        return Decision.allow()

    if action == Action.PROFILE_EDIT:
        if role == Role.VISITOR:
            return Decision.deny(DenyReason.NOT_AUTHORIZED)
        return Decision.allow() if is_self else Decision.deny(DenyReason.NOT_OWNER)

    # Unknown actions are denied
    return Decision.deny(DenyReason.NOT_AUTHORIZED)


def ensure_allowed(
    principal: "Principal",
    action: Action,
    target_owner_id: int | None = None,
) -> None:
    """
    Raise AuthorizationError unless the principal may perform the action.

    Raises:
        AuthorizationError: With the guard's deny reason.
    """
    decision = authorize(principal.role, action, target_owner_id, principal.user_id)
    if not decision.allowed:
        reason = cast(DenyReason, decision.reason)
        logger.warning(
            "authorization_denied",
            action=str(action),
            reason=str(reason),
            role=str(principal.role),
            **{"usr.id": principal.user_id},
            target_owner_id=target_owner_id,
        )
        raise AuthorizationError(reason)
