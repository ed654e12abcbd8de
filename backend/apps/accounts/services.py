"""
Accounts services - principal resolution, user administration, the profile
approval workflow and the staff dashboard counts.

All mutations run inside ``atomic_mutation`` together with their audit entry.
"""

from dataclasses import dataclass
from typing import Any

from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone

from apps.accounts.models import User, UserProfile
from apps.audit.models import AuditAction, ResourceType
from apps.audit.services import changed_fields, record
from apps.content.models import ContentPost, ContentSection
from apps.core.auth import Principal
from apps.core.exceptions import NotFoundError, ValidationError
from apps.core.logging import get_logger
from apps.core.permissions import Action, Role, ensure_allowed
from apps.core.transactions import atomic_mutation, retry_read
from apps.core.workflow import TransitionTable
from apps.finances.models import FinanceRecord

logger = get_logger(__name__)

S = User.Status
P = UserProfile.Status

# Suspension is the terminal removal state
USER_STATUS_TRANSITIONS = TransitionTable(
    "user",
    {
        S.PENDING_APPROVAL: {S.ACTIVE, S.INACTIVE, S.SUSPENDED},
        S.ACTIVE: {S.INACTIVE, S.SUSPENDED},
        S.INACTIVE: {S.ACTIVE, S.SUSPENDED},
    },
)

# approved -> pending / rejected -> pending are owner resubmissions
PROFILE_TRANSITIONS = TransitionTable(
    "user_profile",
    {
        P.PENDING: {P.APPROVED, P.REJECTED},
        P.APPROVED: {P.PENDING},
        P.REJECTED: {P.PENDING},
    },
    idempotent={P.APPROVED},
)


# --- Principal resolution ---


def resolve_principal(user: User) -> Principal | None:
    """
    Map a local user to the principal the core acts on.

    Suspended users never resolve.
    """
    if user.is_suspended or not user.is_active:
        logger.info("principal_rejected_inactive", **{"usr.id": user.id}, status=user.status)
        return None
    return Principal(user_id=user.id, role=Role(user.role), email=user.email)


def principal_for(user_id: int) -> Principal | None:
    """Resolve a principal by user id (used by jobs and tests)."""
    try:
        return resolve_principal(User.objects.get(pk=user_id))
    except User.DoesNotExist:
        return None


def _user_snapshot(user: User) -> dict[str, Any]:
    return {
        "email": user.email,
        "name": user.name,
        "role": user.role,
        "status": user.status,
    }


def get_or_create_user_from_auth(
    external_auth_id: str,
    email: str,
    name: str = "",
) -> User:
    """
    Get or create the local User for an authenticated provider member.

    Called on first authentication. A user pre-created by an admin (same
    email, no provider id yet) is linked instead of duplicated.

    Uses select_for_update for explicit row locking under concurrent requests.
    """
    match = Q(external_auth_id=external_auth_id) | Q(email__iexact=email)

    with atomic_mutation("user_created"):
        user = User.objects.select_for_update().filter(match).first()
        if user is not None:
            return _link_auth_id(user, external_auth_id)

        try:
            with transaction.atomic():
                user = User.objects.create_user(
                    email=email,
                    name=name,
                    external_auth_id=external_auth_id,
                )
        except IntegrityError:
            # Concurrent first login won the race, fetch the winner
            winner = User.objects.filter(match).first()
            if winner is None:
                raise
            logger.info("user_create_race_lost", **{"usr.id": winner.id})
            return _link_auth_id(winner, external_auth_id)

        record(
            None,
            AuditAction.USER_CREATED,
            ResourceType.USER,
            user.id,
            {"after": _user_snapshot(user), "source": "first_authentication"},
        )

    logger.info("user_created", **{"usr.id": user.id}, source="first_authentication")
    return user


def _link_auth_id(user: User, external_auth_id: str) -> User:
    if user.external_auth_id != external_auth_id:
        user.external_auth_id = external_auth_id
        user.save(update_fields=["external_auth_id", "updated_at"])
    return user


# --- User administration ---


def create_user(
    principal: Principal,
    email: str,
    name: str = "",
    role: Role | str = Role.MEMBER,
    phone_number: str = "",
) -> User:
    """
    Admin-created user (the provider account is linked on first login).

    Raises:
        AuthorizationError: Unless the principal is admin.
        ValidationError: If the email is taken or the role is unknown.
    """
    role = _parse_role(role)
    action = Action.USER_ROLE_GRANT_ADMIN if role == Role.ADMIN else Action.USER_ROLE_CHANGE
    ensure_allowed(principal, action)

    if User.objects.filter(email__iexact=email).exists():
        raise ValidationError("A user with this email already exists", field="email")

    with atomic_mutation("user_created"):
        user = User.objects.create_user(
            email=email, name=name, role=role, phone_number=phone_number
        )
        record(
            principal,
            AuditAction.USER_CREATED,
            ResourceType.USER,
            user.id,
            {"after": _user_snapshot(user), "source": "admin"},
        )

    logger.info("user_created", **{"usr.id": user.id}, created_by=principal.user_id)
    return user


def _parse_role(role: Role | str) -> Role:
    try:
        return Role(role)
    except ValueError:
        raise ValidationError(f"Unknown role: {role}", field="role") from None


def update_user_role(principal: Principal, user_id: int, new_role: Role | str) -> User:
    """
    Change a user's role.

    Raises:
        AuthorizationError: not_authorized for non-admins,
            self_elevation_forbidden when a super user grants admin or an actor
            changes their own role.
        NotFoundError: If the user does not exist.
    """
    new_role = _parse_role(new_role)
    action = Action.USER_ROLE_GRANT_ADMIN if new_role == Role.ADMIN else Action.USER_ROLE_CHANGE
    ensure_allowed(principal, action, target_owner_id=user_id)

    with atomic_mutation("role_updated"):
        user = _lock_user(user_id)
        if user.role == new_role:
            return user

        before = _user_snapshot(user)
        user.role = new_role
        user.save(update_fields=["role", "updated_at"])
        old, new = changed_fields(before, _user_snapshot(user))
        record(
            principal,
            AuditAction.ROLE_UPDATED,
            ResourceType.USER,
            user.id,
            {"before": old, "after": new},
        )

    logger.info("role_updated", target_user_id=user.id, new_role=str(new_role))
    return user


def update_user_status(principal: Principal, user_id: int, new_status: str) -> User:
    """
    Change a user's account status. ``suspended`` is terminal.

    Raises:
        AuthorizationError: Unless the principal is an admin acting on someone else.
        ValidationError: If the status is unknown.
        IllegalTransition: If the status change is not allowed.
    """
    if new_status not in S.values:
        raise ValidationError(f"Unknown status: {new_status}", field="status")
    ensure_allowed(principal, Action.USER_STATUS_CHANGE, target_owner_id=user_id)

    with atomic_mutation("user_status_updated"):
        user = _lock_user(user_id)
        if user.status == new_status:
            return user
        USER_STATUS_TRANSITIONS.check(user.status, new_status)

        before = _user_snapshot(user)
        user.status = new_status
        user.save(update_fields=["status", "updated_at"])
        old, new = changed_fields(before, _user_snapshot(user))
        record(
            principal,
            AuditAction.USER_STATUS_UPDATED,
            ResourceType.USER,
            user.id,
            {"before": old, "after": new},
        )

    logger.info("user_status_updated", target_user_id=user.id, new_status=new_status)
    return user


def _lock_user(user_id: int) -> User:
    try:
        return User.objects.select_for_update().get(pk=user_id)
    except User.DoesNotExist:
        raise NotFoundError(f"User {user_id} not found") from None


@retry_read
def list_users(principal: Principal) -> list[User]:
    """All users, newest first. Admin surface only."""
    ensure_allowed(principal, Action.ADMIN_SURFACE)
    return list(User.objects.order_by("-created_at"))


# --- Profiles ---


def _profile_snapshot(profile: UserProfile) -> dict[str, Any]:
    snapshot: dict[str, Any] = {f: getattr(profile, f) for f in UserProfile.EDITABLE_FIELDS}
    snapshot["field_visibility"] = dict(profile.field_visibility or {})
    snapshot["status"] = profile.status
    return snapshot


def _clean_profile_data(data: dict[str, Any]) -> dict[str, Any]:
    allowed = set(UserProfile.EDITABLE_FIELDS) | {"field_visibility"}
    unknown = set(data) - allowed
    if unknown:
        raise ValidationError(
            f"Unknown profile fields: {', '.join(sorted(unknown))}", field=sorted(unknown)[0]
        )

    cleaned = dict(data)
    for name in ("first_name", "last_name"):
        if name in cleaned and not (cleaned[name] or "").strip():
            raise ValidationError(f"{name} is required", field=name)

    visibility = cleaned.get("field_visibility")
    if visibility is not None:
        if not isinstance(visibility, dict):
            raise ValidationError("field_visibility must be an object", field="field_visibility")
        for key, value in visibility.items():
            if key not in UserProfile.EDITABLE_FIELDS or not isinstance(value, bool):
                raise ValidationError(
                    f"Invalid visibility entry: {key}", field="field_visibility"
                )
    return cleaned


def create_profile(principal: Principal, data: dict[str, Any]) -> UserProfile:
    """
    Create the principal's own profile in ``pending`` status.

    Raises:
        AuthorizationError: For visitors.
        ValidationError: On bad input or if a profile already exists.
    """
    ensure_allowed(principal, Action.PROFILE_EDIT, target_owner_id=principal.user_id)
    cleaned = _clean_profile_data(data)
    for name in ("first_name", "last_name"):
        if name not in cleaned:
            raise ValidationError(f"{name} is required", field=name)

    if UserProfile.objects.filter(user_id=principal.user_id).exists():
        raise ValidationError("Profile already exists", field="user")

    with atomic_mutation("profile_created"):
        profile = UserProfile.objects.create(
            user_id=principal.user_id, status=P.PENDING, **cleaned
        )
        record(
            principal,
            AuditAction.PROFILE_CREATED,
            ResourceType.USER_PROFILE,
            profile.id,
            {"after": _profile_snapshot(profile)},
        )

    logger.info("profile_created", profile_id=profile.id)
    return profile


def update_own_profile(principal: Principal, patch: dict[str, Any]) -> UserProfile:
    """
    Owner edit of their profile.

    An edit of an approved or rejected profile resubmits it: status goes back
    to ``pending`` and the previous approval is cleared. Self-edits never
    remain approved.

    An edit that changes no field is a no-op and writes no audit entry.

    Raises:
        AuthorizationError: For visitors.
        NotFoundError: If the principal has no profile.
        ValidationError: On bad input.
    """
    ensure_allowed(principal, Action.PROFILE_EDIT, target_owner_id=principal.user_id)
    cleaned = _clean_profile_data(patch)

    with atomic_mutation("profile_updated"):
        try:
            profile = UserProfile.objects.select_for_update().get(user_id=principal.user_id)
        except UserProfile.DoesNotExist:
            raise NotFoundError("Profile not found") from None

        before = _profile_snapshot(profile)
        for name, value in cleaned.items():
            setattr(profile, name, value)
        if not changed_fields(before, _profile_snapshot(profile))[1]:
            return profile

        resubmitted = profile.status != P.PENDING
        if resubmitted:
            PROFILE_TRANSITIONS.check(profile.status, P.PENDING)
            profile.status = P.PENDING
            profile.approved_by = None
            profile.approved_at = None

        profile.save()
        old, new = changed_fields(before, _profile_snapshot(profile))
        record(
            principal,
            AuditAction.PROFILE_UPDATED,
            ResourceType.USER_PROFILE,
            profile.id,
            {"before": old, "after": new, "resubmitted": resubmitted},
        )

    logger.info("profile_updated", profile_id=profile.id, resubmitted=resubmitted)
    return profile


def _review_profile(
    principal: Principal,
    profile_id: int,
    target: str,
    action_type: AuditAction,
) -> UserProfile:
    ensure_allowed(principal, Action.PROFILE_REVIEW)

    with atomic_mutation(str(action_type)):
        try:
            profile = UserProfile.objects.select_for_update().get(pk=profile_id)
        except UserProfile.DoesNotExist:
            raise NotFoundError(f"Profile {profile_id} not found") from None

        if not PROFILE_TRANSITIONS.check(profile.status, target):
            return profile

        before = _profile_snapshot(profile)
        profile.status = target
        update_fields = ["status", "updated_at"]
        if target == P.APPROVED:
            profile.approved_by_id = principal.user_id
            profile.approved_at = timezone.now()
            update_fields += ["approved_by", "approved_at"]
        profile.save(update_fields=update_fields)

        details: dict[str, Any] = {
            "before": {"status": before["status"]},
            "after": {"status": profile.status},
        }
        if profile.approved_at:
            details["after"]["approved_by"] = profile.approved_by_id
            details["after"]["approved_at"] = profile.approved_at.isoformat()
        record(principal, action_type, ResourceType.USER_PROFILE, profile.id, details)

    logger.info(str(action_type), profile_id=profile.id)
    return profile


def approve_profile(principal: Principal, profile_id: int) -> UserProfile:
    """
    Approve a pending profile. Re-approving an approved profile is a no-op.

    Raises:
        AuthorizationError: Unless staff.
        IllegalTransition: If the profile is rejected.
    """
    return _review_profile(principal, profile_id, P.APPROVED, AuditAction.PROFILE_APPROVED)


def reject_profile(principal: Principal, profile_id: int) -> UserProfile:
    """
    Reject a pending profile.

    Raises:
        AuthorizationError: Unless staff.
        IllegalTransition: If the profile is not pending.
    """
    return _review_profile(principal, profile_id, P.REJECTED, AuditAction.PROFILE_REJECTED)


@retry_read
def list_pending_profiles(principal: Principal) -> list[UserProfile]:
    ensure_allowed(principal, Action.PROFILE_REVIEW)
    return list(
        UserProfile.objects.filter(status=P.PENDING)
        .select_related("user")
        .order_by("-created_at")
    )


def visible_profile_fields(profile: UserProfile) -> dict[str, Any]:
    """
    Project a profile through its field_visibility map.

    Fields explicitly set to False are returned as None; missing keys are visible.
    """
    visibility = profile.field_visibility or {}
    return {
        name: (getattr(profile, name) if visibility.get(name) is not False else None)
        for name in UserProfile.EDITABLE_FIELDS
    }


@retry_read
def list_directory(search: str | None = None) -> list[dict[str, Any]]:
    """
    Networking directory: approved profiles only, visibility applied.

    Search matches only fields the owner made visible.
    """
    profiles = UserProfile.objects.filter(status=P.APPROVED).order_by("-created_at")
    entries = []
    for profile in profiles:
        fields = visible_profile_fields(profile)
        if search:
            term = search.lower()
            searchable = ("first_name", "last_name", "village_name", "current_location")
            if not any(term in (fields[name] or "").lower() for name in searchable):
                continue
        entries.append({"id": profile.id, "user_id": profile.user_id, **fields})
    return entries


# --- Dashboard ---


@dataclass(frozen=True)
class AdminStats:
    """Headline counts for the staff dashboard."""

    total_users: int
    total_finance_records: int
    total_content: int
    pending_profiles: int


@retry_read
def admin_stats(principal: Principal) -> AdminStats:
    """
    Counts shown on the staff dashboard. Content covers sections and posts.

    Raises:
        AuthorizationError: Unless staff.
    """
    ensure_allowed(principal, Action.ADMIN_SURFACE)
    return AdminStats(
        total_users=User.objects.count(),
        total_finance_records=FinanceRecord.objects.count(),
        total_content=ContentSection.objects.count() + ContentPost.objects.count(),
        pending_profiles=UserProfile.objects.filter(status=P.PENDING).count(),
    )
