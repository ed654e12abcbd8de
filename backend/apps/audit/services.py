"""
Audit services - the audit recorder and audit log queries.

``record`` must be called inside the same ``atomic_mutation`` block as the
mutation it describes. If the insert fails, the exception propagates and the
mutation rolls back with it.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

import structlog
from django.db.models import Q

from apps.audit.models import AuditAction, AuditLogEntry, ResourceType
from apps.core.exceptions import InvariantViolation
from apps.core.logging import get_logger
from apps.core.permissions import Action, ensure_allowed
from apps.core.transactions import in_atomic_block, retry_read

if TYPE_CHECKING:
    from apps.core.auth import Principal

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 100


def record(
    actor: "Principal | None",
    action_type: AuditAction | str,
    resource_type: ResourceType | str,
    resource_id: Any = None,
    details: dict[str, Any] | None = None,
) -> AuditLogEntry:
    """
    Append an audit entry for a state-changing action.

    Args:
        actor: Principal who performed the action (None for system actions)
        action_type: Member of the closed AuditAction vocabulary
        resource_type: Member of ResourceType
        resource_id: Identifier of the affected resource
        details: Structured payload, typically {"before": ..., "after": ...}

    Returns:
        The created AuditLogEntry

    Raises:
        InvariantViolation: If called outside a transaction or with an
            action/resource outside the closed vocabulary.
        DatabaseError: If the store rejects the insert (rolls back the caller).
    """
    if action_type not in AuditAction.values:
        raise InvariantViolation(f"Unknown audit action: {action_type}")
    if resource_type not in ResourceType.values:
        raise InvariantViolation(f"Unknown audit resource type: {resource_type}")
    if not in_atomic_block():
        raise InvariantViolation(
            "Audit entries must be written inside the mutation's transaction"
        )

    ctx = structlog.contextvars.get_contextvars()

    entry = AuditLogEntry.objects.create(
        actor_id=actor.user_id if actor else None,
        action_type=str(action_type),
        resource_type=str(resource_type),
        resource_id="" if resource_id is None else str(resource_id),
        details=details or {},
        correlation_id=str(ctx.get("correlation_id") or ""),
        ip_address=ctx.get("request.ip_address"),
        user_agent=ctx.get("request.user_agent", "") or "",
    )

    logger.info(
        "audit_entry_recorded",
        audit_id=entry.id,
        action_type=entry.action_type,
        resource_type=entry.resource_type,
        resource_id=entry.resource_id,
        **{"usr.id": actor.user_id if actor else "system"},
    )
    return entry


def changed_fields(
    before: dict[str, Any], after: dict[str, Any]
) -> tuple[dict[str, Any], dict[str, Any]]:
    """
    Reduce two snapshots to the keys whose values differ.

    Returns:
        (before, after) restricted to the changed keys
    """
    keys = [k for k in after if before.get(k) != after.get(k)]
    return {k: before.get(k) for k in keys}, {k: after.get(k) for k in keys}


@dataclass
class AuditFilters:
    """Filters for the admin audit log view."""

    date_from: datetime | None = None
    date_to: datetime | None = None
    action_type: str | None = None
    resource_type: str | None = None
    resource_id: str | None = None
    actor_id: int | None = None
    search: str | None = None
    limit: int = DEFAULT_PAGE_SIZE


@retry_read
def list_entries(principal: "Principal", filters: AuditFilters | None = None) -> list[AuditLogEntry]:
    """
    List audit entries, newest first. Admin surface only.

    Raises:
        AuthorizationError: If the principal is not admin or super user.
    """
    ensure_allowed(principal, Action.AUDIT_VIEW)
    filters = filters or AuditFilters()

    qs = AuditLogEntry.objects.select_related("actor")
    if filters.date_from:
        qs = qs.filter(created_at__gte=filters.date_from)
    if filters.date_to:
        qs = qs.filter(created_at__lte=filters.date_to)
    if filters.action_type:
        qs = qs.filter(action_type=filters.action_type)
    if filters.resource_type:
        qs = qs.filter(resource_type=filters.resource_type)
    if filters.resource_id:
        qs = qs.filter(resource_id=filters.resource_id)
    if filters.actor_id is not None:
        qs = qs.filter(actor_id=filters.actor_id)
    if filters.search:
        term = filters.search
        qs = qs.filter(
            Q(action_type__icontains=term)
            | Q(resource_type__icontains=term)
            | Q(actor__name__icontains=term)
            | Q(actor__email__icontains=term)
        )

    return list(qs.order_by("-created_at", "-id")[: filters.limit])


def entries_for(resource_type: ResourceType | str, resource_id: Any) -> list[AuditLogEntry]:
    """All entries for one resource in causal order (oldest first)."""
    return list(
        AuditLogEntry.objects.select_related("actor")
        .filter(resource_type=str(resource_type), resource_id=str(resource_id))
        .order_by("created_at", "id")
    )
