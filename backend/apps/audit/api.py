"""
Audit API endpoints (admin surface).
"""

from datetime import datetime

from django.http import HttpRequest
from ninja import Router

from apps.audit.models import AuditLogEntry
from apps.audit.schemas import AuditEntryListResponse, AuditEntryResponse
from apps.audit.services import AuditFilters, entries_for, list_entries
from apps.core.permissions import Action, ensure_allowed
from apps.core.schemas import ErrorResponse
from apps.core.security import BearerAuth, get_principal

router = Router(tags=["audit"])
bearer_auth = BearerAuth()


def _entry_response(entry: AuditLogEntry) -> AuditEntryResponse:
    return AuditEntryResponse(
        id=entry.id,
        actor_id=entry.actor_id,
        actor_email=entry.actor.email if entry.actor else None,
        action_type=entry.action_type,
        resource_type=entry.resource_type,
        resource_id=entry.resource_id,
        details=entry.details,
        correlation_id=entry.correlation_id,
        created_at=entry.created_at,
    )


@router.get(
    "/entries",
    response={200: AuditEntryListResponse, 401: ErrorResponse, 403: ErrorResponse},
    auth=bearer_auth,
    operation_id="listAuditEntries",
    summary="List audit entries",
)
def list_audit_entries(
    request: HttpRequest,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    action_type: str | None = None,
    resource_type: str | None = None,
    resource_id: str | None = None,
    actor_id: int | None = None,
    search: str | None = None,
    limit: int = 100,
) -> AuditEntryListResponse:
    """
    Audit trail, newest first.

    Admins and super users only.
    """
    filters = AuditFilters(
        date_from=date_from,
        date_to=date_to,
        action_type=action_type,
        resource_type=resource_type,
        resource_id=resource_id,
        actor_id=actor_id,
        search=search,
        limit=min(max(limit, 1), 500),
    )
    entries = list_entries(get_principal(request), filters)
    return AuditEntryListResponse(
        entries=[_entry_response(e) for e in entries],
        count=len(entries),
    )


@router.get(
    "/resources/{resource_type}/{resource_id}",
    response={200: AuditEntryListResponse, 401: ErrorResponse, 403: ErrorResponse},
    auth=bearer_auth,
    operation_id="getResourceHistory",
    summary="Full history of one resource",
)
def get_resource_history(
    request: HttpRequest, resource_type: str, resource_id: str
) -> AuditEntryListResponse:
    """History of a single resource, oldest first."""
    ensure_allowed(get_principal(request), Action.AUDIT_VIEW)
    entries = entries_for(resource_type, resource_id)
    return AuditEntryListResponse(
        entries=[_entry_response(e) for e in entries],
        count=len(entries),
    )
