"""
Audit API schemas.
"""

from datetime import datetime
from typing import Any

from ninja import Schema
from pydantic import Field


class AuditEntryResponse(Schema):
    """Single audit log entry."""

    id: int
    actor_id: int | None = Field(description="Acting user id, null for system actions")
    actor_email: str | None = None
    action_type: str
    resource_type: str
    resource_id: str
    details: dict[str, Any]
    correlation_id: str
    created_at: datetime


class AuditEntryListResponse(Schema):
    entries: list[AuditEntryResponse]
    count: int
