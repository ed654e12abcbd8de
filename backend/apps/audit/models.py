"""
Audit models - the append-only audit trail.
"""

from django.core.serializers.json import DjangoJSONEncoder
from django.db import models

from apps.core.exceptions import InvariantViolation


class AuditAction(models.TextChoices):
    """Closed vocabulary of audited actions."""

    USER_CREATED = "user_created", "User created"
    ROLE_UPDATED = "role_updated", "Role updated"
    USER_STATUS_UPDATED = "user_status_updated", "User status updated"
    ADMIN_OTP_VERIFIED = "admin_otp_verified", "Admin OTP verified"

    PROFILE_CREATED = "profile_created", "Profile created"
    PROFILE_UPDATED = "profile_updated", "Profile updated"
    PROFILE_APPROVED = "profile_approved", "Profile approved"
    PROFILE_REJECTED = "profile_rejected", "Profile rejected"

    FINANCE_RECORD_CREATED = "finance_record_created", "Finance record created"
    FINANCE_RECORD_UPDATED = "finance_record_updated", "Finance record updated"
    FINANCE_RECORD_DELETED = "finance_record_deleted", "Finance record deleted"
    PAYMENT_STATUS_UPDATED = "payment_status_updated", "Payment status updated"

    CONTENT_CREATED = "content_created", "Content created"
    CONTENT_UPDATED = "content_updated", "Content updated"
    CONTENT_SCHEDULED = "content_scheduled", "Content scheduled"
    CONTENT_PUBLISHED = "content_published", "Content published"


class ResourceType(models.TextChoices):
    USER = "user", "User"
    USER_PROFILE = "user_profile", "User profile"
    FINANCE = "finance", "Finance record"
    CONTENT_SECTION = "content_section", "Content section"
    CONTENT_POST = "content_post", "Content post"
    SYSTEM = "system", "System"


class AuditLogQuerySet(models.QuerySet["AuditLogEntry"]):
    """Bulk writes other than inserts are refused."""

    def update(self, **kwargs):
        raise InvariantViolation("Audit log entries are append-only")

    def delete(self):
        raise InvariantViolation("Audit log entries are append-only")


class AuditLogEntry(models.Model):
    """
    Permanent, append-only record of a state-changing action.

    Total order is (created_at, id): ``id`` is a monotonic sequence, so entries
    written in the same instant still have a stable causal order.
    """

    id = models.BigAutoField(primary_key=True)

    # Who did it (null = system, e.g. the scheduled publisher)
    actor = models.ForeignKey(
        "accounts.User",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="audit_entries",
    )

    # What happened
    action_type = models.CharField(
        max_length=50,
        choices=AuditAction.choices,
        db_index=True,
    )
    resource_type = models.CharField(
        max_length=30,
        choices=ResourceType.choices,
    )
    resource_id = models.CharField(max_length=100, blank=True, default="")

    # Field-level changes: {"before": {...}, "after": {...}} plus op-specific keys
    details = models.JSONField(default=dict, blank=True, encoder=DjangoJSONEncoder)

    # Request context
    correlation_id = models.CharField(max_length=64, blank=True, default="", db_index=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    objects = AuditLogQuerySet.as_manager()

    class Meta:
        ordering = ["created_at", "id"]
        verbose_name = "audit log entry"
        verbose_name_plural = "audit log entries"
        indexes = [
            models.Index(fields=["resource_type", "resource_id"], name="audit_resource_idx"),
            models.Index(fields=["actor", "created_at"], name="audit_actor_created_idx"),
        ]

    def __str__(self) -> str:
        actor = self.actor_id if self.actor_id is not None else "system"
        return f"{self.action_type} on {self.resource_type}:{self.resource_id} by {actor}"

    def save(self, *args, **kwargs) -> None:
        if not self._state.adding:
            raise InvariantViolation("Audit log entries are append-only")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise InvariantViolation("Audit log entries are append-only")
