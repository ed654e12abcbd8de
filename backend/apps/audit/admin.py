"""Django admin for browsing the audit trail."""

from django.contrib import admin

from apps.audit.models import AuditLogEntry


@admin.register(AuditLogEntry)
class AuditLogEntryAdmin(admin.ModelAdmin):
    """Read-only admin for audit entries."""

    list_display = [
        "created_at",
        "action_type",
        "resource_type",
        "resource_id",
        "actor",
        "correlation_id",
    ]
    list_filter = ["action_type", "resource_type", "created_at"]
    search_fields = ["resource_id", "actor__email", "correlation_id"]
    readonly_fields = [
        "actor",
        "action_type",
        "resource_type",
        "resource_id",
        "details",
        "correlation_id",
        "ip_address",
        "user_agent",
        "created_at",
    ]
    ordering = ["-created_at", "-id"]
    date_hierarchy = "created_at"

    def has_add_permission(self, request):
        """Entries are written by the core, not admin."""
        return False

    def has_change_permission(self, request, obj=None):
        """Entries are immutable."""
        return False

    def has_delete_permission(self, request, obj=None):
        """Entries are never deleted."""
        return False
