"""
Admin configuration for accounts app.
"""

from django.contrib import admin

from apps.accounts.models import User, UserProfile


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    """Admin for users. Role and status changes go through the API so they are audited."""

    list_display = ["id", "email", "name", "role", "status", "created_at"]
    list_filter = ["role", "status", "created_at"]
    search_fields = ["email", "name", "external_auth_id"]
    readonly_fields = [
        "email",
        "external_auth_id",
        "role",
        "status",
        "last_login",
        "created_at",
        "updated_at",
    ]
    exclude = ["password", "groups", "user_permissions"]


@admin.register(UserProfile)
class UserProfileAdmin(admin.ModelAdmin):
    """Admin for member profiles."""

    list_display = ["id", "full_name", "village_name", "status", "approved_at", "created_at"]
    list_filter = ["status", "created_at"]
    search_fields = ["first_name", "last_name", "village_name", "user__email"]
    readonly_fields = ["status", "approved_by", "approved_at", "created_at", "updated_at"]
    raw_id_fields = ["user"]

    def full_name(self, obj: UserProfile) -> str:
        return f"{obj.first_name} {obj.last_name}"

    full_name.short_description = "Name"  # type: ignore[attr-defined]
