"""
Admin configuration for content app.
"""

from django.contrib import admin

from apps.content.models import ContentPost, ContentSection

WORKFLOW_READONLY = [
    "status",
    "scheduled_for",
    "revision",
    "published_title",
    "published_content",
    "published_media_urls",
    "published_at",
    "created_by",
    "updated_by",
    "created_at",
    "updated_at",
]


@admin.register(ContentSection)
class ContentSectionAdmin(admin.ModelAdmin):
    """Admin for page sections. Publishing goes through the API."""

    list_display = ["page_name", "section_key", "status", "revision", "published_at", "updated_at"]
    list_filter = ["page_name", "status"]
    search_fields = ["page_name", "section_key", "title"]
    readonly_fields = WORKFLOW_READONLY


@admin.register(ContentPost)
class ContentPostAdmin(admin.ModelAdmin):
    """Admin for posts. Publishing goes through the API."""

    list_display = ["slug", "page", "category", "status", "revision", "published_at"]
    list_filter = ["page", "category", "status"]
    search_fields = ["slug", "title", "content"]
    readonly_fields = WORKFLOW_READONLY
