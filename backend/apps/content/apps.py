"""Content app configuration."""

from django.apps import AppConfig


class ContentConfig(AppConfig):
    """Configuration for page sections and posts."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.content"
    verbose_name = "Site Content"
