"""Core app configuration."""

from django.apps import AppConfig


class CoreConfig(AppConfig):
    """Shared primitives: guard, workflow tables, logging, transactions."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.core"
