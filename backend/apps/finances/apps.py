"""Finances app configuration."""

from django.apps import AppConfig


class FinancesConfig(AppConfig):
    """Configuration for the community ledger."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.finances"
    verbose_name = "Finances"
