"""
Local development settings.

Extends base settings with development-friendly defaults.
"""

from .base import *  # noqa: F403
from .base import settings

from apps.core.logging import configure_logging

DEBUG = True
ALLOWED_HOSTS = ["localhost", "127.0.0.1"]

# Human-readable console logs in development
configure_logging(json_format=False, log_level=settings.LOG_LEVEL)
