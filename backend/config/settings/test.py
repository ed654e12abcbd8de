"""
Test settings.

SQLite in memory, fixed credentials, console logging at WARNING.
"""

from .base import *  # noqa: F403

from apps.core.logging import configure_logging

DEBUG = False
ALLOWED_HOSTS = ["testserver", "localhost"]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

STYTCH_PROJECT_ID = "project-test-00000000-0000-0000-0000-000000000000"
STYTCH_SECRET = "secret-test-placeholder"
STYTCH_ORGANIZATION_ID = "organization-test-00000000-0000-0000-0000-000000000000"

RECEIPT_PREFIX = "REC"

configure_logging(json_format=False, log_level="WARNING")
