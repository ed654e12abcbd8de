"""
Receipt number generation.

Format: ``<PREFIX>-YYYYMMDD-XXXXXXXX`` where X is uppercase hex.
"""

import secrets
from datetime import date

from django.conf import settings
from django.utils import timezone

from apps.core.exceptions import StorageError
from apps.finances.models import FinanceRecord

MAX_ATTEMPTS = 5


def format_receipt_number(day: date, token: str, prefix: str | None = None) -> str:
    prefix = prefix or settings.RECEIPT_PREFIX
    return f"{prefix}-{day:%Y%m%d}-{token.upper()}"


def generate_receipt_number(day: date | None = None) -> str:
    """
    Return a receipt number not used by any existing record.

    The unique constraint on receipt_number still guards concurrent writers;
    this check only avoids the common collision.

    Raises:
        StorageError: If no free number was found after MAX_ATTEMPTS.
    """
    day = day or timezone.localdate()
    for _ in range(MAX_ATTEMPTS):
        candidate = format_receipt_number(day, secrets.token_hex(4))
        if not FinanceRecord.objects.filter(receipt_number=candidate).exists():
            return candidate
    raise StorageError("Could not allocate a unique receipt number")
