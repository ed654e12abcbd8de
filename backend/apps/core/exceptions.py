"""
Core exceptions - the error taxonomy shared by every engine.

Each error carries a stable ``code`` so the API layer and tests can assert on
it without parsing messages.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from apps.core.permissions import DenyReason


class LedgerError(Exception):
    """Base exception for core errors."""

    code = "error"


class ValidationError(LedgerError):
    """Malformed or out-of-range input. Never retried."""

    code = "validation_error"

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class AuthorizationError(LedgerError):
    """Role or ownership check failed."""

    code = "authorization_error"

    def __init__(self, reason: "DenyReason", message: str | None = None):
        super().__init__(message or f"Access denied: {reason}")
        self.reason = reason


class NotAuthenticatedError(LedgerError):
    """No principal could be resolved for the request."""

    code = "not_authenticated"


class IllegalTransition(LedgerError):
    """Requested state change is not in the transition table."""

    code = "illegal_transition"

    def __init__(self, entity: str, from_status: str, to_status: str):
        super().__init__(f"Cannot move {entity} from '{from_status}' to '{to_status}'")
        self.entity = entity
        self.from_status = from_status
        self.to_status = to_status


class InvariantViolation(LedgerError):
    """Attempted mutation of an immutable field. Indicates a programming error."""

    code = "invariant_violation"


class NotFoundError(LedgerError):
    """Referenced entity does not exist."""

    code = "not_found"


class StorageError(LedgerError):
    """Underlying store unavailable or rejected the write."""

    code = "storage_error"
