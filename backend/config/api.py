"""
Django Ninja API configuration.
"""

from django.http import HttpRequest, HttpResponse
from ninja import NinjaAPI

from apps.accounts.api import router as accounts_router
from apps.audit.api import router as audit_router
from apps.content.api import router as content_router
from apps.core.exceptions import (
    AuthorizationError,
    IllegalTransition,
    InvariantViolation,
    LedgerError,
    NotAuthenticatedError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from apps.core.logging import get_logger
from apps.finances.api import router as finances_router

logger = get_logger(__name__)

api = NinjaAPI(
    title="Community Ledger API",
    version="1.0.0",
    description="Community organization backend: ledger, member profiles, site content and audit trail.",
    openapi_extra={
        "info": {
            "contact": {"name": "API Support"},
        },
        "tags": [
            {"name": "finances", "description": "Ledger records, payment workflow and overviews"},
            {"name": "accounts", "description": "Sign-in, users, roles and member profiles"},
            {"name": "content", "description": "Page sections and posts with a publish workflow"},
            {"name": "audit", "description": "Append-only audit trail (admin surface)"},
            {"name": "health", "description": "Service health and readiness checks"},
        ],
        "components": {
            "securitySchemes": {
                "bearerAuth": {
                    "type": "http",
                    "scheme": "bearer",
                    "bearerFormat": "JWT",
                    "description": "Stytch session JWT obtained from /accounts/otp/verify. Include as: Authorization: Bearer <session_jwt>",
                }
            }
        },
    },
)

# Register routers
api.add_router("/finances", finances_router)
api.add_router("/accounts", accounts_router)
api.add_router("/content", content_router)
api.add_router("/audit", audit_router)


# --- Error mapping ---

STATUS_CODES: dict[type[LedgerError], int] = {
    ValidationError: 400,
    NotAuthenticatedError: 401,
    AuthorizationError: 403,
    NotFoundError: 404,
    IllegalTransition: 409,
    InvariantViolation: 422,
    StorageError: 503,
}


def _error_response(request: HttpRequest, exc: LedgerError, status: int) -> HttpResponse:
    body: dict = {"detail": str(exc), "code": exc.code}
    if isinstance(exc, AuthorizationError):
        body["reason"] = str(exc.reason)
    if isinstance(exc, ValidationError) and exc.field:
        body["field"] = exc.field
    return api.create_response(request, body, status=status)


def _register_handler(exc_class: type[LedgerError], status: int) -> None:
    @api.exception_handler(exc_class)
    def handler(request: HttpRequest, exc: LedgerError) -> HttpResponse:
        if status >= 500:
            logger.error("request_failed", code=exc.code, error=str(exc))
        return _error_response(request, exc, status)


for _exc_class, _status in STATUS_CODES.items():
    _register_handler(_exc_class, _status)


@api.get("/health", tags=["health"], operation_id="healthCheck", summary="Health check")
def health_check(request: HttpRequest) -> dict:
    """Health check endpoint for load balancer."""
    return {"status": "ok"}
