"""
Core middleware - request correlation and principal resolution.
"""

from collections.abc import Callable
from uuid import uuid4

from django.http import HttpRequest, HttpResponse

from apps.core.auth import AuthContext
from apps.core.logging import bind_contextvars, clear_contextvars, get_logger

logger = get_logger(__name__)

# Paths that never require a session
PUBLIC_PATH_PREFIXES = (
    "/admin/",
    "/api/v1/health",
    "/api/v1/docs",
    "/api/v1/openapi.json",
)

CORRELATION_HEADER = "X-Correlation-ID"


def _client_ip(request: HttpRequest) -> str | None:
    """First hop of X-Forwarded-For, else REMOTE_ADDR."""
    forwarded: str | None = request.META.get("HTTP_X_FORWARDED_FOR")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.META.get("REMOTE_ADDR")


class PrincipalMiddleware:
    """
    Resolves the calling principal once per request.

    Binds correlation/request context for structured logs and audit entries,
    validates the bearer session with the auth provider, and attaches an
    AuthContext as ``request.auth_context``. Endpoints read the principal from
    there and pass it explicitly into core services.
    """

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]) -> None:
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid4())

        clear_contextvars()
        bind_contextvars(
            correlation_id=correlation_id,
            **{
                "request.ip_address": _client_ip(request),
                "request.user_agent": request.META.get("HTTP_USER_AGENT", ""),
                "http.method": request.method,
                "http.url_details.path": request.path,
            },
        )

        request.auth_context = AuthContext()  # type: ignore[attr-defined]

        if not self._is_public(request.path):
            token = self._bearer_token(request)
            if token:
                self._authenticate(request, token)

        try:
            response = self.get_response(request)
        finally:
            clear_contextvars()

        response[CORRELATION_HEADER] = correlation_id
        return response

    @staticmethod
    def _is_public(path: str) -> bool:
        return path.startswith(PUBLIC_PATH_PREFIXES)

    @staticmethod
    def _bearer_token(request: HttpRequest) -> str | None:
        header = request.META.get("HTTP_AUTHORIZATION", "")
        if not header.startswith("Bearer "):
            return None
        return header[len("Bearer ") :].strip() or None

    def _authenticate(self, request: HttpRequest, token: str) -> None:
        """Validate the session with the auth provider and resolve the principal."""
        from apps.accounts.auth_provider import get_current_principal

        principal = get_current_principal(token)
        if principal is None:
            request.auth_context = AuthContext(failed=True)  # type: ignore[attr-defined]
            return

        request.auth_context = AuthContext(principal=principal)  # type: ignore[attr-defined]
        bind_contextvars(**{"usr.id": principal.user_id, "usr.role": str(principal.role)})
