"""
Core security - authentication classes and principal helpers for the API.
"""

from django.http import HttpRequest
from ninja.security import HttpBearer

from apps.core.auth import AuthContext, Principal


class BearerAuth(HttpBearer):
    """
    Bearer token authentication for API endpoints.

    The session token is validated by PrincipalMiddleware, which attaches an
    AuthContext to the request. This class only checks that a principal was
    resolved and documents the scheme in OpenAPI.
    """

    def authenticate(self, request: HttpRequest, token: str) -> Principal | None:
        """Return the resolved principal, or None (triggers 401)."""
        if not token:
            return None
        context: AuthContext | None = getattr(request, "auth_context", None)
        if context is None:
            return None
        return context.principal


def get_principal(request: HttpRequest) -> Principal:
    """
    Get the acting principal for a request.

    Raises:
        NotAuthenticatedError: If the middleware resolved no principal.
    """
    context: AuthContext = getattr(request, "auth_context", None) or AuthContext()
    return context.require_principal()

