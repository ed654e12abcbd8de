"""
Custom type definitions for the application.

These types help mypy understand custom attributes added by middleware.
"""

from django.http import HttpRequest

from apps.core.auth import AuthContext


class AuthenticatedHttpRequest(HttpRequest):
    """
    HttpRequest with the authentication context added by PrincipalMiddleware.

    Use this type for endpoints that require authentication.
    """

    auth_context: AuthContext
