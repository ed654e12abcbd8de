"""
Principal and authentication context for the request lifecycle.

The middleware resolves the caller once per request and attaches an
``AuthContext``. Endpoints hand the ``Principal`` explicitly to every core
service; services never read request state.
"""

from dataclasses import dataclass

from apps.core.exceptions import NotAuthenticatedError
from apps.core.permissions import STAFF_ROLES, Role


@dataclass(frozen=True)
class Principal:
    """
    Authenticated actor as seen by the core.

    Attributes:
        user_id: Stable internal User id
        role: Closed role enum
        email: Denormalized for logs and audit display
    """

    user_id: int
    role: Role
    email: str = ""

    @property
    def is_staff(self) -> bool:
        """Admin or super user."""
        return self.role in STAFF_ROLES


@dataclass
class AuthContext:
    """
    Authentication context attached to requests by PrincipalMiddleware.

    Attributes:
        principal: The resolved principal, or None if not authenticated
        failed: True if auth was attempted but failed (vs just not present)
    """

    principal: Principal | None = None
    failed: bool = False

    @property
    def is_authenticated(self) -> bool:
        return self.principal is not None

    def require_principal(self) -> Principal:
        """
        Get the principal or raise.

        Raises:
            NotAuthenticatedError: If the request carries no valid session
        """
        if self.principal is None:
            raise NotAuthenticatedError("Not authenticated")
        return self.principal
