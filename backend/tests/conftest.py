"""
Shared pytest fixtures for all tests.

Factories
---------
Import factories directly from their modules:

    from tests.accounts.factories import UserFactory, UserProfileFactory
    from tests.finances.factories import FinanceRecordFactory
    from tests.content.factories import ContentSectionFactory, ContentPostFactory

Principals
----------
Core services take an explicit Principal. Use ``principal_for`` to build one
from a user, or the role fixtures below:

    def test_admin_action(admin_principal):
        create_record(admin_principal, {...})
"""

from typing import Any, cast

import pytest
from django.test import Client, RequestFactory
from django.test.client import WSGIRequest  # type: ignore[attr-defined]

from apps.core.auth import AuthContext, Principal
from apps.core.logging import clear_contextvars
from apps.core.permissions import Role
from apps.core.types import AuthenticatedHttpRequest


def principal_for(user: Any) -> Principal:
    """Build the principal the middleware would resolve for a user."""
    return Principal(user_id=user.id, role=Role(user.role), email=user.email)


def make_request_with_auth(
    request: "WSGIRequest", principal: Principal | None
) -> AuthenticatedHttpRequest:
    """
    Attach an AuthContext to a request, as PrincipalMiddleware does.

    Example:
        request = request_factory.get("/api/v1/finances/records")
        request = make_request_with_auth(request, principal_for(user))
    """
    request.auth_context = AuthContext(principal=principal)  # type: ignore[attr-defined]
    return cast(AuthenticatedHttpRequest, request)


@pytest.fixture(autouse=True)
def _clean_log_context():
    """Keep structlog contextvars from leaking between tests."""
    clear_contextvars()
    yield
    clear_contextvars()


@pytest.fixture
def request_factory() -> RequestFactory:
    """Django request factory for calling endpoint functions directly."""
    return RequestFactory()


@pytest.fixture
def api_client() -> Client:
    """
    Django test client for full HTTP request/response cycle tests.

    Example:
        def test_api_returns_200(api_client):
            response = api_client.get("/api/v1/health")
            assert response.status_code == 200
    """
    return Client()


@pytest.fixture
def admin_user(db):
    from tests.accounts.factories import UserFactory

    return UserFactory.create(role=Role.ADMIN)


@pytest.fixture
def super_user(db):
    from tests.accounts.factories import UserFactory

    return UserFactory.create(role=Role.SUPER_USER)


@pytest.fixture
def member_user(db):
    from tests.accounts.factories import UserFactory

    return UserFactory.create(role=Role.MEMBER)


@pytest.fixture
def visitor_user(db):
    from tests.accounts.factories import UserFactory

    return UserFactory.create(role=Role.VISITOR)


@pytest.fixture
def admin_principal(admin_user) -> Principal:
    return principal_for(admin_user)


@pytest.fixture
def super_principal(super_user) -> Principal:
    return principal_for(super_user)


@pytest.fixture
def member_principal(member_user) -> Principal:
    return principal_for(member_user)


@pytest.fixture
def visitor_principal(visitor_user) -> Principal:
    return principal_for(visitor_user)


@pytest.fixture
def bearer_client(api_client):
    """
    Test client whose bearer token resolves to the given user.

    Patches the auth provider so PrincipalMiddleware resolves the principal
    without calling Stytch.

    Example:
        def test_endpoint(bearer_client, admin_user):
            client = bearer_client(admin_user)
            response = client.get("/api/v1/audit/entries")
    """
    from unittest.mock import patch

    patchers = []

    def _make(user: Any) -> Client:
        patcher = patch(
            "apps.accounts.auth_provider.get_current_principal",
            return_value=principal_for(user) if user is not None else None,
        )
        patcher.start()
        patchers.append(patcher)
        api_client.defaults["HTTP_AUTHORIZATION"] = "Bearer test-session-jwt"
        return api_client

    yield _make

    for patcher in patchers:
        patcher.stop()
