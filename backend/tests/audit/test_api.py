"""
HTTP tests for the audit endpoints.
"""

import pytest
from django.db import transaction

from apps.audit.models import AuditAction, ResourceType
from apps.audit.services import record
from tests.conftest import principal_for

BASE = "/api/v1/audit"


@pytest.mark.django_db
class TestAuditEndpoints:
    def test_member_forbidden(self, bearer_client, member_user) -> None:
        client = bearer_client(member_user)

        response = client.get(f"{BASE}/entries")

        assert response.status_code == 403
        assert response.json()["reason"] == "not_authorized"

    def test_admin_lists_entries(self, bearer_client, admin_user) -> None:
        with transaction.atomic():
            record(principal_for(admin_user), AuditAction.ROLE_UPDATED, ResourceType.USER, 7)
        client = bearer_client(admin_user)

        response = client.get(f"{BASE}/entries", {"resource_type": "user"})

        assert response.status_code == 200
        assert response.json()["count"] == 1
        entry = response.json()["entries"][0]
        assert entry["action_type"] == "role_updated"
        assert entry["actor_email"] == admin_user.email

    def test_resource_history(self, bearer_client, super_user) -> None:
        with transaction.atomic():
            record(None, AuditAction.CONTENT_PUBLISHED, ResourceType.CONTENT_POST, 3)
        client = bearer_client(super_user)

        response = client.get(f"{BASE}/resources/content_post/3")

        assert response.status_code == 200
        assert response.json()["entries"][0]["actor_id"] is None
