"""
HTTP tests for the finance endpoints: status codes and error bodies.
"""

from decimal import Decimal

import pytest

from apps.audit.models import AuditLogEntry
from apps.finances.models import FinanceRecord, PaymentStatus
from tests.finances.factories import FinanceRecordFactory

BASE = "/api/v1/finances"


@pytest.mark.django_db
class TestFinanceRecordEndpoints:
    def test_requires_authentication(self, api_client) -> None:
        response = api_client.get(f"{BASE}/records")

        assert response.status_code == 401

    def test_create_and_pay(self, bearer_client, admin_user, member_user) -> None:
        client = bearer_client(admin_user)

        response = client.post(
            f"{BASE}/records",
            data={"user_id": member_user.id, "amount": "5000.00", "transaction_type": "dues"},
            content_type="application/json",
        )
        assert response.status_code == 201
        record_id = response.json()["id"]
        assert Decimal(str(response.json()["amount"])) == Decimal("5000.00")
        assert response.json()["receipt_number"] is None

        response = client.post(
            f"{BASE}/records/{record_id}/transition",
            data={"status": "paid"},
            content_type="application/json",
        )
        assert response.status_code == 200
        assert response.json()["payment_status"] == "paid"
        assert response.json()["receipt_number"].startswith("REC-")

    def test_member_create_forbidden_with_reason(self, bearer_client, member_user) -> None:
        client = bearer_client(member_user)

        response = client.post(
            f"{BASE}/records",
            data={"user_id": member_user.id, "amount": "10.00", "transaction_type": "dues"},
            content_type="application/json",
        )

        assert response.status_code == 403
        assert response.json()["code"] == "authorization_error"
        assert response.json()["reason"] == "not_authorized"
        assert FinanceRecord.objects.count() == 0

    def test_illegal_transition_is_conflict(self, bearer_client, admin_user) -> None:
        rec = FinanceRecordFactory.create(payment_status=PaymentStatus.CANCELLED)
        client = bearer_client(admin_user)

        response = client.post(
            f"{BASE}/records/{rec.id}/transition",
            data={"status": "paid"},
            content_type="application/json",
        )

        assert response.status_code == 409
        assert response.json()["code"] == "illegal_transition"
        assert AuditLogEntry.objects.count() == 0

    def test_missing_record_is_not_found(self, bearer_client, admin_user) -> None:
        client = bearer_client(admin_user)

        response = client.get(f"{BASE}/records/987654")

        assert response.status_code == 404
        assert response.json()["code"] == "not_found"

    def test_member_lists_own_records(self, bearer_client, member_user) -> None:
        own = FinanceRecordFactory.create(user=member_user)
        FinanceRecordFactory.create()
        client = bearer_client(member_user)

        response = client.get(f"{BASE}/records")

        assert response.status_code == 200
        assert response.json()["count"] == 1
        assert response.json()["records"][0]["id"] == own.id

    def test_delete(self, bearer_client, admin_user) -> None:
        rec = FinanceRecordFactory.create()
        client = bearer_client(admin_user)

        response = client.delete(f"{BASE}/records/{rec.id}")

        assert response.status_code == 204
        assert not FinanceRecord.objects.filter(pk=rec.id).exists()


@pytest.mark.django_db
class TestOverviewEndpoints:
    def test_global_overview_forbidden_for_member(self, bearer_client, member_user) -> None:
        client = bearer_client(member_user)

        response = client.get(f"{BASE}/overview")

        assert response.status_code == 403
        assert response.json()["reason"] == "not_authorized"

    def test_member_overview_of_other_is_not_owner(self, bearer_client, member_user, admin_user) -> None:
        client = bearer_client(member_user)

        response = client.get(f"{BASE}/overview", {"user_id": admin_user.id})

        assert response.status_code == 403
        assert response.json()["reason"] == "not_owner"

    def test_own_overview(self, bearer_client, member_user) -> None:
        FinanceRecordFactory.create(user=member_user, transaction_type="dues")
        client = bearer_client(member_user)

        response = client.get(f"{BASE}/overview/me")

        assert response.status_code == 200
        assert Decimal(str(response.json()["total_outstanding_dues"])) == Decimal("100.00")

    def test_monthly_summary_bad_month(self, bearer_client, admin_user) -> None:
        client = bearer_client(admin_user)

        response = client.get(f"{BASE}/summary/2024/13")

        assert response.status_code == 400
        assert response.json()["field"] == "month"

    def test_monthly_summary_year_out_of_range(self, bearer_client, admin_user) -> None:
        client = bearer_client(admin_user)

        response = client.get(f"{BASE}/summary/0/3")

        assert response.status_code == 400
        assert response.json()["field"] == "year"
