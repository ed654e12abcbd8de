"""
Tests for the ledger engine: record CRUD, payment workflow, receipts, aggregates.
"""

import re
from datetime import date
from decimal import Decimal
from unittest.mock import patch

import pytest
from django.db import DatabaseError, IntegrityError, transaction

from apps.audit.models import AuditAction, AuditLogEntry, ResourceType
from apps.audit.services import entries_for
from apps.core.exceptions import (
    AuthorizationError,
    IllegalTransition,
    InvariantViolation,
    NotFoundError,
    StorageError,
    ValidationError,
)
from apps.core.permissions import DenyReason
from apps.finances.models import FinanceRecord, PaymentStatus, TransactionType
from apps.finances.services import (
    RecordFilters,
    compute_member_balance,
    compute_overview,
    create_record,
    delete_record,
    get_outstanding_dues,
    get_overview,
    get_record,
    list_records,
    monthly_summary,
    transition_payment_status,
    update_record,
)
from tests.accounts.factories import UserFactory
from tests.finances.factories import FinanceRecordFactory

RECEIPT_RE = re.compile(r"^REC-\d{8}-[0-9A-F]{8}$")


@pytest.mark.django_db
class TestDuesLifecycle:
    """Dues from creation to payment, as the treasurer sees it."""

    def test_paying_dues_moves_outstanding_to_collected(self, admin_principal) -> None:
        member = UserFactory.create()

        rec = create_record(
            admin_principal,
            {"user_id": member.id, "amount": "5000", "transaction_type": "dues"},
        )
        assert rec.payment_status == PaymentStatus.PENDING
        assert rec.receipt_number is None
        assert compute_overview().total_outstanding_dues == Decimal("5000.00")

        paid = transition_payment_status(admin_principal, rec.id, "paid")

        assert paid.payment_status == PaymentStatus.PAID
        assert RECEIPT_RE.match(paid.receipt_number)
        overview = compute_overview()
        assert overview.total_outstanding_dues == Decimal("0.00")
        assert overview.total_dues_collected == Decimal("5000.00")

        actions = [e.action_type for e in entries_for(ResourceType.FINANCE, rec.id)]
        assert actions == [AuditAction.FINANCE_RECORD_CREATED, AuditAction.PAYMENT_STATUS_UPDATED]
        last = entries_for(ResourceType.FINANCE, rec.id)[-1]
        assert last.actor_id == admin_principal.user_id
        assert last.details["before"] == {"payment_status": "pending", "receipt_number": None}
        assert last.details["after"]["payment_status"] == "paid"


@pytest.mark.django_db
class TestCreateRecord:
    def test_creates_pending_record(self, admin_principal, member_user) -> None:
        rec = create_record(
            admin_principal,
            {
                "user_id": member_user.id,
                "amount": "25.50",
                "transaction_type": "contribution",
                "description": "Harvest festival",
            },
        )

        rec.refresh_from_db()
        assert rec.amount == Decimal("25.50")
        assert rec.transaction_date is not None
        entry = AuditLogEntry.objects.get(resource_id=str(rec.id))
        assert entry.details["after"]["amount"] == "25.50"

    def test_created_as_paid_gets_receipt(self, admin_principal, member_user) -> None:
        rec = create_record(
            admin_principal,
            {
                "user_id": member_user.id,
                "amount": 10,
                "transaction_type": "donation",
                "payment_status": "paid",
            },
        )

        assert RECEIPT_RE.match(rec.receipt_number)

    def test_supplied_receipt_number_rejected(self, admin_principal, member_user) -> None:
        with pytest.raises(InvariantViolation):
            create_record(
                admin_principal,
                {
                    "user_id": member_user.id,
                    "amount": 10,
                    "transaction_type": "dues",
                    "receipt_number": "REC-20240101-DEADBEEF",
                },
            )

        assert FinanceRecord.objects.count() == 0

    @pytest.mark.parametrize("amount", ["0", "-5", "NaN", "Infinity", "1.005", "abc", None])
    def test_invalid_amounts_rejected(self, admin_principal, member_user, amount) -> None:
        with pytest.raises(ValidationError) as exc_info:
            create_record(
                admin_principal,
                {"user_id": member_user.id, "amount": amount, "transaction_type": "dues"},
            )

        assert exc_info.value.field == "amount"
        assert FinanceRecord.objects.count() == 0

    def test_unknown_user_rejected(self, admin_principal) -> None:
        with pytest.raises(ValidationError) as exc_info:
            create_record(admin_principal, {"user_id": 99999, "amount": 5, "transaction_type": "dues"})

        assert exc_info.value.field == "user_id"

    def test_unknown_type_rejected(self, admin_principal, member_user) -> None:
        with pytest.raises(ValidationError):
            create_record(
                admin_principal,
                {"user_id": member_user.id, "amount": 5, "transaction_type": "tithe"},
            )

    def test_member_cannot_create(self, member_principal, member_user) -> None:
        with pytest.raises(AuthorizationError) as exc_info:
            create_record(
                member_principal,
                {"user_id": member_user.id, "amount": 5, "transaction_type": "dues"},
            )

        assert exc_info.value.reason == DenyReason.NOT_AUTHORIZED
        assert FinanceRecord.objects.count() == 0
        assert AuditLogEntry.objects.count() == 0

    def test_audit_failure_rolls_back_record(self, admin_principal, member_user) -> None:
        with (
            patch(
                "apps.audit.services.AuditLogEntry.objects.create",
                side_effect=DatabaseError("audit store down"),
            ),
            pytest.raises(StorageError),
        ):
            create_record(
                admin_principal,
                {"user_id": member_user.id, "amount": 5, "transaction_type": "dues"},
            )

        assert FinanceRecord.objects.count() == 0


@pytest.mark.django_db
class TestUpdateAndDelete:
    def test_update_audits_changed_fields_only(self, admin_principal) -> None:
        rec = FinanceRecordFactory.create(amount=Decimal("40.00"), description="Q1 dues")

        update_record(admin_principal, rec.id, {"amount": "45.00", "description": "Q1 dues"})

        rec.refresh_from_db()
        assert rec.amount == Decimal("45.00")
        entry = AuditLogEntry.objects.get(action_type=AuditAction.FINANCE_RECORD_UPDATED)
        assert entry.details == {"before": {"amount": "40.00"}, "after": {"amount": "45.00"}}

    def test_update_without_changes_writes_nothing(self, admin_principal) -> None:
        rec = FinanceRecordFactory.create(description="same")

        update_record(admin_principal, rec.id, {"description": "same"})

        assert not AuditLogEntry.objects.filter(
            action_type=AuditAction.FINANCE_RECORD_UPDATED
        ).exists()

    @pytest.mark.parametrize("field", ["user_id", "payment_status", "receipt_number"])
    def test_update_refuses_immutable_fields(self, admin_principal, field) -> None:
        rec = FinanceRecordFactory.create()

        with pytest.raises(InvariantViolation):
            update_record(admin_principal, rec.id, {field: "anything"})

        rec.refresh_from_db()
        assert rec.payment_status == PaymentStatus.PENDING
        assert rec.receipt_number is None

    def test_update_unknown_field(self, admin_principal) -> None:
        rec = FinanceRecordFactory.create()

        with pytest.raises(ValidationError):
            update_record(admin_principal, rec.id, {"colour": "red"})

    def test_update_missing_record(self, admin_principal) -> None:
        with pytest.raises(NotFoundError):
            update_record(admin_principal, 424242, {"description": "x"})

    def test_delete_keeps_pre_image(self, admin_principal) -> None:
        rec = FinanceRecordFactory.create(amount=Decimal("12.00"))
        record_id = rec.id

        delete_record(admin_principal, record_id)

        assert not FinanceRecord.objects.filter(pk=record_id).exists()
        entry = AuditLogEntry.objects.get(action_type=AuditAction.FINANCE_RECORD_DELETED)
        assert entry.details["before"]["amount"] == "12.00"
        assert entry.resource_id == str(record_id)


LEGAL_PAYMENT_MOVES = {
    ("pending", "paid"),
    ("pending", "overdue"),
    ("pending", "cancelled"),
    ("paid", "pending"),
    ("overdue", "paid"),
}
ALL_PAYMENT_MOVES = [(a, b) for a in PaymentStatus.values for b in PaymentStatus.values]


@pytest.mark.django_db
class TestPaymentTransitionGrid:
    """Every (from, to) pair of payment statuses."""

    @pytest.mark.parametrize(
        ("from_status", "to_status"),
        [move for move in ALL_PAYMENT_MOVES if move not in LEGAL_PAYMENT_MOVES],
    )
    def test_illegal_pair_rejected_without_writes(self, admin_principal, from_status, to_status) -> None:
        rec = FinanceRecordFactory.create(payment_status=from_status)
        row_before = FinanceRecord.objects.filter(pk=rec.id).values().get()

        with pytest.raises(IllegalTransition) as exc_info:
            transition_payment_status(admin_principal, rec.id, to_status)

        assert exc_info.value.from_status == from_status
        assert exc_info.value.to_status == to_status
        assert FinanceRecord.objects.filter(pk=rec.id).values().get() == row_before
        assert AuditLogEntry.objects.count() == 0

    @pytest.mark.parametrize(("from_status", "to_status"), sorted(LEGAL_PAYMENT_MOVES))
    def test_legal_pair_applied_and_audited(self, admin_principal, from_status, to_status) -> None:
        rec = FinanceRecordFactory.create(payment_status=from_status)

        rec = transition_payment_status(admin_principal, rec.id, to_status)

        rec.refresh_from_db()
        assert rec.payment_status == to_status
        entry = AuditLogEntry.objects.get(action_type=AuditAction.PAYMENT_STATUS_UPDATED)
        assert entry.details["before"]["payment_status"] == from_status
        assert entry.details["after"]["payment_status"] == to_status
        if to_status == "paid":
            assert rec.receipt_number


@pytest.mark.django_db
class TestPaymentTransitions:
    def test_illegal_transition_leaves_record_unchanged(self, admin_principal) -> None:
        rec = FinanceRecordFactory.create(payment_status=PaymentStatus.CANCELLED)

        with pytest.raises(IllegalTransition) as exc_info:
            transition_payment_status(admin_principal, rec.id, "paid")

        assert exc_info.value.from_status == "cancelled"
        rec.refresh_from_db()
        assert rec.payment_status == PaymentStatus.CANCELLED
        assert rec.receipt_number is None
        assert AuditLogEntry.objects.count() == 0

    def test_overdue_then_paid(self, admin_principal) -> None:
        rec = FinanceRecordFactory.create()

        transition_payment_status(admin_principal, rec.id, "overdue")
        rec = transition_payment_status(admin_principal, rec.id, "paid")

        assert rec.payment_status == PaymentStatus.PAID
        assert rec.receipt_number

    def test_receipt_survives_reopen_and_repay(self, admin_principal) -> None:
        rec = FinanceRecordFactory.create()
        receipt = transition_payment_status(admin_principal, rec.id, "paid").receipt_number

        transition_payment_status(admin_principal, rec.id, "pending")
        rec = transition_payment_status(admin_principal, rec.id, "paid")

        assert rec.receipt_number == receipt

    def test_unknown_status(self, admin_principal) -> None:
        rec = FinanceRecordFactory.create()

        with pytest.raises(ValidationError):
            transition_payment_status(admin_principal, rec.id, "refunded")

    def test_super_user_may_transition(self, super_principal) -> None:
        rec = FinanceRecordFactory.create()

        rec = transition_payment_status(super_principal, rec.id, "paid")

        assert rec.payment_status == PaymentStatus.PAID

    def test_member_denied(self, member_principal, member_user) -> None:
        rec = FinanceRecordFactory.create(user=member_user)

        with pytest.raises(AuthorizationError):
            transition_payment_status(member_principal, rec.id, "paid")


@pytest.mark.django_db
class TestLedgerConstraints:
    def test_receipt_numbers_are_unique(self) -> None:
        FinanceRecordFactory.create(payment_status=PaymentStatus.PAID, receipt_number="REC-20240101-AAAAAAAA")

        with pytest.raises(IntegrityError), transaction.atomic():
            FinanceRecordFactory.create(
                payment_status=PaymentStatus.PAID, receipt_number="REC-20240101-AAAAAAAA"
            )

    def test_paid_requires_receipt(self) -> None:
        user = UserFactory.create()

        with pytest.raises(IntegrityError), transaction.atomic():
            FinanceRecord.objects.create(
                user=user,
                amount=Decimal("5.00"),
                transaction_type=TransactionType.DUES,
                payment_status=PaymentStatus.PAID,
                receipt_number=None,
            )


@pytest.mark.django_db
class TestAggregates:
    def test_overview_totals(self, admin_principal) -> None:
        member = UserFactory.create()
        FinanceRecordFactory.create(user=member, transaction_type="contribution", amount=Decimal("100.00"))
        FinanceRecordFactory.create(user=member, transaction_type="donation", amount=Decimal("50.00"))
        FinanceRecordFactory.create(
            user=member, transaction_type="dues", amount=Decimal("30.00"), payment_status="paid"
        )
        FinanceRecordFactory.create(user=member, transaction_type="fine", amount=Decimal("20.00"))
        FinanceRecordFactory.create(user=member, transaction_type="adjustment", amount=Decimal("7.00"))

        overview = get_overview(admin_principal)

        assert overview.total_contributions == Decimal("150.00")
        assert overview.total_donations == Decimal("50.00")
        assert overview.total_dues_collected == Decimal("30.00")
        assert overview.total_outstanding_dues == Decimal("20.00")
        assert overview.total_fines == Decimal("20.00")
        assert overview.total_expenses == Decimal("7.00")

    def test_empty_ledger_is_zero(self, admin_principal) -> None:
        overview = get_overview(admin_principal)

        assert overview.total_contributions == Decimal("0.00")
        assert overview.total_outstanding_dues == Decimal("0.00")

    def test_member_overview_scoped_to_self(self, member_principal, member_user) -> None:
        FinanceRecordFactory.create(user=member_user, transaction_type="contribution")
        FinanceRecordFactory.create(transaction_type="contribution")

        overview = get_overview(member_principal, member_principal.user_id)

        assert overview.total_contributions == Decimal("100.00")

    def test_member_global_overview_denied(self, member_principal) -> None:
        with pytest.raises(AuthorizationError) as exc_info:
            get_overview(member_principal)

        assert exc_info.value.reason == DenyReason.NOT_AUTHORIZED

    def test_member_cannot_view_other_overview(self, member_principal) -> None:
        other = UserFactory.create()

        with pytest.raises(AuthorizationError) as exc_info:
            get_overview(member_principal, other.id)

        assert exc_info.value.reason == DenyReason.NOT_OWNER

    def test_member_balance(self, member_principal, member_user) -> None:
        uid = member_principal.user_id
        FinanceRecordFactory.create(user=member_user, transaction_type="contribution", amount=Decimal("80.00"))
        FinanceRecordFactory.create(user=member_user, transaction_type="dues", amount=Decimal("50.00"))
        FinanceRecordFactory.create(
            user=member_user, transaction_type="dues", amount=Decimal("20.00"), payment_status="paid"
        )

        balance = compute_member_balance(member_principal, uid)

        assert balance.contributions == Decimal("80.00")
        assert balance.dues == Decimal("70.00")
        assert balance.paid_dues == Decimal("20.00")
        assert balance.balance == Decimal("10.00")

    def test_outstanding_dues(self, admin_principal) -> None:
        member = UserFactory.create()
        pending = FinanceRecordFactory.create(user=member, transaction_type="dues")
        overdue = FinanceRecordFactory.create(user=member, transaction_type="fine", payment_status="overdue")
        FinanceRecordFactory.create(user=member, transaction_type="dues", payment_status="paid")
        FinanceRecordFactory.create(user=member, transaction_type="contribution")

        ids = {r.id for r in get_outstanding_dues(admin_principal, member.id)}

        assert ids == {pending.id, overdue.id}

    def test_monthly_summary_zero_fills(self, admin_principal) -> None:
        FinanceRecordFactory.create(
            transaction_type="dues", amount=Decimal("10.00"), transaction_date=date(2024, 3, 5)
        )
        FinanceRecordFactory.create(
            transaction_type="dues",
            amount=Decimal("15.00"),
            payment_status="paid",
            transaction_date=date(2024, 3, 31),
        )
        FinanceRecordFactory.create(transaction_type="dues", transaction_date=date(2024, 4, 1))

        summary = monthly_summary(admin_principal, 2024, 3)

        assert summary["dues"] == {
            "count": 2,
            "total": Decimal("25.00"),
            "paid": Decimal("15.00"),
            "pending": Decimal("10.00"),
        }
        assert summary["donation"]["count"] == 0
        assert set(summary) == set(TransactionType.values)

    def test_monthly_summary_invalid_month(self, admin_principal) -> None:
        with pytest.raises(ValidationError):
            monthly_summary(admin_principal, 2024, 13)

    @pytest.mark.parametrize("year", [0, -1, 10000])
    def test_monthly_summary_invalid_year(self, admin_principal, year) -> None:
        with pytest.raises(ValidationError) as exc_info:
            monthly_summary(admin_principal, year, 3)

        assert exc_info.value.field == "year"


@pytest.mark.django_db
class TestListing:
    def test_member_sees_only_own_records(self, member_principal, member_user) -> None:
        own = FinanceRecordFactory.create(user=member_user)
        FinanceRecordFactory.create()

        records = list_records(member_principal)

        assert [r.id for r in records] == [own.id]

    def test_member_asking_for_other_user_denied(self, member_principal) -> None:
        other = UserFactory.create()

        with pytest.raises(AuthorizationError) as exc_info:
            list_records(member_principal, RecordFilters(user_id=other.id))

        assert exc_info.value.reason == DenyReason.NOT_OWNER

    def test_visitor_denied(self, visitor_principal) -> None:
        with pytest.raises(AuthorizationError):
            list_records(visitor_principal)

    def test_filters_and_sorting(self, admin_principal) -> None:
        small = FinanceRecordFactory.create(amount=Decimal("5.00"), description="xqzhall rental")
        large = FinanceRecordFactory.create(amount=Decimal("500.00"), description="xqzhall roof")
        FinanceRecordFactory.create(amount=Decimal("50.00"), description="picnic")

        records = list_records(
            admin_principal, RecordFilters(search="xqzhall", sort_field="amount", sort_order="asc")
        )

        assert [r.id for r in records] == [small.id, large.id]

    def test_invalid_sort_field(self, admin_principal) -> None:
        with pytest.raises(ValidationError):
            list_records(admin_principal, RecordFilters(sort_field="user__password"))

    def test_get_record_not_owner(self, member_principal) -> None:
        rec = FinanceRecordFactory.create()

        with pytest.raises(AuthorizationError) as exc_info:
            get_record(member_principal, rec.id)

        assert exc_info.value.reason == DenyReason.NOT_OWNER

    def test_get_record_missing(self, admin_principal) -> None:
        with pytest.raises(NotFoundError):
            get_record(admin_principal, 123456)
