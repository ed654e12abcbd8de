"""
Finance services - the ledger engine.

Every mutation is guarded, row-locked where it reads before writing, and
audited inside the same ``atomic_mutation`` block. Aggregates are computed on
demand with a single SQL statement and returned as ``Decimal``.
"""

from calendar import monthrange
from dataclasses import dataclass
from datetime import MAXYEAR, MINYEAR, date
from decimal import Decimal, InvalidOperation
from typing import Any

from django.db.models import Count, DecimalField, Q, QuerySet, Sum, Value
from django.db.models.functions import Coalesce
from django.utils.dateparse import parse_date

from apps.accounts.models import User
from apps.audit.models import AuditAction, ResourceType
from apps.audit.services import changed_fields, record
from apps.core.auth import Principal
from apps.core.exceptions import InvariantViolation, NotFoundError, ValidationError
from apps.core.logging import get_logger
from apps.core.permissions import Action, ensure_allowed
from apps.core.transactions import atomic_mutation, retry_read
from apps.core.workflow import TransitionTable
from apps.finances.models import (
    CONTRIBUTION_LIKE,
    DUE_LIKE,
    FinanceRecord,
    PaymentStatus,
    TransactionType,
)
from apps.finances.receipts import generate_receipt_number

logger = get_logger(__name__)

ZERO = Decimal("0.00")
CENT = Decimal("0.01")
MAX_AMOUNT = Decimal("9999999999.99")

PAYMENT_TRANSITIONS = TransitionTable(
    "finance_record",
    {
        PaymentStatus.PENDING: {PaymentStatus.PAID, PaymentStatus.OVERDUE, PaymentStatus.CANCELLED},
        PaymentStatus.PAID: {PaymentStatus.PENDING},
        PaymentStatus.OVERDUE: {PaymentStatus.PAID},
    },
)

# Fields a staff member may change after creation
UPDATABLE_FIELDS = (
    "amount",
    "transaction_type",
    "description",
    "transaction_date",
    "due_date",
    "payment_method",
)
# Fields that only the engine (or nobody) may change
IMMUTABLE_FIELDS = ("user", "user_id", "payment_status", "receipt_number")

SORT_FIELDS = ("transaction_date", "amount", "created_at")


@dataclass(frozen=True)
class FinanceOverview:
    """Derived totals, never stored."""

    total_contributions: Decimal = ZERO
    total_dues_collected: Decimal = ZERO
    total_outstanding_dues: Decimal = ZERO
    total_donations: Decimal = ZERO
    total_fines: Decimal = ZERO
    total_expenses: Decimal = ZERO


@dataclass(frozen=True)
class MemberBalance:
    contributions: Decimal
    dues: Decimal
    paid_dues: Decimal
    balance: Decimal


@dataclass
class RecordFilters:
    """Filters and ordering for ledger listings."""

    user_id: int | None = None
    transaction_type: str | None = None
    payment_status: str | None = None
    date_from: date | None = None
    date_to: date | None = None
    search: str | None = None
    sort_field: str = "transaction_date"
    sort_order: str = "desc"


# --- Validation helpers ---


def _invariant(message: str) -> InvariantViolation:
    logger.error("invariant_violation", message=message)
    return InvariantViolation(message)


def _parse_amount(value: Any) -> Decimal:
    """
    Parse a strictly positive money amount with at most two decimal places.

    Floats are converted through ``str`` so 0.1 stays 0.1.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError("Amount is required", field="amount")
    try:
        amount = Decimal(str(value)) if not isinstance(value, Decimal) else value
    except InvalidOperation:
        raise ValidationError(f"Invalid amount: {value!r}", field="amount") from None

    if not amount.is_finite():
        raise ValidationError("Amount must be a finite number", field="amount")
    if amount <= 0:
        raise ValidationError("Amount must be greater than zero", field="amount")
    if amount > MAX_AMOUNT:
        raise ValidationError("Amount is too large", field="amount")
    if amount != amount.quantize(CENT):
        raise ValidationError("Amount cannot have more than two decimal places", field="amount")
    return amount.quantize(CENT)


def _parse_choice(value: Any, choices: type, name: str) -> str:
    if value not in choices.values:
        raise ValidationError(f"Invalid {name}: {value!r}", field=name)
    return str(value)


def _parse_date(value: Any, name: str, required: bool = False) -> date | None:
    if value is None or value == "":
        if required:
            raise ValidationError(f"{name} is required", field=name)
        return None
    if isinstance(value, date):
        return value
    try:
        parsed = parse_date(str(value))
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError(f"Invalid date for {name}: {value!r}", field=name)
    return parsed


def _record_snapshot(rec: FinanceRecord) -> dict[str, Any]:
    """JSON-friendly pre/post image of a record for audit details."""
    return {
        "user_id": rec.user_id,
        "amount": str(rec.amount),
        "transaction_type": rec.transaction_type,
        "payment_status": rec.payment_status,
        "transaction_date": rec.transaction_date.isoformat() if rec.transaction_date else None,
        "due_date": rec.due_date.isoformat() if rec.due_date else None,
        "receipt_number": rec.receipt_number,
        "payment_method": rec.payment_method,
        "description": rec.description,
    }


def _lock_record(record_id: int) -> FinanceRecord:
    try:
        return FinanceRecord.objects.select_for_update().get(pk=record_id)
    except FinanceRecord.DoesNotExist:
        raise NotFoundError(f"Finance record {record_id} not found") from None


# --- Mutations ---


def create_record(principal: Principal, data: dict[str, Any]) -> FinanceRecord:
    """
    Create a ledger record for a user.

    Args:
        principal: Acting staff member
        data: user_id, amount, transaction_type and optionally payment_status,
            transaction_date, due_date, payment_method, description

    Raises:
        AuthorizationError: Unless admin or super user.
        ValidationError: On malformed input or an unknown user.
        InvariantViolation: If a receipt number is supplied.
    """
    ensure_allowed(principal, Action.FINANCE_CREATE)

    if data.get("receipt_number"):
        raise _invariant("Receipt numbers are assigned by the ledger")

    user_id = data.get("user_id")
    if user_id is None:
        raise ValidationError("user_id is required", field="user_id")
    if not User.objects.filter(pk=user_id).exists():
        raise ValidationError(f"User {user_id} does not exist", field="user_id")

    amount = _parse_amount(data.get("amount"))
    transaction_type = _parse_choice(data.get("transaction_type"), TransactionType, "transaction_type")
    payment_status = _parse_choice(
        data.get("payment_status") or PaymentStatus.PENDING, PaymentStatus, "payment_status"
    )
    transaction_date = _parse_date(data.get("transaction_date"), "transaction_date")
    due_date = _parse_date(data.get("due_date"), "due_date")

    with atomic_mutation("finance_record_created"):
        rec = FinanceRecord(
            user_id=user_id,
            amount=amount,
            transaction_type=transaction_type,
            payment_status=payment_status,
            due_date=due_date,
            payment_method=data.get("payment_method") or "",
            description=data.get("description") or "",
        )
        if transaction_date is not None:
            rec.transaction_date = transaction_date
        if payment_status == PaymentStatus.PAID:
            rec.receipt_number = generate_receipt_number()
        rec.save()

        record(
            principal,
            AuditAction.FINANCE_RECORD_CREATED,
            ResourceType.FINANCE,
            rec.id,
            {"after": _record_snapshot(rec)},
        )

    logger.info(
        "finance_record_created",
        record_id=rec.id,
        amount=rec.amount,
        transaction_type=rec.transaction_type,
        payment_status=rec.payment_status,
    )
    return rec


def update_record(principal: Principal, record_id: int, patch: dict[str, Any]) -> FinanceRecord:
    """
    Partially update a ledger record.

    Only UPDATABLE_FIELDS may change. A patch that changes nothing writes
    nothing and records no audit entry.

    Raises:
        AuthorizationError: Unless admin or super user.
        InvariantViolation: If the patch touches user, payment_status or
            receipt_number.
        ValidationError: On unknown fields or malformed values.
        NotFoundError: If the record does not exist.
    """
    ensure_allowed(principal, Action.FINANCE_UPDATE)

    forbidden = [name for name in IMMUTABLE_FIELDS if name in patch]
    if forbidden:
        raise _invariant(f"Field cannot be changed through update: {forbidden[0]}")
    unknown = set(patch) - set(UPDATABLE_FIELDS)
    if unknown:
        name = sorted(unknown)[0]
        raise ValidationError(f"Unknown field: {name}", field=name)

    cleaned: dict[str, Any] = {}
    for name, value in patch.items():
        if name == "amount":
            cleaned[name] = _parse_amount(value)
        elif name == "transaction_type":
            cleaned[name] = _parse_choice(value, TransactionType, name)
        elif name == "transaction_date":
            cleaned[name] = _parse_date(value, name, required=True)
        elif name == "due_date":
            cleaned[name] = _parse_date(value, name)
        else:
            cleaned[name] = value or ""

    with atomic_mutation("finance_record_updated"):
        rec = _lock_record(record_id)
        before = _record_snapshot(rec)
        for name, value in cleaned.items():
            setattr(rec, name, value)
        old, new = changed_fields(before, _record_snapshot(rec))
        if not new:
            return rec

        rec.save(update_fields=[*cleaned, "updated_at"])
        record(
            principal,
            AuditAction.FINANCE_RECORD_UPDATED,
            ResourceType.FINANCE,
            rec.id,
            {"before": old, "after": new},
        )

    logger.info("finance_record_updated", record_id=rec.id, fields=sorted(new))
    return rec


def delete_record(principal: Principal, record_id: int) -> None:
    """
    Hard-delete a ledger record. The audit entry keeps the full pre-image.

    Raises:
        AuthorizationError: Unless admin or super user.
        NotFoundError: If the record does not exist.
    """
    ensure_allowed(principal, Action.FINANCE_DELETE)

    with atomic_mutation("finance_record_deleted"):
        rec = _lock_record(record_id)
        before = _record_snapshot(rec)
        rec.delete()
        record(
            principal,
            AuditAction.FINANCE_RECORD_DELETED,
            ResourceType.FINANCE,
            record_id,
            {"before": before},
        )

    logger.info("finance_record_deleted", record_id=record_id)


def transition_payment_status(
    principal: Principal, record_id: int, new_status: PaymentStatus | str
) -> FinanceRecord:
    """
    Move a record along the payment workflow.

    Entering ``paid`` assigns a receipt number unless one already exists.
    The row lock linearizes racing transitions on the same record.

    Raises:
        AuthorizationError: Unless admin or super user.
        ValidationError: If the status is unknown.
        IllegalTransition: If the move is not in PAYMENT_TRANSITIONS. The
            record is left unchanged.
        NotFoundError: If the record does not exist.
    """
    ensure_allowed(principal, Action.FINANCE_TRANSITION)
    new_status = _parse_choice(new_status, PaymentStatus, "payment_status")

    with atomic_mutation("payment_status_updated"):
        rec = _lock_record(record_id)
        PAYMENT_TRANSITIONS.check(rec.payment_status, new_status)

        before = {"payment_status": rec.payment_status, "receipt_number": rec.receipt_number}
        rec.payment_status = new_status
        update_fields = ["payment_status", "updated_at"]
        if new_status == PaymentStatus.PAID and not rec.receipt_number:
            rec.receipt_number = generate_receipt_number()
            update_fields.append("receipt_number")
        rec.save(update_fields=update_fields)

        old, new = changed_fields(
            before, {"payment_status": rec.payment_status, "receipt_number": rec.receipt_number}
        )
        record(
            principal,
            AuditAction.PAYMENT_STATUS_UPDATED,
            ResourceType.FINANCE,
            rec.id,
            {"before": old, "after": new},
        )

    logger.info(
        "payment_status_updated",
        record_id=rec.id,
        from_status=before["payment_status"],
        to_status=rec.payment_status,
        receipt_number=rec.receipt_number,
    )
    return rec


# --- Aggregates ---


def _sum(condition: Q | None = None) -> Coalesce:
    return Coalesce(
        Sum("amount", filter=condition),
        Value(ZERO),
        output_field=DecimalField(max_digits=14, decimal_places=2),
    )


def _as_decimal(value: Any) -> Decimal:
    # SQLite may hand back int/float for empty or whole sums
    return Decimal(str(value)).quantize(CENT)


@retry_read
def compute_overview(user_id: int | None = None) -> FinanceOverview:
    """
    Aggregate the ledger in one statement.

    Contribution-like types count regardless of status. Collected and
    outstanding dues count only due-like types (dues, fine) that are paid or
    pending respectively.

    Args:
        user_id: Restrict to one user's records, or None for the whole ledger
    """
    qs = FinanceRecord.objects.all()
    if user_id is not None:
        qs = qs.filter(user_id=user_id)

    due_like = Q(transaction_type__in=DUE_LIKE)
    totals = qs.aggregate(
        total_contributions=_sum(Q(transaction_type__in=CONTRIBUTION_LIKE)),
        total_dues_collected=_sum(due_like & Q(payment_status=PaymentStatus.PAID)),
        total_outstanding_dues=_sum(due_like & Q(payment_status=PaymentStatus.PENDING)),
        total_donations=_sum(Q(transaction_type=TransactionType.DONATION)),
        total_fines=_sum(Q(transaction_type=TransactionType.FINE)),
        total_expenses=_sum(Q(transaction_type=TransactionType.ADJUSTMENT)),
    )
    return FinanceOverview(**{name: _as_decimal(value) for name, value in totals.items()})


def get_overview(principal: Principal, user_id: int | None = None) -> FinanceOverview:
    """
    Guarded overview: the global ledger for staff, a single user's for staff
    or that user.

    Raises:
        AuthorizationError: not_authorized for a non-staff global request,
            not_owner for a member asking about someone else.
    """
    if user_id is None:
        ensure_allowed(principal, Action.FINANCE_OVERVIEW_GLOBAL)
    else:
        ensure_allowed(principal, Action.FINANCE_VIEW, target_owner_id=user_id)
    return compute_overview(user_id)


@retry_read
def compute_member_balance(principal: Principal, user_id: int) -> MemberBalance:
    """
    Contributions against dues for one member.

    This is the only figure that mixes the two families:
    balance = contributions - dues.
    """
    ensure_allowed(principal, Action.FINANCE_VIEW, target_owner_id=user_id)

    due_like = Q(transaction_type__in=DUE_LIKE)
    totals = FinanceRecord.objects.filter(user_id=user_id).aggregate(
        contributions=_sum(Q(transaction_type__in=CONTRIBUTION_LIKE)),
        dues=_sum(due_like),
        paid_dues=_sum(due_like & Q(payment_status=PaymentStatus.PAID)),
    )
    contributions = _as_decimal(totals["contributions"])
    dues = _as_decimal(totals["dues"])
    return MemberBalance(
        contributions=contributions,
        dues=dues,
        paid_dues=_as_decimal(totals["paid_dues"]),
        balance=contributions - dues,
    )


@retry_read
def get_outstanding_dues(principal: Principal, user_id: int) -> list[FinanceRecord]:
    """Pending and overdue dues/fines for a member, oldest due first."""
    ensure_allowed(principal, Action.FINANCE_VIEW, target_owner_id=user_id)
    return list(
        FinanceRecord.objects.select_related("user")
        .filter(
            user_id=user_id,
            transaction_type__in=DUE_LIKE,
            payment_status__in=(PaymentStatus.PENDING, PaymentStatus.OVERDUE),
        ).order_by("due_date", "transaction_date", "id")
    )


@retry_read
def monthly_summary(principal: Principal, year: int, month: int) -> dict[str, dict[str, Any]]:
    """
    Per transaction type totals for one calendar month.

    Returns:
        {transaction_type: {"count", "total", "paid", "pending"}} for every
        type, zero-filled.
    """
    ensure_allowed(principal, Action.FINANCE_OVERVIEW_GLOBAL)
    if not MINYEAR <= year <= MAXYEAR:
        raise ValidationError(f"Invalid year: {year}", field="year")
    if not 1 <= month <= 12:
        raise ValidationError(f"Invalid month: {month}", field="month")

    start = date(year, month, 1)
    end = date(year, month, monthrange(year, month)[1])
    rows = (
        FinanceRecord.objects.filter(transaction_date__range=(start, end))
        .values("transaction_type")
        .annotate(
            count=Count("id"),
            total=_sum(),
            paid=_sum(Q(payment_status=PaymentStatus.PAID)),
            pending=_sum(Q(payment_status=PaymentStatus.PENDING)),
        )
    )

    summary: dict[str, dict[str, Any]] = {
        t: {"count": 0, "total": ZERO, "paid": ZERO, "pending": ZERO} for t in TransactionType.values
    }
    for row in rows:
        summary[row["transaction_type"]] = {
            "count": row["count"],
            "total": _as_decimal(row["total"]),
            "paid": _as_decimal(row["paid"]),
            "pending": _as_decimal(row["pending"]),
        }
    return summary


# --- Listing ---


def _filtered_records(filters: RecordFilters) -> QuerySet[FinanceRecord]:
    qs = FinanceRecord.objects.select_related("user")
    if filters.user_id is not None:
        qs = qs.filter(user_id=filters.user_id)
    if filters.transaction_type:
        qs = qs.filter(transaction_type=filters.transaction_type)
    if filters.payment_status:
        qs = qs.filter(payment_status=filters.payment_status)
    if filters.date_from:
        qs = qs.filter(transaction_date__gte=filters.date_from)
    if filters.date_to:
        qs = qs.filter(transaction_date__lte=filters.date_to)
    if filters.search:
        term = filters.search
        qs = qs.filter(
            Q(description__icontains=term)
            | Q(user__name__icontains=term)
            | Q(user__email__icontains=term)
            | Q(receipt_number__icontains=term)
        )

    if filters.sort_field not in SORT_FIELDS:
        raise ValidationError(f"Cannot sort by {filters.sort_field}", field="sort_field")
    if filters.sort_order not in ("asc", "desc"):
        raise ValidationError(f"Invalid sort order: {filters.sort_order}", field="sort_order")
    prefix = "-" if filters.sort_order == "desc" else ""
    return qs.order_by(f"{prefix}{filters.sort_field}", f"{prefix}id")


@retry_read
def list_records(principal: Principal, filters: RecordFilters | None = None) -> list[FinanceRecord]:
    """
    List ledger records.

    Staff see everything. Members are restricted to their own records;
    asking for another user's records is denied with not_owner.
    """
    filters = filters or RecordFilters()
    if not principal.is_staff:
        if filters.user_id is None:
            filters.user_id = principal.user_id
        ensure_allowed(principal, Action.FINANCE_VIEW, target_owner_id=filters.user_id)
    return list(_filtered_records(filters))


def get_record(principal: Principal, record_id: int) -> FinanceRecord:
    """
    Fetch a single record the principal may see.

    Raises:
        NotFoundError: If the record does not exist.
        AuthorizationError: not_owner for a member reading someone else's record.
    """
    try:
        rec = FinanceRecord.objects.select_related("user").get(pk=record_id)
    except FinanceRecord.DoesNotExist:
        raise NotFoundError(f"Finance record {record_id} not found") from None
    ensure_allowed(principal, Action.FINANCE_VIEW, target_owner_id=rec.user_id)
    return rec
