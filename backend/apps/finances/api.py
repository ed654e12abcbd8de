"""
Finance API endpoints.

- Ledger records: list, create, update, delete, payment transitions
- Overviews: global, per member, own; member balance; monthly summary
"""

from dataclasses import asdict
from datetime import date

from django.http import HttpRequest
from ninja import Router

from apps.core.schemas import ErrorResponse
from apps.core.security import BearerAuth, get_principal
from apps.finances import services
from apps.finances.models import FinanceRecord
from apps.finances.schemas import (
    FinanceOverviewResponse,
    FinanceRecordCreateRequest,
    FinanceRecordListResponse,
    FinanceRecordResponse,
    FinanceRecordUpdateRequest,
    MemberBalanceResponse,
    MonthlySummaryResponse,
    MonthlyTypeSummary,
    PaymentTransitionRequest,
)

router = Router(tags=["finances"])
bearer_auth = BearerAuth()

READ_ERRORS = {401: ErrorResponse, 403: ErrorResponse, 404: ErrorResponse}
WRITE_ERRORS = {
    400: ErrorResponse,
    401: ErrorResponse,
    403: ErrorResponse,
    404: ErrorResponse,
    409: ErrorResponse,
    422: ErrorResponse,
    503: ErrorResponse,
}


def _record_response(rec: FinanceRecord) -> FinanceRecordResponse:
    return FinanceRecordResponse(
        id=rec.id,
        user_id=rec.user_id,
        user_name=rec.user.name or rec.user.email,
        amount=rec.amount,
        transaction_type=rec.transaction_type,
        payment_status=rec.payment_status,
        transaction_date=rec.transaction_date,
        due_date=rec.due_date,
        receipt_number=rec.receipt_number,
        payment_method=rec.payment_method,
        description=rec.description,
        created_at=rec.created_at,
        updated_at=rec.updated_at,
    )


# --- Records ---


@router.get(
    "/records",
    response={200: FinanceRecordListResponse, **READ_ERRORS},
    auth=bearer_auth,
    operation_id="listFinanceRecords",
    summary="List ledger records",
)
def list_records(
    request: HttpRequest,
    user_id: int | None = None,
    transaction_type: str | None = None,
    payment_status: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    search: str | None = None,
    sort_field: str = "transaction_date",
    sort_order: str = "desc",
) -> FinanceRecordListResponse:
    """
    List records with filters and sorting.

    Members only ever see their own records.
    """
    filters = services.RecordFilters(
        user_id=user_id,
        transaction_type=transaction_type,
        payment_status=payment_status,
        date_from=date_from,
        date_to=date_to,
        search=search,
        sort_field=sort_field,
        sort_order=sort_order,
    )
    records = services.list_records(get_principal(request), filters)
    return FinanceRecordListResponse(
        records=[_record_response(r) for r in records],
        count=len(records),
    )


@router.get(
    "/records/{record_id}",
    response={200: FinanceRecordResponse, **READ_ERRORS},
    auth=bearer_auth,
    operation_id="getFinanceRecord",
    summary="Get a ledger record",
)
def get_record(request: HttpRequest, record_id: int) -> FinanceRecordResponse:
    return _record_response(services.get_record(get_principal(request), record_id))


@router.post(
    "/records",
    response={201: FinanceRecordResponse, **WRITE_ERRORS},
    auth=bearer_auth,
    operation_id="createFinanceRecord",
    summary="Create a ledger record",
)
def create_record(
    request: HttpRequest, payload: FinanceRecordCreateRequest
) -> tuple[int, FinanceRecordResponse]:
    rec = services.create_record(get_principal(request), payload.model_dump())
    return 201, _record_response(rec)


@router.patch(
    "/records/{record_id}",
    response={200: FinanceRecordResponse, **WRITE_ERRORS},
    auth=bearer_auth,
    operation_id="updateFinanceRecord",
    summary="Update a ledger record",
)
def update_record(
    request: HttpRequest, record_id: int, payload: FinanceRecordUpdateRequest
) -> FinanceRecordResponse:
    patch = payload.model_dump(exclude_unset=True)
    rec = services.update_record(get_principal(request), record_id, patch)
    return _record_response(rec)


@router.delete(
    "/records/{record_id}",
    response={204: None, **WRITE_ERRORS},
    auth=bearer_auth,
    operation_id="deleteFinanceRecord",
    summary="Delete a ledger record",
)
def delete_record(request: HttpRequest, record_id: int) -> tuple[int, None]:
    services.delete_record(get_principal(request), record_id)
    return 204, None


@router.post(
    "/records/{record_id}/transition",
    response={200: FinanceRecordResponse, **WRITE_ERRORS},
    auth=bearer_auth,
    operation_id="transitionPaymentStatus",
    summary="Change a record's payment status",
)
def transition_payment_status(
    request: HttpRequest, record_id: int, payload: PaymentTransitionRequest
) -> FinanceRecordResponse:
    """
    Move a record along the payment workflow.

    Entering `paid` assigns a receipt number. Illegal moves return 409.
    """
    rec = services.transition_payment_status(get_principal(request), record_id, payload.status)
    return _record_response(rec)


# --- Aggregates ---


@router.get(
    "/overview",
    response={200: FinanceOverviewResponse, **READ_ERRORS},
    auth=bearer_auth,
    operation_id="getFinanceOverview",
    summary="Ledger overview (global, or one member with user_id)",
)
def get_overview(request: HttpRequest, user_id: int | None = None) -> FinanceOverviewResponse:
    overview = services.get_overview(get_principal(request), user_id)
    return FinanceOverviewResponse(**asdict(overview))


@router.get(
    "/overview/me",
    response={200: FinanceOverviewResponse, **READ_ERRORS},
    auth=bearer_auth,
    operation_id="getMyFinanceOverview",
    summary="Overview of the caller's own records",
)
def get_my_overview(request: HttpRequest) -> FinanceOverviewResponse:
    principal = get_principal(request)
    overview = services.get_overview(principal, principal.user_id)
    return FinanceOverviewResponse(**asdict(overview))


@router.get(
    "/balance/{user_id}",
    response={200: MemberBalanceResponse, **READ_ERRORS},
    auth=bearer_auth,
    operation_id="getMemberBalance",
    summary="Contributions against dues for one member",
)
def get_member_balance(request: HttpRequest, user_id: int) -> MemberBalanceResponse:
    balance = services.compute_member_balance(get_principal(request), user_id)
    return MemberBalanceResponse(**asdict(balance))


@router.get(
    "/outstanding/{user_id}",
    response={200: FinanceRecordListResponse, **READ_ERRORS},
    auth=bearer_auth,
    operation_id="getOutstandingDues",
    summary="Unpaid dues and fines for one member",
)
def get_outstanding_dues(request: HttpRequest, user_id: int) -> FinanceRecordListResponse:
    records = services.get_outstanding_dues(get_principal(request), user_id)
    return FinanceRecordListResponse(
        records=[_record_response(r) for r in records],
        count=len(records),
    )


@router.get(
    "/summary/{year}/{month}",
    response={200: MonthlySummaryResponse, 400: ErrorResponse, **READ_ERRORS},
    auth=bearer_auth,
    operation_id="getMonthlySummary",
    summary="Per-type totals for one month",
)
def get_monthly_summary(request: HttpRequest, year: int, month: int) -> MonthlySummaryResponse:
    summary = services.monthly_summary(get_principal(request), year, month)
    return MonthlySummaryResponse(
        year=year,
        month=month,
        by_type={t: MonthlyTypeSummary(**values) for t, values in summary.items()},
    )
