"""
Finance API schemas - Pydantic models for request/response.
"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from apps.finances.models import PaymentStatus, TransactionType

# --- Request Schemas ---


class FinanceRecordCreateRequest(BaseModel):
    """Create a ledger record for a user."""

    user_id: int = Field(..., description="Owner of the record")
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2, examples=["5000.00"])
    transaction_type: TransactionType
    payment_status: PaymentStatus = PaymentStatus.PENDING
    transaction_date: date | None = Field(default=None, description="Defaults to today")
    due_date: date | None = None
    payment_method: str = Field(default="", max_length=50)
    description: str = ""


class FinanceRecordUpdateRequest(BaseModel):
    """
    Partial update. Owner, payment status and receipt number cannot change here.
    """

    amount: Decimal | None = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    transaction_type: TransactionType | None = None
    transaction_date: date | None = None
    due_date: date | None = None
    payment_method: str | None = Field(default=None, max_length=50)
    description: str | None = None


class PaymentTransitionRequest(BaseModel):
    status: PaymentStatus = Field(..., description="Target payment status")


# --- Response Schemas ---


class FinanceRecordResponse(BaseModel):
    id: int
    user_id: int
    user_name: str
    amount: Decimal
    transaction_type: str
    payment_status: str
    transaction_date: date
    due_date: date | None = None
    receipt_number: str | None = None
    payment_method: str
    description: str
    created_at: datetime
    updated_at: datetime


class FinanceRecordListResponse(BaseModel):
    records: list[FinanceRecordResponse]
    count: int


class FinanceOverviewResponse(BaseModel):
    """Aggregate totals. Amounts are decimal strings in JSON."""

    total_contributions: Decimal
    total_dues_collected: Decimal
    total_outstanding_dues: Decimal
    total_donations: Decimal
    total_fines: Decimal
    total_expenses: Decimal

    model_config = {
        "json_schema_extra": {
            "example": {
                "total_contributions": "12500.00",
                "total_dues_collected": "4000.00",
                "total_outstanding_dues": "5000.00",
                "total_donations": "2500.00",
                "total_fines": "200.00",
                "total_expenses": "0.00",
            }
        }
    }


class MemberBalanceResponse(BaseModel):
    contributions: Decimal
    dues: Decimal
    paid_dues: Decimal
    balance: Decimal = Field(..., description="contributions - dues")


class MonthlyTypeSummary(BaseModel):
    count: int
    total: Decimal
    paid: Decimal
    pending: Decimal


class MonthlySummaryResponse(BaseModel):
    year: int
    month: int
    by_type: dict[str, MonthlyTypeSummary]
