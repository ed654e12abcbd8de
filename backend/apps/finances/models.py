"""
Finance models - the community ledger.
"""

from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from apps.core.models import TimestampedModel


class TransactionType(models.TextChoices):
    CONTRIBUTION = "contribution", "Contribution"
    DUES = "dues", "Dues"
    FINE = "fine", "Fine"
    DONATION = "donation", "Donation"
    ADJUSTMENT = "adjustment", "Adjustment"


class PaymentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    OVERDUE = "overdue", "Overdue"
    CANCELLED = "cancelled", "Cancelled"


# Money coming in, counted regardless of status
CONTRIBUTION_LIKE = (TransactionType.CONTRIBUTION, TransactionType.DONATION)
# Obligations owed by a member
DUE_LIKE = (TransactionType.DUES, TransactionType.FINE)


class FinanceRecord(TimestampedModel):
    """
    One ledger line owned by a user.

    ``user`` is fixed at creation. ``payment_status`` only moves through
    ``transition_payment_status``; entering ``paid`` assigns a receipt number
    that is never overwritten afterwards.
    """

    user = models.ForeignKey(
        "accounts.User",
        on_delete=models.PROTECT,
        related_name="finance_records",
    )
    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(0)],
    )
    transaction_type = models.CharField(
        max_length=20,
        choices=TransactionType.choices,
        db_index=True,
    )
    payment_status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
        db_index=True,
    )
    transaction_date = models.DateField(default=timezone.localdate, db_index=True)
    due_date = models.DateField(null=True, blank=True)
    receipt_number = models.CharField(
        max_length=50,
        unique=True,
        null=True,
        blank=True,
        help_text="Assigned when the record is paid, e.g. 'REC-20240115-9F2C41AB'",
    )
    payment_method = models.CharField(max_length=50, blank=True)
    description = models.TextField(blank=True)

    class Meta:
        ordering = ["-transaction_date", "-created_at"]
        indexes = [
            models.Index(fields=["user", "transaction_type"], name="finance_user_type_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gte=0),
                name="finance_record_amount_non_negative",
            ),
            models.CheckConstraint(
                condition=~models.Q(payment_status="paid") | models.Q(receipt_number__isnull=False),
                name="finance_record_paid_has_receipt",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.transaction_type} {self.amount} ({self.payment_status})"
