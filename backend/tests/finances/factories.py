"""
Factories for finances app models.
"""

from decimal import Decimal

import factory
from factory.django import DjangoModelFactory

from apps.finances.models import FinanceRecord, PaymentStatus, TransactionType
from tests.accounts.factories import UserFactory


class FinanceRecordFactory(DjangoModelFactory):
    """Factory for FinanceRecord. Paid records get a receipt number."""

    class Meta:
        model = FinanceRecord

    user = factory.SubFactory(UserFactory)
    amount = Decimal("100.00")
    transaction_type = TransactionType.DUES
    payment_status = PaymentStatus.PENDING
    receipt_number = factory.LazyAttributeSequence(
        lambda o, n: f"REC-20240101-{n:08X}" if o.payment_status == PaymentStatus.PAID else None
    )
    description = ""
