"""
Admin configuration for finances app.
"""

from django.contrib import admin

from apps.finances.models import FinanceRecord


@admin.register(FinanceRecord)
class FinanceRecordAdmin(admin.ModelAdmin):
    """
    Read-only view of the ledger.

    Writes go through the API so every change is guarded and audited.
    """

    list_display = [
        "id",
        "user",
        "transaction_type",
        "amount",
        "payment_status",
        "transaction_date",
        "receipt_number",
    ]
    list_filter = ["transaction_type", "payment_status", "transaction_date"]
    search_fields = ["user__email", "user__name", "receipt_number", "description"]
    date_hierarchy = "transaction_date"
    raw_id_fields = ["user"]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
