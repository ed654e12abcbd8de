import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="FinanceRecord",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(0)])),
                ("transaction_type", models.CharField(choices=[("contribution", "Contribution"), ("dues", "Dues"), ("fine", "Fine"), ("donation", "Donation"), ("adjustment", "Adjustment")], db_index=True, max_length=20)),
                ("payment_status", models.CharField(choices=[("pending", "Pending"), ("paid", "Paid"), ("overdue", "Overdue"), ("cancelled", "Cancelled")], db_index=True, default="pending", max_length=20)),
                ("transaction_date", models.DateField(db_index=True, default=django.utils.timezone.localdate)),
                ("due_date", models.DateField(blank=True, null=True)),
                ("receipt_number", models.CharField(blank=True, help_text="Assigned when the record is paid, e.g. 'REC-20240115-9F2C41AB'", max_length=50, null=True, unique=True)),
                ("payment_method", models.CharField(blank=True, max_length=50)),
                ("description", models.TextField(blank=True)),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="finance_records", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-transaction_date", "-created_at"],
                "indexes": [models.Index(fields=["user", "transaction_type"], name="finance_user_type_idx")],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("amount__gte", 0)), name="finance_record_amount_non_negative"),
                    models.CheckConstraint(condition=models.Q(models.Q(("payment_status", "paid"), _negated=True), ("receipt_number__isnull", False), _connector="OR"), name="finance_record_paid_has_receipt"),
                ],
            },
        ),
    ]
