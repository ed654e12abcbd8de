import django.core.serializers.json
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="AuditLogEntry",
            fields=[
                ("id", models.BigAutoField(primary_key=True, serialize=False)),
                ("action_type", models.CharField(choices=[("user_created", "User created"), ("role_updated", "Role updated"), ("user_status_updated", "User status updated"), ("admin_otp_verified", "Admin OTP verified"), ("profile_created", "Profile created"), ("profile_updated", "Profile updated"), ("profile_approved", "Profile approved"), ("profile_rejected", "Profile rejected"), ("finance_record_created", "Finance record created"), ("finance_record_updated", "Finance record updated"), ("finance_record_deleted", "Finance record deleted"), ("payment_status_updated", "Payment status updated"), ("content_created", "Content created"), ("content_updated", "Content updated"), ("content_scheduled", "Content scheduled"), ("content_published", "Content published")], db_index=True, max_length=50)),
                ("resource_type", models.CharField(choices=[("user", "User"), ("user_profile", "User profile"), ("finance", "Finance record"), ("content_section", "Content section"), ("content_post", "Content post"), ("system", "System")], max_length=30)),
                ("resource_id", models.CharField(blank=True, default="", max_length=100)),
                ("details", models.JSONField(blank=True, default=dict, encoder=django.core.serializers.json.DjangoJSONEncoder)),
                ("correlation_id", models.CharField(blank=True, db_index=True, default="", max_length=64)),
                ("ip_address", models.GenericIPAddressField(blank=True, null=True)),
                ("user_agent", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("actor", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="audit_entries", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "audit log entry",
                "verbose_name_plural": "audit log entries",
                "ordering": ["created_at", "id"],
                "indexes": [
                    models.Index(fields=["resource_type", "resource_id"], name="audit_resource_idx"),
                    models.Index(fields=["actor", "created_at"], name="audit_actor_created_idx"),
                ],
            },
        ),
    ]
