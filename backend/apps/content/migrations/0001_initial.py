import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


def workflow_fields():
    return [
        ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
        ("created_at", models.DateTimeField(auto_now_add=True)),
        ("updated_at", models.DateTimeField(auto_now=True)),
        ("title", models.CharField(blank=True, max_length=255)),
        ("content", models.TextField(blank=True)),
        ("media_urls", models.JSONField(blank=True, default=list)),
        ("status", models.CharField(choices=[("draft", "Draft"), ("published", "Published"), ("scheduled", "Scheduled")], db_index=True, default="draft", max_length=20)),
        ("scheduled_for", models.DateTimeField(blank=True, db_index=True, null=True)),
        ("revision", models.PositiveIntegerField(default=1)),
        ("published_title", models.CharField(blank=True, max_length=255)),
        ("published_content", models.TextField(blank=True)),
        ("published_media_urls", models.JSONField(blank=True, default=list)),
        ("published_at", models.DateTimeField(blank=True, null=True)),
        ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
        ("updated_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
    ]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="ContentSection",
            fields=[
                *workflow_fields(),
                ("page_name", models.CharField(max_length=100)),
                ("section_key", models.CharField(max_length=100)),
            ],
            options={
                "ordering": ["page_name", "section_key"],
                "constraints": [
                    models.UniqueConstraint(fields=("page_name", "section_key"), name="content_section_page_key_unique"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ContentPost",
            fields=[
                *workflow_fields(),
                ("slug", models.SlugField(max_length=255, unique=True)),
                ("page", models.CharField(db_index=True, max_length=100)),
                ("category", models.CharField(blank=True, max_length=100)),
                ("tags", models.JSONField(blank=True, default=list)),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
    ]
