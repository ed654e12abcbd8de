"""
Tests for the publish_scheduled_content management command.
"""

from datetime import timedelta
from io import StringIO

import pytest
from django.core.management import call_command
from django.utils import timezone

from apps.audit.models import AuditAction, AuditLogEntry
from apps.content.models import ContentStatus
from tests.content.factories import ContentPostFactory


@pytest.mark.django_db
class TestPublishScheduledContentCommand:
    def test_once_publishes_due_items(self) -> None:
        post = ContentPostFactory.create(
            status=ContentStatus.SCHEDULED,
            scheduled_for=timezone.now() - timedelta(minutes=1),
        )
        out = StringIO()

        call_command("publish_scheduled_content", "--once", stdout=out)

        assert "Published 1 scheduled item(s)" in out.getvalue()
        post.refresh_from_db()
        assert post.status == ContentStatus.PUBLISHED

    def test_entries_carry_job_context(self) -> None:
        ContentPostFactory.create(
            status=ContentStatus.SCHEDULED,
            scheduled_for=timezone.now() - timedelta(minutes=1),
        )

        call_command("publish_scheduled_content", "--once", stdout=StringIO())

        entry = AuditLogEntry.objects.get(action_type=AuditAction.CONTENT_PUBLISHED)
        assert entry.user_agent == "job:publish_scheduled_content"
        assert entry.correlation_id

    def test_once_with_nothing_due(self) -> None:
        out = StringIO()

        call_command("publish_scheduled_content", "--once", stdout=out)

        assert "Published 0 scheduled item(s)" in out.getvalue()
