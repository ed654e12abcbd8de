"""
Content models - page sections and posts with a draft/publish workflow.

Each item keeps a working copy that staff edit and a published snapshot that
the public site reads. Editing never touches the snapshot; publishing copies
the working copy over it.
"""

from django.db import models

from apps.core.models import AuthoredModel


class ContentStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    PUBLISHED = "published", "Published"
    SCHEDULED = "scheduled", "Scheduled"


class PublishableContent(AuthoredModel):
    """
    Abstract base for workflow-managed content.

    ``revision`` increments every time an edit starts a new draft cycle.
    """

    # Working copy
    title = models.CharField(max_length=255, blank=True)
    content = models.TextField(blank=True)
    media_urls = models.JSONField(default=list, blank=True)

    status = models.CharField(
        max_length=20,
        choices=ContentStatus.choices,
        default=ContentStatus.DRAFT,
        db_index=True,
    )
    scheduled_for = models.DateTimeField(null=True, blank=True, db_index=True)
    revision = models.PositiveIntegerField(default=1)

    # Published snapshot
    published_title = models.CharField(max_length=255, blank=True)
    published_content = models.TextField(blank=True)
    published_media_urls = models.JSONField(default=list, blank=True)
    published_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        abstract = True

    @property
    def has_published_version(self) -> bool:
        return self.published_at is not None

    def publish_snapshot(self, now) -> None:
        """Copy the working copy over the published snapshot."""
        self.published_title = self.title
        self.published_content = self.content
        self.published_media_urls = list(self.media_urls or [])
        self.published_at = now
        self.status = ContentStatus.PUBLISHED
        self.scheduled_for = None


class ContentSection(PublishableContent):
    """A named block of a site page, e.g. ('home', 'hero')."""

    page_name = models.CharField(max_length=100)
    section_key = models.CharField(max_length=100)

    class Meta:
        ordering = ["page_name", "section_key"]
        constraints = [
            models.UniqueConstraint(
                fields=["page_name", "section_key"],
                name="content_section_page_key_unique",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.page_name}/{self.section_key} ({self.status})"


class ContentPost(PublishableContent):
    """Free-standing article listed on a page (news, events, notices)."""

    slug = models.SlugField(max_length=255, unique=True)
    page = models.CharField(max_length=100, db_index=True)
    category = models.CharField(max_length=100, blank=True)
    tags = models.JSONField(default=list, blank=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.slug} ({self.status})"
