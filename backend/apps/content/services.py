"""
Content services - staff editing and the publish workflow for page sections
and posts.

Workflow:
    draft -> published
    draft -> scheduled (scheduled_for must be in the future)
    scheduled -> published (by staff, or by publish_due_scheduled)
    published / scheduled -> draft (any edit, revision + 1)
"""

from datetime import datetime
from typing import Any

from django.db.models import Model
from django.utils import timezone
from django.utils.text import slugify

from apps.audit.models import AuditAction, ResourceType
from apps.audit.services import changed_fields, record
from apps.core.auth import Principal
from apps.core.exceptions import NotFoundError, ValidationError
from apps.core.logging import get_logger
from apps.core.permissions import Action, ensure_allowed
from apps.core.transactions import atomic_mutation, retry_read
from apps.core.workflow import TransitionTable
from apps.content.models import ContentPost, ContentSection, ContentStatus, PublishableContent

logger = get_logger(__name__)

C = ContentStatus

CONTENT_TRANSITIONS = TransitionTable(
    "content",
    {
        C.DRAFT: {C.PUBLISHED, C.SCHEDULED},
        C.SCHEDULED: {C.PUBLISHED, C.DRAFT},
        C.PUBLISHED: {C.DRAFT},
    },
)

# kind -> (model, audit resource type)
CONTENT_KINDS: dict[str, tuple[type[PublishableContent], ResourceType]] = {
    "section": (ContentSection, ResourceType.CONTENT_SECTION),
    "post": (ContentPost, ResourceType.CONTENT_POST),
}

SECTION_FIELDS = ("title", "content", "media_urls")
POST_FIELDS = ("title", "content", "media_urls", "slug", "page", "category", "tags")


def _resolve_kind(kind: str) -> tuple[type[PublishableContent], ResourceType]:
    try:
        return CONTENT_KINDS[kind]
    except KeyError:
        raise ValidationError(f"Unknown content kind: {kind}", field="kind") from None


def _snapshot(item: PublishableContent, fields: tuple[str, ...]) -> dict[str, Any]:
    data: dict[str, Any] = {name: getattr(item, name) for name in fields}
    data["status"] = item.status
    data["revision"] = item.revision
    data["scheduled_for"] = item.scheduled_for.isoformat() if item.scheduled_for else None
    return data


def _clean(data: dict[str, Any], allowed: tuple[str, ...]) -> dict[str, Any]:
    unknown = set(data) - set(allowed)
    if unknown:
        name = sorted(unknown)[0]
        raise ValidationError(f"Unknown field: {name}", field=name)

    cleaned = dict(data)
    for name in ("media_urls", "tags"):
        if name in cleaned:
            value = cleaned[name] or []
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise ValidationError(f"{name} must be a list of strings", field=name)
            cleaned[name] = value
    for name in ("title", "content", "category"):
        if name in cleaned and cleaned[name] is None:
            cleaned[name] = ""
    return cleaned


def _apply_edit(item: PublishableContent, cleaned: dict[str, Any]) -> bool:
    """
    Apply working-copy changes. Returns False if nothing changed.

    An edit of a published or scheduled item starts a new draft cycle; the
    published snapshot stays as it was.
    """
    changed = [name for name, value in cleaned.items() if getattr(item, name) != value]
    if not changed:
        return False

    for name in changed:
        setattr(item, name, cleaned[name])
    if item.status != C.DRAFT:
        CONTENT_TRANSITIONS.check(item.status, C.DRAFT)
        item.status = C.DRAFT
        item.scheduled_for = None
        item.revision += 1
    return True


def _lock(model: type[PublishableContent], item_id: int) -> PublishableContent:
    try:
        return model.objects.select_for_update().get(pk=item_id)
    except model.DoesNotExist:
        raise NotFoundError(f"{model.__name__} {item_id} not found") from None


# --- Sections ---


def upsert_section(
    principal: Principal,
    page_name: str,
    section_key: str,
    data: dict[str, Any],
) -> ContentSection:
    """
    Create or edit the section identified by (page_name, section_key).

    Raises:
        AuthorizationError: Unless admin or super user.
        ValidationError: On unknown fields or malformed media lists.
    """
    ensure_allowed(principal, Action.CONTENT_MANAGE)
    if not page_name or not section_key:
        raise ValidationError("page_name and section_key are required", field="section_key")
    cleaned = _clean(data, SECTION_FIELDS)

    with atomic_mutation("content_section_saved"):
        section = (
            ContentSection.objects.select_for_update()
            .filter(page_name=page_name, section_key=section_key)
            .first()
        )

        if section is None:
            section = ContentSection.objects.create(
                page_name=page_name,
                section_key=section_key,
                created_by_id=principal.user_id,
                updated_by_id=principal.user_id,
                **cleaned,
            )
            record(
                principal,
                AuditAction.CONTENT_CREATED,
                ResourceType.CONTENT_SECTION,
                section.id,
                {"after": _snapshot(section, SECTION_FIELDS), "page_name": page_name, "section_key": section_key},
            )
            logger.info("content_created", kind="section", item_id=section.id)
            return section

        before = _snapshot(section, SECTION_FIELDS)
        if not _apply_edit(section, cleaned):
            return section
        section.updated_by_id = principal.user_id
        section.save()

        old, new = changed_fields(before, _snapshot(section, SECTION_FIELDS))
        record(
            principal,
            AuditAction.CONTENT_UPDATED,
            ResourceType.CONTENT_SECTION,
            section.id,
            {"before": old, "after": new},
        )

    logger.info("content_updated", kind="section", item_id=section.id, revision=section.revision)
    return section


@retry_read
def list_sections(principal: Principal, page_name: str | None = None) -> list[ContentSection]:
    """All sections with their working copies. Staff only."""
    ensure_allowed(principal, Action.CONTENT_MANAGE)
    qs = ContentSection.objects.all()
    if page_name:
        qs = qs.filter(page_name=page_name)
    return list(qs)


@retry_read
def published_sections_for_page(page_name: str) -> list[dict[str, Any]]:
    """
    Public view of a page: the published snapshot of every section that has
    ever been published. Drafts in progress are invisible here.
    """
    sections = ContentSection.objects.filter(
        page_name=page_name, published_at__isnull=False
    ).order_by("section_key")
    return [
        {
            "section_key": s.section_key,
            "title": s.published_title,
            "content": s.published_content,
            "media_urls": s.published_media_urls,
            "published_at": s.published_at,
        }
        for s in sections
    ]


# --- Posts ---


def _unique_slug_or_raise(slug: str, exclude_id: int | None = None) -> None:
    qs = ContentPost.objects.filter(slug=slug)
    if exclude_id is not None:
        qs = qs.exclude(pk=exclude_id)
    if qs.exists():
        raise ValidationError(f"Slug already in use: {slug}", field="slug")


def create_post(principal: Principal, data: dict[str, Any]) -> ContentPost:
    """
    Create a draft post. The slug defaults to a slugified title.

    Raises:
        AuthorizationError: Unless admin or super user.
        ValidationError: If title or page is missing or the slug is taken.
    """
    ensure_allowed(principal, Action.CONTENT_MANAGE)
    cleaned = _clean(data, POST_FIELDS)
    if not (cleaned.get("title") or "").strip():
        raise ValidationError("title is required", field="title")
    if not cleaned.get("page"):
        raise ValidationError("page is required", field="page")

    cleaned["slug"] = slugify(cleaned.get("slug") or cleaned["title"])
    if not cleaned["slug"]:
        raise ValidationError("Could not derive a slug from the title", field="slug")
    _unique_slug_or_raise(cleaned["slug"])

    with atomic_mutation("content_created"):
        post = ContentPost.objects.create(
            created_by_id=principal.user_id,
            updated_by_id=principal.user_id,
            **cleaned,
        )
        record(
            principal,
            AuditAction.CONTENT_CREATED,
            ResourceType.CONTENT_POST,
            post.id,
            {"after": _snapshot(post, POST_FIELDS)},
        )

    logger.info("content_created", kind="post", item_id=post.id, slug=post.slug)
    return post


def update_post(principal: Principal, post_id: int, patch: dict[str, Any]) -> ContentPost:
    """
    Edit a post's working copy.

    Raises:
        AuthorizationError: Unless admin or super user.
        NotFoundError: If the post does not exist.
        ValidationError: On unknown fields or a taken slug.
    """
    ensure_allowed(principal, Action.CONTENT_MANAGE)
    cleaned = _clean(patch, POST_FIELDS)
    if "slug" in cleaned:
        cleaned["slug"] = slugify(cleaned["slug"] or "")
        if not cleaned["slug"]:
            raise ValidationError("slug cannot be empty", field="slug")
        _unique_slug_or_raise(cleaned["slug"], exclude_id=post_id)

    with atomic_mutation("content_updated"):
        post = _lock(ContentPost, post_id)
        before = _snapshot(post, POST_FIELDS)
        if not _apply_edit(post, cleaned):
            return post  # type: ignore[return-value]
        post.updated_by_id = principal.user_id
        post.save()

        old, new = changed_fields(before, _snapshot(post, POST_FIELDS))
        record(
            principal,
            AuditAction.CONTENT_UPDATED,
            ResourceType.CONTENT_POST,
            post.id,
            {"before": old, "after": new},
        )

    logger.info("content_updated", kind="post", item_id=post.id, revision=post.revision)
    return post  # type: ignore[return-value]


@retry_read
def list_posts(principal: Principal, page: str | None = None) -> list[ContentPost]:
    """All posts with their working copies. Staff only."""
    ensure_allowed(principal, Action.CONTENT_MANAGE)
    qs = ContentPost.objects.all()
    if page:
        qs = qs.filter(page=page)
    return list(qs)


@retry_read
def published_posts(page: str | None = None) -> list[ContentPost]:
    """Posts with a published snapshot, newest publication first."""
    qs = ContentPost.objects.filter(published_at__isnull=False)
    if page:
        qs = qs.filter(page=page)
    return list(qs.order_by("-published_at", "-id"))


# --- Workflow ---


def publish(principal: Principal, kind: str, item_id: int) -> PublishableContent:
    """
    Publish the working copy now.

    Raises:
        AuthorizationError: Unless admin or super user.
        IllegalTransition: If the item is already published.
        NotFoundError: If the item does not exist.
    """
    ensure_allowed(principal, Action.CONTENT_MANAGE)
    model, resource_type = _resolve_kind(kind)

    with atomic_mutation("content_published"):
        item = _lock(model, item_id)
        _publish_locked(principal, item, resource_type, timezone.now())

    logger.info("content_published", kind=kind, item_id=item.id, revision=item.revision)
    return item


def _publish_locked(
    actor: Principal | None,
    item: PublishableContent,
    resource_type: ResourceType,
    now: datetime,
    source: str = "manual",
) -> None:
    from_status = item.status
    CONTENT_TRANSITIONS.check(from_status, C.PUBLISHED)
    item.publish_snapshot(now)
    if actor is not None:
        item.updated_by_id = actor.user_id
    item.save()
    record(
        actor,
        AuditAction.CONTENT_PUBLISHED,
        resource_type,
        item.id,
        {
            "before": {"status": from_status},
            "after": {"status": item.status, "published_at": now.isoformat()},
            "revision": item.revision,
            "source": source,
        },
    )


def schedule(
    principal: Principal,
    kind: str,
    item_id: int,
    scheduled_for: datetime,
) -> PublishableContent:
    """
    Schedule a draft for automatic publication.

    Raises:
        AuthorizationError: Unless admin or super user.
        ValidationError: If scheduled_for is naive or not in the future.
        IllegalTransition: If the item is not a draft.
        NotFoundError: If the item does not exist.
    """
    ensure_allowed(principal, Action.CONTENT_MANAGE)
    model, resource_type = _resolve_kind(kind)

    if timezone.is_naive(scheduled_for):
        raise ValidationError("scheduled_for must include a timezone", field="scheduled_for")
    if scheduled_for <= timezone.now():
        raise ValidationError("scheduled_for must be in the future", field="scheduled_for")

    with atomic_mutation("content_scheduled"):
        item = _lock(model, item_id)
        from_status = item.status
        CONTENT_TRANSITIONS.check(from_status, C.SCHEDULED)
        item.status = C.SCHEDULED
        item.scheduled_for = scheduled_for
        item.updated_by_id = principal.user_id
        item.save(update_fields=["status", "scheduled_for", "updated_by", "updated_at"])
        record(
            principal,
            AuditAction.CONTENT_SCHEDULED,
            resource_type,
            item.id,
            {
                "before": {"status": from_status},
                "after": {"status": item.status, "scheduled_for": scheduled_for.isoformat()},
            },
        )

    logger.info("content_scheduled", kind=kind, item_id=item.id, scheduled_for=scheduled_for.isoformat())
    return item


def publish_due_scheduled(now: datetime | None = None) -> int:
    """
    Publish every scheduled item whose time has come. Run by the scheduler.

    Rows are claimed with SKIP LOCKED, so concurrent workers never publish
    the same item twice and a repeated tick finds nothing left to do.

    Returns:
        Number of items published.
    """
    now = now or timezone.now()
    published = 0

    for kind, (model, resource_type) in CONTENT_KINDS.items():
        with atomic_mutation("content_published"):
            due: list[Model] = list(
                model.objects.select_for_update(skip_locked=True)
                .filter(status=C.SCHEDULED, scheduled_for__lte=now)
                .order_by("scheduled_for", "id")
            )
            for item in due:
                _publish_locked(None, item, resource_type, now, source="scheduler")  # type: ignore[arg-type]
                logger.info("content_published", kind=kind, item_id=item.pk, source="scheduler")
            published += len(due)

    if published:
        logger.info("scheduled_content_published", count=published)
    return published
