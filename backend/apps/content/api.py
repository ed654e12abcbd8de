"""
Content API endpoints.

Staff endpoints edit working copies and drive the publish workflow. The
public endpoints only ever expose published snapshots.
"""

from django.http import HttpRequest
from ninja import Router

from apps.content import services
from apps.content.schemas import (
    PostCreateRequest,
    PostListResponse,
    PostResponse,
    PostUpdateRequest,
    PublishedPageResponse,
    PublishedPost,
    PublishedPostListResponse,
    PublishedSection,
    ScheduleRequest,
    SectionListResponse,
    SectionResponse,
    SectionUpsertRequest,
)
from apps.core.schemas import ErrorResponse
from apps.core.security import BearerAuth, get_principal

router = Router(tags=["content"])
bearer_auth = BearerAuth()

STAFF_ERRORS = {
    400: ErrorResponse,
    401: ErrorResponse,
    403: ErrorResponse,
    404: ErrorResponse,
    409: ErrorResponse,
}


def _section(section) -> SectionResponse:
    return SectionResponse.model_validate(section, from_attributes=True)


def _post(post) -> PostResponse:
    return PostResponse.model_validate(post, from_attributes=True)


# --- Public ---


@router.get(
    "/pages/{page_name}",
    response={200: PublishedPageResponse},
    operation_id="getPublishedPage",
    summary="Published sections of a page",
)
def get_published_page(request: HttpRequest, page_name: str) -> PublishedPageResponse:
    sections = services.published_sections_for_page(page_name)
    return PublishedPageResponse(
        page_name=page_name,
        sections=[PublishedSection(**s) for s in sections],
    )


@router.get(
    "/posts/published",
    response={200: PublishedPostListResponse},
    operation_id="listPublishedPosts",
    summary="Published posts",
)
def list_published_posts(request: HttpRequest, page: str | None = None) -> PublishedPostListResponse:
    posts = services.published_posts(page)
    return PublishedPostListResponse(
        posts=[
            PublishedPost(
                slug=p.slug,
                page=p.page,
                category=p.category,
                tags=p.tags,
                title=p.published_title,
                content=p.published_content,
                media_urls=p.published_media_urls,
                published_at=p.published_at,
            )
            for p in posts
        ]
    )


# --- Sections ---


@router.get(
    "/sections",
    response={200: SectionListResponse, **STAFF_ERRORS},
    auth=bearer_auth,
    operation_id="listSections",
    summary="List sections with working copies",
)
def list_sections(request: HttpRequest, page_name: str | None = None) -> SectionListResponse:
    sections = services.list_sections(get_principal(request), page_name)
    return SectionListResponse(sections=[_section(s) for s in sections])


@router.put(
    "/sections/{page_name}/{section_key}",
    response={200: SectionResponse, **STAFF_ERRORS},
    auth=bearer_auth,
    operation_id="upsertSection",
    summary="Create or edit a page section",
)
def upsert_section(
    request: HttpRequest, page_name: str, section_key: str, payload: SectionUpsertRequest
) -> SectionResponse:
    """
    Editing a published or scheduled section starts a new draft; the live
    version stays until the next publish.
    """
    section = services.upsert_section(
        get_principal(request),
        page_name,
        section_key,
        payload.model_dump(exclude_unset=True, exclude_none=True),
    )
    return _section(section)


# --- Posts ---


@router.get(
    "/posts",
    response={200: PostListResponse, **STAFF_ERRORS},
    auth=bearer_auth,
    operation_id="listPosts",
    summary="List posts with working copies",
)
def list_posts(request: HttpRequest, page: str | None = None) -> PostListResponse:
    posts = services.list_posts(get_principal(request), page)
    return PostListResponse(posts=[_post(p) for p in posts])


@router.post(
    "/posts",
    response={201: PostResponse, **STAFF_ERRORS},
    auth=bearer_auth,
    operation_id="createPost",
    summary="Create a draft post",
)
def create_post(request: HttpRequest, payload: PostCreateRequest) -> tuple[int, PostResponse]:
    post = services.create_post(get_principal(request), payload.model_dump(exclude_none=True))
    return 201, _post(post)


@router.patch(
    "/posts/{post_id}",
    response={200: PostResponse, **STAFF_ERRORS},
    auth=bearer_auth,
    operation_id="updatePost",
    summary="Edit a post",
)
def update_post(request: HttpRequest, post_id: int, payload: PostUpdateRequest) -> PostResponse:
    post = services.update_post(
        get_principal(request), post_id, payload.model_dump(exclude_unset=True, exclude_none=True)
    )
    return _post(post)


# --- Workflow ---


@router.post(
    "/{kind}/{item_id}/publish",
    response={200: dict, **STAFF_ERRORS},
    auth=bearer_auth,
    operation_id="publishContent",
    summary="Publish a section or post now",
)
def publish(request: HttpRequest, kind: str, item_id: int) -> dict:
    """`kind` is `section` or `post`."""
    item = services.publish(get_principal(request), kind, item_id)
    return _section(item).model_dump() if kind == "section" else _post(item).model_dump()


@router.post(
    "/{kind}/{item_id}/schedule",
    response={200: dict, **STAFF_ERRORS},
    auth=bearer_auth,
    operation_id="scheduleContent",
    summary="Schedule a draft for publication",
)
def schedule(request: HttpRequest, kind: str, item_id: int, payload: ScheduleRequest) -> dict:
    item = services.schedule(get_principal(request), kind, item_id, payload.scheduled_for)
    return _section(item).model_dump() if kind == "section" else _post(item).model_dump()
