"""
Content API schemas.
"""

from datetime import datetime

from pydantic import BaseModel, Field

# --- Request Schemas ---


class SectionUpsertRequest(BaseModel):
    """Working-copy fields of a page section. Omitted fields are left as they are."""

    title: str | None = Field(default=None, max_length=255)
    content: str | None = None
    media_urls: list[str] | None = None


class PostCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    page: str = Field(..., min_length=1, max_length=100, examples=["news"])
    slug: str | None = Field(default=None, max_length=255, description="Defaults to the slugified title")
    category: str = Field(default="", max_length=100)
    tags: list[str] = Field(default_factory=list)
    content: str = ""
    media_urls: list[str] = Field(default_factory=list)


class PostUpdateRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    page: str | None = Field(default=None, min_length=1, max_length=100)
    slug: str | None = Field(default=None, max_length=255)
    category: str | None = Field(default=None, max_length=100)
    tags: list[str] | None = None
    content: str | None = None
    media_urls: list[str] | None = None


class ScheduleRequest(BaseModel):
    scheduled_for: datetime = Field(..., description="Timezone-aware publication time in the future")


# --- Response Schemas ---


class WorkflowFields(BaseModel):
    id: int
    title: str
    content: str
    media_urls: list[str]
    status: str
    scheduled_for: datetime | None = None
    revision: int
    published_title: str
    published_content: str
    published_media_urls: list[str]
    published_at: datetime | None = None
    created_by_id: int | None = None
    updated_by_id: int | None = None
    created_at: datetime
    updated_at: datetime


class SectionResponse(WorkflowFields):
    page_name: str
    section_key: str


class PostResponse(WorkflowFields):
    slug: str
    page: str
    category: str
    tags: list[str]


class SectionListResponse(BaseModel):
    sections: list[SectionResponse]


class PostListResponse(BaseModel):
    posts: list[PostResponse]


class PublishedSection(BaseModel):
    """Public snapshot of a section."""

    section_key: str
    title: str
    content: str
    media_urls: list[str]
    published_at: datetime


class PublishedPageResponse(BaseModel):
    page_name: str
    sections: list[PublishedSection]


class PublishedPost(BaseModel):
    slug: str
    page: str
    category: str
    tags: list[str]
    title: str
    content: str
    media_urls: list[str]
    published_at: datetime


class PublishedPostListResponse(BaseModel):
    posts: list[PublishedPost]
