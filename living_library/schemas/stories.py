"""Pydantic schemas for library stories."""
from __future__ import annotations

from pydantic import BaseModel, Field

from ..constants import StoryStatus


class StoryCreate(BaseModel):
    title: str = Field(..., max_length=200)
    category: str | list[str]
    short_description: str = Field(..., max_length=500)
    content: str = ""
    summary: str | None = None
    tags: str | list[str] | None = None
    file_name: str | None = Field(default=None, max_length=255)
    status: StoryStatus = "pending_review"


class StoryUpdate(BaseModel):
    title: str | None = Field(default=None, max_length=200)
    category: str | list[str] | None = None
    short_description: str | None = Field(default=None, max_length=500)
    content: str | None = None
    summary: str | None = None
    tags: str | list[str] | None = None
    file_name: str | None = Field(default=None, max_length=255)
    status: StoryStatus | None = None


class StoryResponse(BaseModel):
    id: str
    title: str
    category: list[str]
    short_description: str = ""
    content: str = ""
    summary: str | None = None
    image_url: str | None = None
    author_id: str | None = None
    author_name: str | None = None
    author_image_url: str | None = None
    file_name: str | None = None
    status: StoryStatus = "published"
    tags: list[str] = Field(default_factory=list)
    created_at: str | None = None


class StoryListResponse(BaseModel):
    items: list[StoryResponse]
    total: int


class EmpathyStats(BaseModel):
    average: float
    count: int
    user_rating: int | None = None
    label: str


class StoryEngagement(BaseModel):
    like_count: int
    liked: bool
    bookmarked: bool
    reported: bool
    comment_count: int
    empathy: EmpathyStats


class StoryDetailResponse(BaseModel):
    story: StoryResponse
    engagement: StoryEngagement


class StoryDraftRequest(BaseModel):
    file_data: str = Field(..., min_length=1)
    mime_type: str = Field(..., min_length=1)


__all__ = [
    "EmpathyStats",
    "StoryCreate",
    "StoryDetailResponse",
    "StoryDraftRequest",
    "StoryEngagement",
    "StoryListResponse",
    "StoryResponse",
    "StoryUpdate",
]
