"""Pydantic schemas for likes, bookmarks, empathy ratings and reports."""
from __future__ import annotations

from pydantic import BaseModel

from .stories import EmpathyStats


class LikeResponse(BaseModel):
    resource_id: str
    liked: bool
    like_count: int


class BookmarkResponse(BaseModel):
    resource_id: str
    bookmarked: bool
    bookmarks: list[str]


class EmpathyRequest(BaseModel):
    # Range is enforced by the rating operation, which ignores out-of-range values.
    rating: float


class EmpathyResponse(BaseModel):
    resource_id: str
    applied: bool
    empathy: EmpathyStats


class ReportRequest(BaseModel):
    resource_title: str | None = None


class ReportResponse(BaseModel):
    resource_id: str
    reported: bool


__all__ = [
    "BookmarkResponse",
    "EmpathyRequest",
    "EmpathyResponse",
    "LikeResponse",
    "ReportRequest",
    "ReportResponse",
]
