"""API routes for likes, bookmarks, empathy ratings and reports."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from ..dependencies import get_signed_in_context
from ..schemas import (
    BookmarkResponse,
    EmpathyRequest,
    EmpathyResponse,
    LikeResponse,
    ReportRequest,
    ReportResponse,
    StoryListResponse,
)
from ..services.document_store import StoreError
from ..services.library_context import LibraryContext
from ..services.mutation_service import AlreadyReportedError, PermissionDeniedError, ResourceNotFoundError
from .stories import raise_http_error, serialize_empathy, serialize_story

router = APIRouter(tags=["interactions"])


def _require_visible(context: LibraryContext, story_id: str) -> dict:
    try:
        return context.get_resource(story_id)
    except (ResourceNotFoundError, PermissionDeniedError) as exc:
        raise_http_error(exc)


@router.post("/stories/{story_id}/like", response_model=LikeResponse)
def toggle_like(story_id: str, context: LibraryContext = Depends(get_signed_in_context)) -> LikeResponse:
    _require_visible(context, story_id)
    try:
        liked = context.mutations.toggle_like(story_id)
    except StoreError as exc:
        raise_http_error(exc)
    return LikeResponse(resource_id=story_id, liked=bool(liked), like_count=context.like_count(story_id))


@router.post("/stories/{story_id}/bookmark", response_model=BookmarkResponse)
def toggle_bookmark(story_id: str, context: LibraryContext = Depends(get_signed_in_context)) -> BookmarkResponse:
    _require_visible(context, story_id)
    try:
        bookmarked = context.mutations.toggle_bookmark(story_id)
    except StoreError as exc:
        raise_http_error(exc)
    return BookmarkResponse(
        resource_id=story_id,
        bookmarked=bool(bookmarked),
        bookmarks=list(context.session.bookmarks),
    )


@router.get("/bookmarks", response_model=StoryListResponse)
def list_bookmarks(context: LibraryContext = Depends(get_signed_in_context)) -> StoryListResponse:
    items = [serialize_story(story) for story in context.bookmarked_resources()]
    return StoryListResponse(items=items, total=len(items))


@router.post("/stories/{story_id}/empathy", response_model=EmpathyResponse)
def rate_empathy(
    story_id: str,
    payload: EmpathyRequest,
    context: LibraryContext = Depends(get_signed_in_context),
) -> EmpathyResponse:
    """Record the caller's rating; values outside 0-100 are ignored and reported as not applied."""

    _require_visible(context, story_id)
    try:
        applied = context.mutations.rate_empathy(story_id, payload.rating)
    except StoreError as exc:
        raise_http_error(exc)
    return EmpathyResponse(resource_id=story_id, applied=applied, empathy=serialize_empathy(context, story_id))


@router.post("/stories/{story_id}/report", response_model=ReportResponse)
def report_story(
    story_id: str,
    payload: ReportRequest | None = None,
    context: LibraryContext = Depends(get_signed_in_context),
) -> ReportResponse:
    story = _require_visible(context, story_id)
    title = (payload.resource_title if payload is not None else None) or story.get("title") or ""
    try:
        reported = context.mutations.report_content(story_id, title)
    except (AlreadyReportedError, StoreError) as exc:
        raise_http_error(exc)
    return ReportResponse(resource_id=story_id, reported=reported)


__all__ = ["router"]
