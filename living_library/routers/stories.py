"""API routes for library stories."""
from __future__ import annotations

import logging
from typing import Any, Mapping, NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from ..dependencies import get_ai_service, get_library_context, get_signed_in_context
from ..schemas import (
    ChatRequest,
    ChatResponse,
    EmpathyStats,
    ExtractionResponse,
    StoryCreate,
    StoryDetailResponse,
    StoryDraftRequest,
    StoryEngagement,
    StoryListResponse,
    StoryResponse,
    StoryUpdate,
    SummaryResponse,
)
from ..services.ai_service import AIService, InvalidChatHistoryError, InvalidFileDataError
from ..services.document_store import StoreError
from ..services.library_context import LibraryContext
from ..services.library_query import normalize_categories
from ..services.mutation_service import (
    AlreadyReportedError,
    InvalidInputError,
    NotAuthenticatedError,
    PermissionDeniedError,
    ResourceNotFoundError,
)
from .ai import exceeds_upload_limit

router = APIRouter(prefix="/stories", tags=["stories"])
logger = logging.getLogger(__name__)


def serialize_story(story: Mapping[str, Any]) -> StoryResponse:
    created_at = story.get("createdAt")
    return StoryResponse(
        id=str(story["id"]),
        title=story.get("title") or "",
        category=normalize_categories(story.get("category")),
        short_description=story.get("shortDescription") or "",
        content=story.get("content") or "",
        summary=story.get("summary"),
        image_url=story.get("imageUrl"),
        author_id=story.get("authorId"),
        author_name=story.get("authorName"),
        author_image_url=story.get("authorImageUrl"),
        file_name=story.get("fileName"),
        status=story.get("status") or "published",
        tags=list(story.get("tags") or []),
        created_at=str(created_at) if created_at is not None else None,
    )


def serialize_empathy(context: LibraryContext, resource_id: str) -> EmpathyStats:
    summary = context.empathy_summary(resource_id)
    return EmpathyStats(
        average=summary.average,
        count=summary.count,
        user_rating=summary.user_rating,
        label=summary.label,
    )


def raise_http_error(exc: Exception) -> NoReturn:
    """Translate a library error into the matching HTTP error."""

    if isinstance(exc, NotAuthenticatedError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    if isinstance(exc, PermissionDeniedError):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    if isinstance(exc, ResourceNotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, AlreadyReportedError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if isinstance(exc, InvalidInputError):
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    if isinstance(exc, StoreError):
        logger.error("Store operation failed: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="The story library could not complete the request. Please try again.",
        ) from exc
    raise exc


def _detail(context: LibraryContext, story_id: str) -> StoryDetailResponse:
    try:
        story = context.get_resource(story_id)
    except (ResourceNotFoundError, PermissionDeniedError) as exc:
        raise_http_error(exc)
    engagement = context.engagement(story_id)
    return StoryDetailResponse(
        story=serialize_story(story),
        engagement=StoryEngagement(
            like_count=engagement["likeCount"],
            liked=engagement["liked"],
            bookmarked=engagement["bookmarked"],
            reported=engagement["reported"],
            comment_count=engagement["commentCount"],
            empathy=serialize_empathy(context, story_id),
        ),
    )


@router.get("", response_model=StoryListResponse)
def list_library(
    category: str | None = Query(default=None),
    q: str | None = Query(default=None, max_length=200),
    tag: list[str] = Query(default=[]),
    context: LibraryContext = Depends(get_library_context),
) -> StoryListResponse:
    """Curated and published stories filtered by category, search text and tags."""

    items = [serialize_story(story) for story in context.library(category=category, query=q, tags=tag)]
    return StoryListResponse(items=items, total=len(items))


@router.get("/categories", response_model=list[str])
def list_categories(context: LibraryContext = Depends(get_library_context)) -> list[str]:
    return context.categories()


@router.get("/tags", response_model=list[str])
def list_tags(context: LibraryContext = Depends(get_library_context)) -> list[str]:
    return context.all_tags()


@router.get("/mine", response_model=StoryListResponse)
def list_my_stories(context: LibraryContext = Depends(get_signed_in_context)) -> StoryListResponse:
    items = [serialize_story(story) for story in context.my_stories()]
    return StoryListResponse(items=items, total=len(items))


@router.post("/draft", response_model=ExtractionResponse)
async def draft_from_file(
    payload: StoryDraftRequest,
    context: LibraryContext = Depends(get_signed_in_context),
    ai: AIService = Depends(get_ai_service),
) -> ExtractionResponse:
    """Pre-fill a story from an uploaded file; provider failures yield apology placeholders."""

    if exceeds_upload_limit(payload.file_data):
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail="Request body too large")
    try:
        result = await ai.draft_from_file(payload.file_data, payload.mime_type)
    except InvalidFileDataError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return ExtractionResponse(**result.to_dict())


@router.post("/guide", response_model=ChatResponse)
async def ask_guide(
    payload: ChatRequest,
    ai: AIService = Depends(get_ai_service),
) -> ChatResponse:
    """Library guide chat for the browsing page; provider failures yield an apology reply."""

    if payload.history is None or not payload.message:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing history or message for chat")
    try:
        reply = await ai.reply_or_apology(payload.history, payload.message)
    except InvalidChatHistoryError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return ChatResponse(text=reply)


@router.get("/{story_id}", response_model=StoryDetailResponse)
def get_story(story_id: str, context: LibraryContext = Depends(get_library_context)) -> StoryDetailResponse:
    return _detail(context, story_id)


@router.post("/{story_id}/summary", response_model=SummaryResponse)
async def summarize_story(
    story_id: str,
    context: LibraryContext = Depends(get_library_context),
    ai: AIService = Depends(get_ai_service),
) -> SummaryResponse:
    try:
        story = context.get_resource(story_id)
    except (ResourceNotFoundError, PermissionDeniedError) as exc:
        raise_http_error(exc)
    text = story.get("content") or story.get("shortDescription") or ""
    if not text.strip():
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Story has no text to summarize")
    return SummaryResponse(summary=await ai.summary_or_apology(text))


@router.post("", response_model=StoryResponse, status_code=status.HTTP_201_CREATED)
def create_story(
    payload: StoryCreate,
    context: LibraryContext = Depends(get_signed_in_context),
) -> StoryResponse:
    try:
        story_id = context.mutations.add_story(
            title=payload.title,
            category=payload.category,
            short_description=payload.short_description,
            content=payload.content,
            summary=payload.summary,
            tags=payload.tags,
            file_name=payload.file_name,
            status=payload.status,
        )
        return serialize_story(context.get_resource(story_id))
    except (NotAuthenticatedError, InvalidInputError, ResourceNotFoundError, StoreError) as exc:
        raise_http_error(exc)


_UPDATE_FIELD_NAMES = {
    "title": "title",
    "category": "category",
    "short_description": "shortDescription",
    "content": "content",
    "summary": "summary",
    "tags": "tags",
    "file_name": "fileName",
    "status": "status",
}


@router.patch("/{story_id}", response_model=StoryResponse)
def update_story(
    story_id: str,
    payload: StoryUpdate,
    context: LibraryContext = Depends(get_signed_in_context),
) -> StoryResponse:
    updates = {_UPDATE_FIELD_NAMES[name]: value for name, value in payload.model_dump(exclude_unset=True).items()}
    if not updates:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="No changes supplied")
    try:
        context.mutations.update_story(story_id, updates)
        return serialize_story(context.get_resource(story_id))
    except (NotAuthenticatedError, PermissionDeniedError, ResourceNotFoundError, InvalidInputError, StoreError) as exc:
        raise_http_error(exc)


@router.post("/{story_id}/publish", response_model=StoryResponse)
def publish_story(story_id: str, context: LibraryContext = Depends(get_signed_in_context)) -> StoryResponse:
    try:
        context.mutations.publish_story(story_id)
        return serialize_story(context.get_resource(story_id))
    except (NotAuthenticatedError, PermissionDeniedError, ResourceNotFoundError, StoreError) as exc:
        raise_http_error(exc)


@router.delete("/{story_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_story(story_id: str, context: LibraryContext = Depends(get_signed_in_context)) -> Response:
    try:
        removed = context.mutations.delete_story(story_id)
    except (PermissionDeniedError, StoreError) as exc:
        raise_http_error(exc)
    if not removed:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Story not found.")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


__all__ = ["router", "raise_http_error", "serialize_empathy", "serialize_story"]
