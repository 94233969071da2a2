"""API routes for story comments."""
from __future__ import annotations

from typing import Any, Mapping

from fastapi import APIRouter, Depends, HTTPException, Response, status

from ..dependencies import get_library_context, get_signed_in_context
from ..schemas import CommentCreate, CommentListResponse, CommentResponse
from ..services.document_store import StoreError
from ..services.library_context import LibraryContext
from ..services.mutation_service import InvalidInputError, PermissionDeniedError, ResourceNotFoundError
from .stories import raise_http_error

router = APIRouter(tags=["comments"])


def _serialize_comment(comment: Mapping[str, Any]) -> CommentResponse:
    return CommentResponse(
        id=str(comment["id"]),
        resource_id=str(comment.get("resourceId") or ""),
        author_id=str(comment.get("authorId") or ""),
        author_name=comment.get("authorName"),
        author_image_url=comment.get("authorImageUrl"),
        text=comment.get("text") or "",
        timestamp=int(comment.get("timestamp") or 0),
    )


@router.get("/stories/{story_id}/comments", response_model=CommentListResponse)
def list_comments(story_id: str, context: LibraryContext = Depends(get_library_context)) -> CommentListResponse:
    """Comments on a visible story, oldest first."""

    try:
        context.get_resource(story_id)
    except (ResourceNotFoundError, PermissionDeniedError) as exc:
        raise_http_error(exc)
    return CommentListResponse(items=[_serialize_comment(comment) for comment in context.comments_for(story_id)])


@router.post(
    "/stories/{story_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_comment(
    story_id: str,
    payload: CommentCreate,
    context: LibraryContext = Depends(get_signed_in_context),
) -> CommentResponse:
    try:
        context.get_resource(story_id)
        comment_id = context.mutations.add_comment(story_id, payload.text)
    except (ResourceNotFoundError, PermissionDeniedError, InvalidInputError, StoreError) as exc:
        raise_http_error(exc)
    comment = next((item for item in context.mirror.comments if item["id"] == comment_id), None)
    if comment is None:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Comment was not saved")
    return _serialize_comment(comment)


@router.delete("/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_comment(comment_id: str, context: LibraryContext = Depends(get_signed_in_context)) -> Response:
    try:
        removed = context.mutations.delete_comment(comment_id)
    except (PermissionDeniedError, StoreError) as exc:
        raise_http_error(exc)
    if not removed:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


__all__ = ["router"]
