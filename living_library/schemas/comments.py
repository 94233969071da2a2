"""Pydantic schemas for story comments."""
from __future__ import annotations

from pydantic import BaseModel, Field


class CommentCreate(BaseModel):
    text: str = Field(..., max_length=2000)


class CommentResponse(BaseModel):
    id: str
    resource_id: str
    author_id: str
    author_name: str | None = None
    author_image_url: str | None = None
    text: str
    timestamp: int


class CommentListResponse(BaseModel):
    items: list[CommentResponse]


__all__ = ["CommentCreate", "CommentListResponse", "CommentResponse"]
