"""Request and response bodies of the AI proxy endpoints (camelCase on the wire)."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ProcessFileRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_data: str | None = Field(default=None, alias="fileData")
    mime_type: str | None = Field(default=None, alias="mimeType")


class ExtractionResponse(BaseModel):
    content: str
    summary: str
    tags: list[str]
    categories: list[str]


class SummarizeRequest(BaseModel):
    text: str | None = None


class SummaryResponse(BaseModel):
    summary: str


class ChatRequest(BaseModel):
    history: list[dict[str, Any]] | None = None
    message: str | None = None


class ChatResponse(BaseModel):
    text: str


class ErrorResponse(BaseModel):
    error: str


__all__ = [
    "ChatRequest",
    "ChatResponse",
    "ErrorResponse",
    "ExtractionResponse",
    "ProcessFileRequest",
    "SummarizeRequest",
    "SummaryResponse",
]
