"""AI proxy routes: file extraction, summaries and the library guide chat.

Errors use ``{"error": ...}`` bodies so browser clients can show them as-is.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from ..config import STORE_CONFIG_NOTICE, get_settings
from ..dependencies import INVALID_TOKEN_MESSAGE, NO_TOKEN_MESSAGE, LibraryServices, get_ai_service
from ..schemas import (
    ChatRequest,
    ChatResponse,
    ErrorResponse,
    ExtractionResponse,
    ProcessFileRequest,
    SummarizeRequest,
    SummaryResponse,
)
from ..services.ai_service import AICompletionError, AIService, InvalidChatHistoryError, InvalidFileDataError
from ..services.identity_service import InvalidTokenError

router = APIRouter(prefix="/api", tags=["ai"])
logger = logging.getLogger(__name__)

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    413: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def enforce_body_limit(request: Request) -> None:
    limit = get_settings().max_upload_bytes
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > limit:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail="Request body too large")


def exceeds_upload_limit(value: str) -> bool:
    """True when an upload field is longer than the request cap; chunked bodies skip the header check."""

    return len(value) > get_settings().max_upload_bytes


async def _verify_bearer(request: Request) -> tuple[str | None, JSONResponse | None]:
    """Return the caller uid, or the error response to send instead."""

    header = request.headers.get("authorization") or ""
    if not header.startswith("Bearer "):
        return None, _error(status.HTTP_401_UNAUTHORIZED, NO_TOKEN_MESSAGE)
    services: LibraryServices | None = getattr(request.app.state, "services", None)
    if services is None:
        return None, _error(status.HTTP_503_SERVICE_UNAVAILABLE, STORE_CONFIG_NOTICE)
    token = header.split("Bearer ", 1)[1]
    try:
        principal = await run_in_threadpool(services.identity.verify_id_token, token)
    except InvalidTokenError:
        logger.warning("Rejected AI request with an invalid token")
        return None, _error(status.HTTP_403_FORBIDDEN, INVALID_TOKEN_MESSAGE)
    return principal.uid, None


@router.post(
    "/process-file",
    response_model=ExtractionResponse,
    responses=_ERROR_RESPONSES,
    dependencies=[Depends(enforce_body_limit)],
)
async def process_file(
    payload: ProcessFileRequest,
    request: Request,
    ai: AIService = Depends(get_ai_service),
):
    uid, rejection = await _verify_bearer(request)
    if rejection is not None:
        return rejection
    if not payload.file_data or not payload.mime_type:
        return _error(status.HTTP_400_BAD_REQUEST, "Missing fileData or mimeType")
    if exceeds_upload_limit(payload.file_data):
        return _error(status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, "Request body too large")

    logger.info("Processing file for user %s", uid)
    try:
        result = await ai.extract(payload.file_data, payload.mime_type)
    except InvalidFileDataError:
        return _error(status.HTTP_400_BAD_REQUEST, "fileData must be base64 encoded")
    except AICompletionError:
        logger.exception("Error processing file")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to process file on the server.")
    return ExtractionResponse(**result.to_dict())


@router.post(
    "/summarize",
    response_model=SummaryResponse,
    responses=_ERROR_RESPONSES,
    dependencies=[Depends(enforce_body_limit)],
)
async def summarize(payload: SummarizeRequest, ai: AIService = Depends(get_ai_service)):
    if not payload.text:
        return _error(status.HTTP_400_BAD_REQUEST, "Missing text to summarize")
    try:
        summary = await ai.summarize(payload.text)
    except AICompletionError:
        logger.exception("Error summarizing text")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to summarize text on the server.")
    return SummaryResponse(summary=summary)


@router.post(
    "/chat",
    response_model=ChatResponse,
    responses=_ERROR_RESPONSES,
    dependencies=[Depends(enforce_body_limit)],
)
async def chat(payload: ChatRequest, ai: AIService = Depends(get_ai_service)):
    # An empty history is a valid first turn; only a missing one is rejected.
    if payload.history is None or not payload.message:
        return _error(status.HTTP_400_BAD_REQUEST, "Missing history or message for chat")
    try:
        reply = await ai.converse(payload.history, payload.message)
    except InvalidChatHistoryError:
        return _error(status.HTTP_400_BAD_REQUEST, "Missing history or message for chat")
    except AICompletionError:
        logger.exception("Error handling chat")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to get chat response from the server.")
    return ChatResponse(text=reply)


__all__ = ["enforce_body_limit", "exceeds_upload_limit", "router"]
