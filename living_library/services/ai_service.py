"""Story drafting assistance: file extraction, summaries and the library guide chat."""
from __future__ import annotations

import base64
import binascii
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Protocol, Sequence

from ..clients.gemini import GeminiClient, GeminiClientError, inline_part, text_part
from ..config import get_settings
from ..security.secrets import is_placeholder, optional_secret

logger = logging.getLogger(__name__)

SUMMARY_FALLBACK = "Sorry, I couldn't generate a summary. Please try again later."
CHAT_FALLBACK = "I'm sorry, but I encountered an error. Please try again."
CONTENT_FALLBACK = "Sorry, I couldn't process the file. Please try again."
FILE_SUMMARY_FALLBACK = "Sorry, a summary could not be generated for this file."

EXTRACTION_TEMPERATURE = 0.2

EXTRACTION_PROMPT = (
    "Transcribe or extract all text from the attached file exactly as written. Keep every line "
    "break, blank line, indentation run and punctuation mark as it appears, and do not correct, "
    "rephrase or reformat anything; audio should be transcribed word for word. Then write a short "
    "summary, choose 5 to 7 keyword tags and suggest 1 to 3 categories. Respond with JSON holding "
    "'content', 'summary', 'tags' and 'categories'."
)

SUMMARY_PROMPT = "Summarise the following text in a few clear, plain sentences:\n\n---\n\n{text}"

GUIDE_INSTRUCTION = (
    "You are Leo, the guide of the Living Library, a collection of first-person stories about "
    "caste, gender, migration and identity. Help readers find stories and reflect on them. Be warm "
    "and curious, ask a thoughtful follow-up question when it helps, and talk like a friend who "
    "loves stories rather than like an assistant."
)

EXTRACTION_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "content": {"type": "STRING"},
        "summary": {"type": "STRING"},
        "tags": {"type": "ARRAY", "items": {"type": "STRING"}},
        "categories": {"type": "ARRAY", "items": {"type": "STRING"}},
    },
}

_ROLE_ALIASES = {"user": "user", "model": "model", "ai": "model", "assistant": "model"}


class AICompletionError(RuntimeError):
    """Raised when the AI provider cannot produce a usable answer."""


class InvalidFileDataError(AICompletionError):
    """Raised when uploaded file data is not valid base64."""


class InvalidChatHistoryError(AICompletionError):
    """Raised when a chat turn names a role the guide does not understand."""


class CompletionClient(Protocol):
    async def generate(
        self,
        contents: Sequence[Mapping[str, Any]],
        *,
        system_instruction: str | None = None,
        temperature: float | None = None,
        response_schema: Mapping[str, Any] | None = None,
    ) -> str: ...


@dataclass
class ExtractionResult:
    content: str
    summary: str
    tags: list[str] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"content": self.content, "summary": self.summary, "tags": self.tags, "categories": self.categories}

    @classmethod
    def fallback(cls) -> "ExtractionResult":
        return cls(content=CONTENT_FALLBACK, summary=FILE_SUMMARY_FALLBACK)


_client_override: Optional[CompletionClient] = None


def set_ai_client(client: Optional[CompletionClient]) -> None:
    """Replace the provider client process-wide; ``None`` restores the configured one."""

    global _client_override
    _client_override = client


def get_ai_client() -> CompletionClient:
    if _client_override is not None:
        return _client_override
    settings = get_settings()
    api_key = optional_secret("GEMINI_API_KEY") or settings.gemini_api_key
    if is_placeholder(api_key):
        raise AICompletionError("GEMINI_API_KEY is not configured")
    return GeminiClient(api_key)


def _strip_data_url(file_data: str) -> str:
    if file_data.startswith("data:") and "," in file_data:
        return file_data.split(",", 1)[1]
    return file_data


def decode_file_data(file_data: str) -> bytes:
    """Decode base64 upload data, tolerating a ``data:<mime>;base64,`` prefix."""

    try:
        return base64.b64decode(_strip_data_url(file_data), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidFileDataError("fileData is not valid base64") from exc


def normalize_history(history: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
    """Convert chat turns to provider format; ``ai`` turns become ``model`` turns."""

    turns: list[dict[str, Any]] = []
    for entry in history:
        role = _ROLE_ALIASES.get(str(entry.get("role") or entry.get("author") or "").lower())
        if role is None:
            raise InvalidChatHistoryError(f"Unsupported chat role: {entry.get('role')!r}")
        if entry.get("parts"):
            parts = [text_part(str(part.get("text", ""))) for part in entry["parts"] if isinstance(part, Mapping)]
        else:
            parts = [text_part(str(entry.get("text", "")))]
        turns.append({"role": role, "parts": parts})
    return turns


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if str(item).strip()]


class AIService:
    """Thin domain layer over the completion client; strict methods raise, safe ones fall back."""

    def __init__(self, client: CompletionClient | None = None) -> None:
        self._client = client

    @property
    def client(self) -> CompletionClient:
        return self._client if self._client is not None else get_ai_client()

    async def extract(self, file_data: str, mime_type: str) -> ExtractionResult:
        decode_file_data(file_data)
        payload = _strip_data_url(file_data)
        contents = [{"role": "user", "parts": [inline_part(payload, mime_type), text_part(EXTRACTION_PROMPT)]}]
        try:
            raw = await self.client.generate(
                contents,
                temperature=EXTRACTION_TEMPERATURE,
                response_schema=EXTRACTION_SCHEMA,
            )
        except GeminiClientError as exc:
            raise AICompletionError("File extraction failed") from exc
        try:
            parsed = json.loads(raw)
        except ValueError as exc:
            raise AICompletionError("Extraction reply was not JSON") from exc
        if not isinstance(parsed, dict):
            raise AICompletionError("Extraction reply was not a JSON object")
        # Content keeps its whitespace untouched.
        return ExtractionResult(
            content=str(parsed.get("content") or ""),
            summary=str(parsed.get("summary") or ""),
            tags=_string_list(parsed.get("tags")),
            categories=_string_list(parsed.get("categories")),
        )

    async def summarize(self, text: str) -> str:
        contents = [{"role": "user", "parts": [text_part(SUMMARY_PROMPT.format(text=text))]}]
        try:
            return await self.client.generate(contents)
        except GeminiClientError as exc:
            raise AICompletionError("Summary generation failed") from exc

    async def converse(self, history: Iterable[Mapping[str, Any]], message: str) -> str:
        contents = normalize_history(history)
        contents.append({"role": "user", "parts": [text_part(message)]})
        try:
            return await self.client.generate(contents, system_instruction=GUIDE_INSTRUCTION)
        except GeminiClientError as exc:
            raise AICompletionError("Chat reply failed") from exc

    async def draft_from_file(self, file_data: str, mime_type: str) -> ExtractionResult:
        try:
            return await self.extract(file_data, mime_type)
        except InvalidFileDataError:
            raise
        except AICompletionError:
            logger.exception("Falling back after failed file extraction")
            return ExtractionResult.fallback()

    async def summary_or_apology(self, text: str) -> str:
        try:
            return await self.summarize(text)
        except AICompletionError:
            logger.exception("Falling back after failed summary")
            return SUMMARY_FALLBACK

    async def reply_or_apology(self, history: Iterable[Mapping[str, Any]], message: str) -> str:
        try:
            return await self.converse(history, message)
        except InvalidChatHistoryError:
            raise
        except AICompletionError:
            logger.exception("Falling back after failed chat turn")
            return CHAT_FALLBACK


__all__ = [
    "AICompletionError",
    "AIService",
    "CHAT_FALLBACK",
    "CONTENT_FALLBACK",
    "CompletionClient",
    "ExtractionResult",
    "FILE_SUMMARY_FALLBACK",
    "InvalidChatHistoryError",
    "InvalidFileDataError",
    "SUMMARY_FALLBACK",
    "decode_file_data",
    "get_ai_client",
    "normalize_history",
    "set_ai_client",
]
