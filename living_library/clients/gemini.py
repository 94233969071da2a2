from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

import httpx

from ..config import get_settings

logger = logging.getLogger(__name__)


class GeminiClientError(RuntimeError):
    """Raised when the Gemini API call fails or returns nothing usable."""


def text_part(text: str) -> dict[str, Any]:
    return {"text": text}


def inline_part(data_base64: str, mime_type: str) -> dict[str, Any]:
    return {"inline_data": {"mime_type": mime_type, "data": data_base64}}


class GeminiClient:
    """Minimal async client for the Gemini ``generateContent`` REST endpoint."""

    def __init__(
        self,
        api_key: str,
        *,
        model: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self.api_key = api_key
        self.model = model or settings.gemini_model
        self.base_url = (base_url or settings.gemini_base_url).rstrip("/")
        self.timeout = float(timeout or settings.gemini_timeout or 60.0)
        self._transport = transport

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    async def generate(
        self,
        contents: Sequence[Mapping[str, Any]],
        *,
        system_instruction: str | None = None,
        temperature: float | None = None,
        response_schema: Mapping[str, Any] | None = None,
    ) -> str:
        """Send ``contents`` (role-tagged turns) and return the concatenated reply text."""

        payload: dict[str, Any] = {"contents": list(contents)}
        generation_config: dict[str, Any] = {}
        if temperature is not None:
            generation_config["temperature"] = temperature
        if response_schema is not None:
            generation_config["responseMimeType"] = "application/json"
            generation_config["responseSchema"] = dict(response_schema)
        if generation_config:
            payload["generationConfig"] = generation_config
        if system_instruction:
            payload["systemInstruction"] = {"parts": [text_part(system_instruction)]}

        headers = {"x-goog-api-key": self.api_key, "Content-Type": "application/json"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.endpoint, json=payload, headers=headers)
                response.raise_for_status()
        except httpx.TimeoutException as exc:  # pragma: no cover - timeout path
            logger.error("Gemini request timed out after %.1fs", self.timeout)
            raise GeminiClientError("Gemini request timed out") from exc
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Gemini request failed with status %s: %s",
                exc.response.status_code,
                exc.response.text[:500],
            )
            raise GeminiClientError(f"Gemini request failed with status {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:  # pragma: no cover - network failure path
            logger.exception("Gemini request failed")
            raise GeminiClientError("Gemini request failed") from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise GeminiClientError("Gemini response was not valid JSON") from exc
        return _extract_text(data)


def _extract_text(data: Any) -> str:
    candidates = data.get("candidates") if isinstance(data, dict) else None
    if not candidates:
        feedback = data.get("promptFeedback") if isinstance(data, dict) else None
        raise GeminiClientError(f"Gemini returned no candidates: {feedback}")
    parts = (candidates[0].get("content") or {}).get("parts") or []
    text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
    if not text:
        raise GeminiClientError("Gemini returned an empty reply")
    return text


__all__ = ["GeminiClient", "GeminiClientError", "inline_part", "text_part"]
