"""Tests for the AI proxy endpoints and the Gemini client."""
from __future__ import annotations

import asyncio
import base64
import json
import os
from typing import Any, Iterator

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import delete

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_living_library.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("MEDIA_ROOT", "./test_media")

from living_library.clients.gemini import GeminiClient, GeminiClientError  # noqa: E402
from living_library.config import get_settings  # noqa: E402
from living_library.database import Base, SessionLocal, engine  # noqa: E402
from living_library.main import app  # noqa: E402
from living_library.models import Account, StoreDocument  # noqa: E402
from living_library.services.ai_service import (  # noqa: E402
    CHAT_FALLBACK,
    CONTENT_FALLBACK,
    FILE_SUMMARY_FALLBACK,
    SUMMARY_FALLBACK,
    set_ai_client,
)


class StubAI:
    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []
        self.reply = "stub reply"
        self.error: Exception | None = None

    async def generate(self, contents, *, system_instruction=None, temperature=None, response_schema=None):
        self.calls.append(
            {
                "contents": list(contents),
                "system_instruction": system_instruction,
                "temperature": temperature,
                "response_schema": response_schema,
            }
        )
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture(scope="module", autouse=True)
def _create_schema() -> Iterator[None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _clean_database() -> Iterator[None]:
    with SessionLocal() as session:
        session.execute(delete(StoreDocument))
        session.execute(delete(Account))
        session.commit()
    yield


@pytest.fixture
def stub() -> Iterator[StubAI]:
    instance = StubAI()
    set_ai_client(instance)
    yield instance
    set_ai_client(None)


@pytest.fixture
def client() -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(client: TestClient) -> dict[str, str]:
    response = client.post("/auth/signup", json={"email": "ai@example.com", "password": "secret123"})
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


FILE_DATA = base64.b64encode(b"Once upon a time\n\n  in a village").decode()


def test_process_file_requires_token(client: TestClient, stub: StubAI):
    response = client.post("/api/process-file", json={"fileData": FILE_DATA, "mimeType": "text/plain"})
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized: No token provided."}

    forbidden = client.post(
        "/api/process-file",
        json={"fileData": FILE_DATA, "mimeType": "text/plain"},
        headers={"Authorization": "Bearer forged"},
    )
    assert forbidden.status_code == 403
    assert forbidden.json() == {"error": "Forbidden: Invalid token."}
    assert stub.calls == []


def test_process_file_returns_extraction(client: TestClient, stub: StubAI, auth_headers):
    stub.reply = json.dumps(
        {
            "content": "Once upon a time\n\n  in a village",
            "summary": "A village tale.",
            "tags": ["village", "memory"],
            "categories": ["Culture"],
        }
    )

    response = client.post(
        "/api/process-file",
        json={"fileData": f"data:text/plain;base64,{FILE_DATA}", "mimeType": "text/plain"},
        headers=auth_headers,
    )

    assert response.status_code == 200, response.text
    assert response.json()["content"] == "Once upon a time\n\n  in a village"
    assert response.json()["categories"] == ["Culture"]
    call = stub.calls[0]
    inline = call["contents"][0]["parts"][0]["inline_data"]
    assert inline == {"mime_type": "text/plain", "data": FILE_DATA}
    assert call["response_schema"]["properties"]["tags"]["type"] == "ARRAY"
    assert call["temperature"] == 0.2


@pytest.mark.parametrize(
    "payload, message",
    [
        ({"mimeType": "text/plain"}, "Missing fileData or mimeType"),
        ({"fileData": FILE_DATA}, "Missing fileData or mimeType"),
        ({"fileData": "%%%not-base64%%%", "mimeType": "text/plain"}, "fileData must be base64 encoded"),
    ],
)
def test_process_file_bad_requests(client: TestClient, stub: StubAI, auth_headers, payload, message):
    response = client.post("/api/process-file", json=payload, headers=auth_headers)
    assert response.status_code == 400
    assert response.json() == {"error": message}


def test_process_file_measures_chunked_bodies(client: TestClient, stub: StubAI, auth_headers, monkeypatch):
    monkeypatch.setattr(get_settings(), "max_upload_bytes", 16)
    body = json.dumps({"fileData": FILE_DATA, "mimeType": "text/plain"}).encode()

    response = client.post(
        "/api/process-file",
        content=iter([body]),
        headers={**auth_headers, "Content-Type": "application/json"},
    )

    assert response.status_code == 413
    assert response.json() == {"error": "Request body too large"}
    assert stub.calls == []


def test_process_file_provider_failure(client: TestClient, stub: StubAI, auth_headers):
    stub.error = GeminiClientError("quota exceeded")
    response = client.post(
        "/api/process-file",
        json={"fileData": FILE_DATA, "mimeType": "text/plain"},
        headers=auth_headers,
    )
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to process file on the server."}


def test_summarize(client: TestClient, stub: StubAI):
    stub.reply = "Short version."
    response = client.post("/api/summarize", json={"text": "A very long story"})
    assert response.json() == {"summary": "Short version."}
    assert "A very long story" in stub.calls[0]["contents"][0]["parts"][0]["text"]

    assert client.post("/api/summarize", json={}).json() == {"error": "Missing text to summarize"}

    stub.error = GeminiClientError("down")
    failed = client.post("/api/summarize", json={"text": "x"})
    assert failed.status_code == 500
    assert failed.json() == {"error": "Failed to summarize text on the server."}


def test_chat_maps_roles_and_accepts_empty_history(client: TestClient, stub: StubAI):
    stub.reply = "Have you read 'Finding My Voice'?"
    history = [
        {"role": "user", "parts": [{"text": "Recommend something"}]},
        {"role": "ai", "text": "Sure, what themes?"},
    ]

    response = client.post("/api/chat", json={"history": history, "message": "Gender"})

    assert response.json() == {"text": "Have you read 'Finding My Voice'?"}
    contents = stub.calls[0]["contents"]
    assert [turn["role"] for turn in contents] == ["user", "model", "user"]
    assert contents[-1]["parts"] == [{"text": "Gender"}]
    assert "Living Library" in stub.calls[0]["system_instruction"]

    assert client.post("/api/chat", json={"history": [], "message": "Hi"}).status_code == 200
    missing = client.post("/api/chat", json={"message": "Hi"})
    assert missing.status_code == 400
    assert missing.json() == {"error": "Missing history or message for chat"}


def test_chat_rejects_unknown_roles(client: TestClient, stub: StubAI):
    history = [{"role": "narrator", "text": "Once upon a time"}]

    response = client.post("/api/chat", json={"history": history, "message": "Hi"})

    assert response.status_code == 400
    assert response.json() == {"error": "Missing history or message for chat"}
    assert stub.calls == []


def test_draft_endpoint_falls_back_to_apologies(client: TestClient, stub: StubAI, auth_headers):
    stub.error = GeminiClientError("down")
    response = client.post(
        "/stories/draft",
        json={"file_data": FILE_DATA, "mime_type": "text/plain"},
        headers=auth_headers,
    )
    assert response.status_code == 200
    assert response.json() == {
        "content": CONTENT_FALLBACK,
        "summary": FILE_SUMMARY_FALLBACK,
        "tags": [],
        "categories": [],
    }


def test_gemini_client_builds_request_and_joins_parts():
    seen: dict[str, Any] = {}

    def _handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["key"] = request.headers.get("x-goog-api-key")
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={"candidates": [{"content": {"parts": [{"text": "Hello, "}, {"text": "reader."}]}}]},
        )

    gemini = GeminiClient(
        "test-key",
        model="gemini-test",
        base_url="https://gemini.test/v1beta",
        transport=httpx.MockTransport(_handler),
    )
    reply = asyncio.run(
        gemini.generate([{"role": "user", "parts": [{"text": "hi"}]}], system_instruction="Be kind", temperature=0.5)
    )

    assert reply == "Hello, reader."
    assert seen["url"] == "https://gemini.test/v1beta/models/gemini-test:generateContent"
    assert seen["key"] == "test-key"
    assert seen["body"]["systemInstruction"] == {"parts": [{"text": "Be kind"}]}
    assert seen["body"]["generationConfig"] == {"temperature": 0.5}


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="boom"),
        httpx.Response(200, json={"candidates": []}),
        httpx.Response(200, json={"candidates": [{"content": {"parts": []}}]}),
    ],
)
def test_gemini_client_errors(response: httpx.Response):
    gemini = GeminiClient("test-key", transport=httpx.MockTransport(lambda request: response))
    with pytest.raises(GeminiClientError):
        asyncio.run(gemini.generate([{"role": "user", "parts": [{"text": "hi"}]}]))


def test_guide_falls_back_to_apology(client: TestClient, stub: StubAI):
    stub.reply = "Try 'The Journey Home'."
    ok = client.post("/stories/guide", json={"history": [], "message": "Something hopeful?"})
    assert ok.json() == {"text": "Try 'The Journey Home'."}

    stub.error = GeminiClientError("down")
    fallback = client.post("/stories/guide", json={"history": [], "message": "Anything else?"})
    assert fallback.status_code == 200
    assert fallback.json() == {"text": CHAT_FALLBACK}

    bad_role = client.post("/stories/guide", json={"history": [{"role": "narrator", "text": "x"}], "message": "Hi"})
    assert bad_role.status_code == 400


def test_story_summary_uses_story_text_and_falls_back(client: TestClient, stub: StubAI):
    stub.reply = "A name carries a family."
    response = client.post("/stories/1/summary")
    assert response.json() == {"summary": "A name carries a family."}
    assert "Growing up, my last name was just a name." in stub.calls[0]["contents"][0]["parts"][0]["text"]

    stub.error = GeminiClientError("down")
    assert client.post("/stories/1/summary").json() == {"summary": SUMMARY_FALLBACK}
    assert client.post("/stories/missing/summary").status_code == 404


def test_draft_rejects_oversized_file_data(client: TestClient, stub: StubAI, auth_headers, monkeypatch):
    monkeypatch.setattr(get_settings(), "max_upload_bytes", 16)
    response = client.post(
        "/stories/draft",
        content=iter([json.dumps({"file_data": FILE_DATA, "mime_type": "text/plain"}).encode()]),
        headers={**auth_headers, "Content-Type": "application/json"},
    )
    assert response.status_code == 413
    assert stub.calls == []
