"""WebSocket sync channel tests."""
from __future__ import annotations

import os
from typing import Any, Iterator

import pytest
from fastapi.testclient import TestClient
from fastapi.websockets import WebSocketDisconnect
from sqlalchemy import delete

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_living_library.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("MEDIA_ROOT", "./test_media")

from living_library.constants import MIRRORED_COLLECTIONS  # noqa: E402
from living_library.database import Base, SessionLocal, engine  # noqa: E402
from living_library.main import app  # noqa: E402
from living_library.models import Account, StoreDocument  # noqa: E402


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
def client() -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client


def _token(client: TestClient, email: str) -> str:
    response = client.post("/auth/signup", json={"email": email, "password": "secret123"})
    return response.json()["access_token"]


def _initial_snapshots(websocket) -> dict[str, Any]:
    snapshots = {}
    for _ in MIRRORED_COLLECTIONS:
        message = websocket.receive_json()
        assert message["type"] == "snapshot"
        snapshots[message["collection"]] = message["data"]
    return snapshots


def test_guest_receives_every_collection_and_pong(client: TestClient):
    with client.websocket_connect("/ws/sync") as websocket:
        snapshots = _initial_snapshots(websocket)
        assert set(snapshots) == set(MIRRORED_COLLECTIONS)
        assert snapshots["reports"] == []

        websocket.send_json({"type": "ping"})
        assert websocket.receive_json() == {"type": "pong"}

        websocket.send_json({"type": "hello"})
        assert websocket.receive_json() == {"type": "ready", "uid": None}


def test_member_sees_own_profile_and_refresh(client: TestClient):
    token = _token(client, "socket@example.com")

    with client.websocket_connect(f"/ws/sync?token={token}") as websocket:
        snapshots = _initial_snapshots(websocket)
        assert [user["email"] for user in snapshots["users"]] == ["socket@example.com"]

        websocket.send_json({"type": "refresh", "collection": "likes"})
        assert websocket.receive_json() == {"type": "snapshot", "collection": "likes", "data": {}}

        websocket.send_json({"type": "refresh", "collection": "accounts"})
        assert websocket.receive_json()["type"] == "error"


def test_invalid_token_closes_socket(client: TestClient):
    with pytest.raises(WebSocketDisconnect) as excinfo:
        with client.websocket_connect("/ws/sync?token=forged") as websocket:
            websocket.receive_json()
    assert excinfo.value.code == 1008


def test_writes_are_pushed_to_connected_sockets(client: TestClient):
    token = _token(client, "pusher@example.com")
    headers = {"Authorization": f"Bearer {token}"}
    uid = client.get("/auth/me", headers=headers).json()["user"]["uid"]

    with client.websocket_connect("/ws/sync") as websocket:
        _initial_snapshots(websocket)

        response = client.post("/stories/1/like", headers=headers)
        assert response.status_code == 200

        for _ in range(10):
            message = websocket.receive_json()
            if message.get("collection") == "likes":
                break
        assert message["data"] == {"1": [uid]}
