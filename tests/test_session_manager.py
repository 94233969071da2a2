"""Tests for session tracking, profile bootstrap and the mirror hand-off."""
from __future__ import annotations

import os
from typing import Iterator

import pytest
from sqlalchemy import delete

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_living_library.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("MEDIA_ROOT", "./test_media")

from living_library.constants import USERS, placeholder_avatar_url  # noqa: E402
from living_library.database import Base, SessionLocal, engine  # noqa: E402
from living_library.models import Account, StoreDocument  # noqa: E402
from living_library.services.collection_mirror import CollectionMirror  # noqa: E402
from living_library.services.document_store import DocumentStore, StoreError  # noqa: E402
from living_library.services.identity_service import (  # noqa: E402
    AuthSession,
    IdentityProvider,
    InvalidCredentialsError,
)
from living_library.services.session_manager import SessionManager  # noqa: E402


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
def store() -> DocumentStore:
    return DocumentStore(SessionLocal)


@pytest.fixture
def provider() -> IdentityProvider:
    return IdentityProvider(SessionLocal)


def test_first_resolution_clears_loading_and_starts_mirror(store, provider):
    mirror = CollectionMirror(store)
    manager = SessionManager(AuthSession(provider), store, mirror)
    assert manager.loading

    manager.start()

    assert not manager.loading
    assert manager.current_user is None
    assert mirror.running
    mirror.stop()


def test_sign_up_bootstraps_profile_document(store, provider):
    manager = SessionManager(AuthSession(provider), store)
    manager.start()

    profile = manager.sign_up("maya@example.com", "secret123")

    assert profile is not None
    assert profile.name == "maya"
    assert profile.image_url == placeholder_avatar_url(profile.uid)
    document = store.get(USERS, profile.uid)
    assert document.data["name"] == "maya"
    assert document.data["email"] == "maya@example.com"
    assert document.data["bookmarks"] == []
    assert document.data["createdAt"]
    assert manager.bookmarks == ()


def test_existing_profile_wins_over_defaults(store, provider):
    principal = provider.create_user("stored@example.com", "secret123", display_name="Provider Name")
    store.set(USERS, principal.uid, {"name": "Stored Name", "imageUrl": "https://img/x.png", "bookmarks": ["1", "3"]})

    manager = SessionManager(AuthSession(provider), store)
    manager.start()
    profile = manager.sign_in("stored@example.com", "secret123")

    assert profile.name == "Stored Name"
    assert profile.image_url == "https://img/x.png"
    assert manager.bookmarks == ("1", "3")


def test_store_failure_falls_back_to_defaults(store, provider, monkeypatch):
    provider.create_user("offline@example.com", "secret123", display_name="Offline")

    def _unavailable(*_args, **_kwargs):
        raise StoreError("store down")

    monkeypatch.setattr(store, "get", _unavailable)
    manager = SessionManager(AuthSession(provider), store)
    manager.start()

    profile = manager.sign_in("offline@example.com", "secret123")

    assert profile.name == "Offline"
    assert manager.bookmarks == ()


def test_sign_out_clears_user_and_bookmarks(store, provider):
    manager = SessionManager(AuthSession(provider), store)
    manager.start()
    manager.sign_up("bye@example.com", "secret123")
    manager.apply_bookmarks(["2"])

    manager.sign_out()

    assert manager.current_user is None
    assert manager.bookmarks == ()


def test_failed_sign_in_propagates_and_keeps_state(store, provider):
    provider.create_user("keep@example.com", "secret123")
    manager = SessionManager(AuthSession(provider), store)
    manager.start()

    with pytest.raises(InvalidCredentialsError):
        manager.sign_in("keep@example.com", "wrong-password")
    assert manager.current_user is None


def test_resume_restores_user_from_token(store, provider):
    first = AuthSession(provider)
    principal = first.sign_up("token@example.com", "secret123", display_name="Tok")

    manager = SessionManager(AuthSession(provider), store)
    manager.start()
    profile = manager.resume(first.id_token)

    assert profile.uid == principal.uid
    assert profile.name == "Tok"


def test_apply_profile_updates_current_user(store, provider):
    manager = SessionManager(AuthSession(provider), store)
    manager.start()
    manager.sign_up("rename@example.com", "secret123")

    manager.apply_profile(name="Renamed", image_url="https://img/new.png")

    assert manager.current_user.name == "Renamed"
    assert manager.current_user.image_url == "https://img/new.png"
