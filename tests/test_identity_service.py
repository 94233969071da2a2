"""Tests for the email/password identity provider and per-client auth sessions."""
from __future__ import annotations

import os
from typing import Iterator

import pytest
from sqlalchemy import delete

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_living_library.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("MEDIA_ROOT", "./test_media")

from living_library.database import Base, SessionLocal, engine  # noqa: E402
from living_library.models import Account, StoreDocument  # noqa: E402
from living_library.services.identity_service import (  # noqa: E402
    AuthSession,
    EmailAlreadyInUseError,
    IdentityProvider,
    InvalidCredentialsError,
    InvalidEmailError,
    InvalidTokenError,
    Principal,
    WeakPasswordError,
)


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
def provider() -> IdentityProvider:
    return IdentityProvider(SessionLocal)


def test_create_user_normalises_email_and_authenticates(provider: IdentityProvider):
    principal = provider.create_user("  Reader@Example.com ", "secret123", display_name="Reader")

    assert principal.email == "reader@example.com"
    assert principal.display_name == "Reader"
    assert provider.authenticate("reader@example.com", "secret123").uid == principal.uid


@pytest.mark.parametrize(
    "email, password, error",
    [
        ("not-an-email", "secret123", InvalidEmailError),
        ("short@example.com", "12345", WeakPasswordError),
    ],
)
def test_create_user_validation(provider: IdentityProvider, email, password, error):
    with pytest.raises(error):
        provider.create_user(email, password)


def test_duplicate_email_rejected(provider: IdentityProvider):
    provider.create_user("dup@example.com", "secret123")
    with pytest.raises(EmailAlreadyInUseError) as excinfo:
        provider.create_user("DUP@example.com", "another123")
    assert str(excinfo.value) == "An account with this email already exists."


def test_wrong_password_and_unknown_email_share_message(provider: IdentityProvider):
    provider.create_user("known@example.com", "secret123")
    with pytest.raises(InvalidCredentialsError) as wrong:
        provider.authenticate("known@example.com", "nope-nope")
    with pytest.raises(InvalidCredentialsError) as unknown:
        provider.authenticate("ghost@example.com", "secret123")
    assert str(wrong.value) == str(unknown.value) == "Invalid email or password."


def test_token_round_trip_and_rejection(provider: IdentityProvider):
    principal = provider.create_user("token@example.com", "secret123")
    token = provider.issue_token(principal)

    assert provider.verify_id_token(token) == principal
    with pytest.raises(InvalidTokenError):
        provider.verify_id_token("garbage")

    provider.delete_user(principal.uid)
    with pytest.raises(InvalidTokenError):
        provider.verify_id_token(token)


def test_auth_session_notifies_observers(provider: IdentityProvider):
    session = AuthSession(provider)
    seen: list[Principal | None] = []

    unsubscribe = session.on_auth_state_changed(seen.append)
    assert seen == [None]

    principal = session.sign_up("observer@example.com", "secret123")
    assert seen[-1] == principal
    assert session.id_token

    session.sign_out()
    assert seen[-1] is None
    assert session.current_principal is None

    unsubscribe()
    session.sign_in("observer@example.com", "secret123")
    assert len(seen) == 3


def test_restore_resumes_session_from_token(provider: IdentityProvider):
    first = AuthSession(provider)
    principal = first.sign_up("resume@example.com", "secret123")

    second = AuthSession(provider)
    assert second.restore(first.id_token) == principal
    assert second.current_principal == principal


def test_update_profile_does_not_renotify(provider: IdentityProvider):
    session = AuthSession(provider)
    session.sign_up("profile@example.com", "secret123")
    seen: list[Principal | None] = []
    session.on_auth_state_changed(seen.append)

    updated = session.update_profile(display_name="New Name", photo_url="https://img.example/a.png")

    assert updated.display_name == "New Name"
    assert session.current_principal.photo_url == "https://img.example/a.png"
    assert len(seen) == 1


def test_delete_signs_out_and_removes_account(provider: IdentityProvider):
    session = AuthSession(provider)
    principal = session.sign_up("gone@example.com", "secret123")

    session.delete()

    assert session.current_principal is None
    assert provider.get_user(principal.uid) is None
