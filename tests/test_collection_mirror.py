"""Tests for the in-memory collection mirror."""
from __future__ import annotations

import os
from typing import Iterator

import pytest
from sqlalchemy import delete

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_living_library.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("MEDIA_ROOT", "./test_media")

from living_library.constants import (  # noqa: E402
    COMMENTS,
    EMPATHY_RATINGS,
    LIKES,
    MIRRORED_COLLECTIONS,
    STORIES,
    USERS,
)
from living_library.database import Base, SessionLocal, engine  # noqa: E402
from living_library.models import StoreDocument  # noqa: E402
from living_library.services.collection_mirror import CollectionMirror, EmpathyRating  # noqa: E402
from living_library.services.document_store import DocumentStore  # noqa: E402


@pytest.fixture(scope="module", autouse=True)
def _create_schema() -> Iterator[None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _clean_database() -> Iterator[None]:
    with SessionLocal() as session:
        session.execute(delete(StoreDocument))
        session.commit()
    yield


@pytest.fixture
def store() -> DocumentStore:
    return DocumentStore(SessionLocal)


@pytest.fixture
def mirror(store: DocumentStore) -> Iterator[CollectionMirror]:
    instance = CollectionMirror(store)
    instance.start()
    yield instance
    instance.stop()


def test_start_loads_existing_documents(store: DocumentStore):
    store.set(STORIES, "s1", {"title": "Existing", "createdAt": "2024-01-01"})
    store.set(USERS, "u1", {"name": "Ana"})

    mirror = CollectionMirror(store)
    mirror.start()

    assert [story["id"] for story in mirror.stories] == ["s1"]
    assert mirror.find_user("u1")["name"] == "Ana"
    mirror.stop()


def test_stories_are_newest_first(store: DocumentStore, mirror: CollectionMirror):
    store.set(STORIES, "old", {"createdAt": "2024-01-01"})
    store.set(STORIES, "new", {"createdAt": "2024-03-01"})
    store.set(STORIES, "mid", {"createdAt": "2024-02-01"})

    assert [story["id"] for story in mirror.stories] == ["new", "mid", "old"]


def test_likes_and_ratings_are_derived_per_resource(store: DocumentStore, mirror: CollectionMirror):
    store.set(LIKES, "r1", {"userIds": ["u1", "u2"]})
    store.set(EMPATHY_RATINGS, "r1", {"ratings": [{"userId": "u1", "rating": 70}, {"rating": 10}]})

    assert mirror.likes["r1"] == frozenset({"u1", "u2"})
    assert mirror.empathy_ratings["r1"] == (EmpathyRating(user_id="u1", rating=70),)


def test_deleted_documents_leave_the_mirror(store: DocumentStore, mirror: CollectionMirror):
    store.set(COMMENTS, "c1", {"text": "kind words"})
    store.delete(COMMENTS, "c1")
    assert mirror.comments == ()


def test_listeners_receive_collection_names(store: DocumentStore, mirror: CollectionMirror):
    seen: list[str] = []
    remove = mirror.add_listener(seen.append)

    store.set(LIKES, "r1", {"userIds": ["u1"]})
    remove()
    store.set(LIKES, "r2", {"userIds": ["u1"]})

    assert seen == [LIKES]


def test_start_twice_and_stop_release_subscriptions(store: DocumentStore):
    mirror = CollectionMirror(store)
    mirror.start()
    mirror.start()
    assert all(store.subscriber_count(collection) == 1 for collection in MIRRORED_COLLECTIONS)

    mirror.stop()
    assert not mirror.running
    assert all(store.subscriber_count(collection) == 0 for collection in MIRRORED_COLLECTIONS)

    mirror.start()
    assert all(store.subscriber_count(collection) == 1 for collection in MIRRORED_COLLECTIONS)
    mirror.stop()


def test_apply_local_empathy_upserts_single_entry(mirror: CollectionMirror):
    mirror.apply_local_empathy("r1", "u1", 40)
    mirror.apply_local_empathy("r1", "u1", 70)
    mirror.apply_local_empathy("r1", "u2", 10)

    assert mirror.empathy_ratings["r1"] == (
        EmpathyRating(user_id="u1", rating=70),
        EmpathyRating(user_id="u2", rating=10),
    )


def test_revert_local_empathy_restores_only_that_member(mirror: CollectionMirror):
    mirror.apply_local_empathy("r1", "u2", 10)
    assert mirror.apply_local_empathy("r1", "u1", 40) is None
    previous = mirror.apply_local_empathy("r1", "u1", 90)
    assert previous == 40

    mirror.revert_local_empathy("r1", "u1", previous)
    assert mirror.empathy_ratings["r1"] == (
        EmpathyRating(user_id="u2", rating=10),
        EmpathyRating(user_id="u1", rating=40),
    )

    mirror.revert_local_empathy("r1", "u1", None)
    mirror.revert_local_empathy("r1", "u2", None)
    assert "r1" not in mirror.empathy_ratings


def test_failing_listener_is_isolated(store: DocumentStore, mirror: CollectionMirror):
    def _broken(_collection: str) -> None:
        raise RuntimeError("boom")

    mirror.add_listener(_broken)
    store.set(STORIES, "s1", {"title": "Survives"})

    assert mirror.find_story("s1")["title"] == "Survives"
