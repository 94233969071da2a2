"""Live in-memory copies of the synchronised collections.

Each collection has one subscription whose callback is the only writer of
that collection's snapshot; every push replaces the snapshot in full.
The empathy optimistic update is the single exception.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Mapping

from ..constants import COMMENTS, EMPATHY_RATINGS, LIKES, MIRRORED_COLLECTIONS, REPORTS, STORIES, USERS
from .document_store import DocumentStore, Snapshot, Subscription

logger = logging.getLogger(__name__)

ChangeListener = Callable[[str], None]


@dataclass(frozen=True)
class EmpathyRating:
    user_id: str
    rating: int

    def to_dict(self) -> dict[str, Any]:
        return {"userId": self.user_id, "rating": self.rating}


def _freeze_ratings(raw: Any) -> tuple[EmpathyRating, ...]:
    ratings: list[EmpathyRating] = []
    for entry in raw or []:
        if not isinstance(entry, Mapping) or entry.get("userId") is None:
            continue
        ratings.append(EmpathyRating(user_id=str(entry["userId"]), rating=int(entry.get("rating", 0))))
    return tuple(ratings)


class CollectionMirror:
    """Keeps a snapshot of stories, comments, likes, reports, ratings and users."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store
        self._subscriptions: list[Subscription] = []
        self._listeners: list[ChangeListener] = []
        self._lock = threading.RLock()
        self._stories: tuple[dict[str, Any], ...] = ()
        self._comments: tuple[dict[str, Any], ...] = ()
        self._reports: tuple[dict[str, Any], ...] = ()
        self._users: tuple[dict[str, Any], ...] = ()
        self._likes: Mapping[str, frozenset[str]] = MappingProxyType({})
        self._empathy: Mapping[str, tuple[EmpathyRating, ...]] = MappingProxyType({})

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    @property
    def running(self) -> bool:
        return bool(self._subscriptions)

    def start(self) -> None:
        """Open one subscription per collection; calling it again while running does nothing."""

        with self._lock:
            if self._subscriptions:
                return
            handlers: dict[str, Callable[[Snapshot], None]] = {
                STORIES: self._on_stories,
                COMMENTS: self._on_comments,
                LIKES: self._on_likes,
                REPORTS: self._on_reports,
                EMPATHY_RATINGS: self._on_empathy,
                USERS: self._on_users,
            }
            for collection in MIRRORED_COLLECTIONS:
                if collection == STORIES:
                    subscription = self.store.subscribe(
                        collection, handlers[collection], order_by="createdAt", descending=True
                    )
                else:
                    subscription = self.store.subscribe(collection, handlers[collection])
                self._subscriptions.append(subscription)
        logger.info("Collection mirror subscribed to %d collections", len(MIRRORED_COLLECTIONS))

    def stop(self) -> None:
        with self._lock:
            subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            subscription.unsubscribe()
        if subscriptions:
            logger.info("Collection mirror unsubscribed")

    def add_listener(self, listener: ChangeListener) -> Callable[[], None]:
        """Call ``listener(collection)`` after every snapshot replacement."""

        with self._lock:
            self._listeners.append(listener)

        def _remove() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _remove

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------
    @property
    def stories(self) -> tuple[dict[str, Any], ...]:
        """Stories, newest first by ``createdAt``."""
        return self._stories

    @property
    def comments(self) -> tuple[dict[str, Any], ...]:
        return self._comments

    @property
    def reports(self) -> tuple[dict[str, Any], ...]:
        return self._reports

    @property
    def users(self) -> tuple[dict[str, Any], ...]:
        return self._users

    @property
    def likes(self) -> Mapping[str, frozenset[str]]:
        return self._likes

    @property
    def empathy_ratings(self) -> Mapping[str, tuple[EmpathyRating, ...]]:
        return self._empathy

    def find_story(self, story_id: str) -> dict[str, Any] | None:
        return next((story for story in self._stories if story.get("id") == story_id), None)

    def find_user(self, uid: str) -> dict[str, Any] | None:
        return next((user for user in self._users if user.get("id") == uid), None)

    def apply_local_empathy(self, resource_id: str, user_id: str, rating: int) -> int | None:
        """Optimistically upsert one rating ahead of the store round-trip.

        Returns the member's previous rating so a failed write can be undone
        with :meth:`revert_local_empathy`.
        """

        with self._lock:
            previous = self._set_local_rating(resource_id, user_id, rating)
        self._emit(EMPATHY_RATINGS)
        return previous

    def revert_local_empathy(self, resource_id: str, user_id: str, previous: int | None) -> None:
        """Put back the member's rating as it was before :meth:`apply_local_empathy`."""

        with self._lock:
            self._set_local_rating(resource_id, user_id, previous)
        self._emit(EMPATHY_RATINGS)

    def _set_local_rating(self, resource_id: str, user_id: str, rating: int | None) -> int | None:
        current = list(self._empathy.get(resource_id, ()))
        previous = next((entry.rating for entry in current if entry.user_id == user_id), None)
        others = [entry for entry in current if entry.user_id != user_id]
        if rating is None:
            ratings = others
        elif previous is None:
            ratings = [*current, EmpathyRating(user_id=user_id, rating=rating)]
        else:
            ratings = [
                EmpathyRating(user_id=user_id, rating=rating) if entry.user_id == user_id else entry
                for entry in current
            ]
        updated = dict(self._empathy)
        if ratings:
            updated[resource_id] = tuple(ratings)
        else:
            updated.pop(resource_id, None)
        self._empathy = MappingProxyType(updated)
        return previous

    # ------------------------------------------------------------------
    # Subscription callbacks
    # ------------------------------------------------------------------
    def _on_stories(self, snapshot: Snapshot) -> None:
        self._stories = tuple(snapshot.to_dicts())
        self._emit(STORIES)

    def _on_comments(self, snapshot: Snapshot) -> None:
        self._comments = tuple(snapshot.to_dicts())
        self._emit(COMMENTS)

    def _on_reports(self, snapshot: Snapshot) -> None:
        self._reports = tuple(snapshot.to_dicts())
        self._emit(REPORTS)

    def _on_users(self, snapshot: Snapshot) -> None:
        self._users = tuple(snapshot.to_dicts())
        self._emit(USERS)

    def _on_likes(self, snapshot: Snapshot) -> None:
        self._likes = MappingProxyType(
            {document.id: frozenset(document.data.get("userIds") or []) for document in snapshot.documents}
        )
        self._emit(LIKES)

    def _on_empathy(self, snapshot: Snapshot) -> None:
        with self._lock:
            self._empathy = MappingProxyType(
                {document.id: _freeze_ratings(document.data.get("ratings")) for document in snapshot.documents}
            )
        self._emit(EMPATHY_RATINGS)

    def _emit(self, collection: str) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(collection)
            except Exception:
                logger.exception("Mirror listener failed for %s", collection)


__all__ = ["CollectionMirror", "EmpathyRating"]
