"""Named write operations over the store for the signed-in member.

Each operation validates its preconditions before touching the store,
performs a single remote write and leaves the collection mirror to pick up
the result from its subscription. Rating empathy is the one operation that
also updates the mirror optimistically.
"""
from __future__ import annotations

import logging
import math
import time
from numbers import Real
from typing import Any, Callable, Iterable, Mapping

from ..constants import (
    COMMENTS,
    EMPATHY_MAX,
    EMPATHY_MIN,
    EMPATHY_RATINGS,
    LIKES,
    REPORTS,
    STATUS_PENDING_REVIEW,
    STATUS_PUBLISHED,
    STORIES,
    STORY_STATUSES,
    USERS,
    placeholder_story_image_url,
)
from .asset_service import AssetStore, AssetStoreError
from .collection_mirror import CollectionMirror
from .document_store import SERVER_TIMESTAMP, DocumentExistsError, DocumentStore, StoreError
from .library_query import normalize_categories, parse_label_list
from .profanity import PROFANITY_ERROR_MESSAGE, contains_profanity
from .session_manager import SessionManager, UserProfile

logger = logging.getLogger(__name__)

EDITABLE_STORY_FIELDS = frozenset(
    {"title", "category", "shortDescription", "content", "summary", "tags", "status", "fileName", "imageUrl"}
)


class MutationError(RuntimeError):
    """Base class for rejected library mutations."""


class NotAuthenticatedError(MutationError):
    def __init__(self, message: str = "User not authenticated") -> None:
        super().__init__(message)


class InvalidInputError(MutationError):
    """Raised when a field is empty or out of range."""


class ProfanityError(InvalidInputError):
    def __init__(self, message: str = PROFANITY_ERROR_MESSAGE) -> None:
        super().__init__(message)


class ResourceNotFoundError(MutationError):
    def __init__(self, message: str = "Story not found.") -> None:
        super().__init__(message)


class PermissionDeniedError(MutationError):
    """Raised when a member changes content they did not author."""


class AlreadyReportedError(MutationError):
    def __init__(self, message: str = "You have already reported this story.") -> None:
        super().__init__(message)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _require_text(value: Any, label: str) -> str:
    text = str(value or "").strip()
    if not text:
        raise InvalidInputError(f"{label} is required.")
    return text


def _clean_categories(category: Any) -> list[str]:
    labels = parse_label_list(category) if isinstance(category, str) else normalize_categories(category)
    if not labels:
        raise InvalidInputError("At least one category is required.")
    return labels


def _clean_status(status: Any) -> str:
    if status not in STORY_STATUSES:
        raise InvalidInputError(f"Unknown story status: {status!r}")
    return str(status)


def _toggle_member(values: Iterable[Any], member: Any) -> tuple[list[Any], bool]:
    current = list(values or [])
    if member in current:
        return [value for value in current if value != member], False
    return [*current, member], True


class MutationFacade:
    """Write operations bound to one member's session."""

    def __init__(
        self,
        session: SessionManager,
        store: DocumentStore,
        assets: AssetStore | None = None,
        mirror: CollectionMirror | None = None,
        *,
        clock_ms: Callable[[], int] = _now_ms,
    ) -> None:
        self.session = session
        self.store = store
        self.assets = assets
        self.mirror = mirror
        self._clock_ms = clock_ms

    def _user(self) -> UserProfile | None:
        return self.session.current_user

    def _require_user(self) -> UserProfile:
        user = self._user()
        if user is None:
            raise NotAuthenticatedError()
        return user

    def _owned_document(self, collection: str, document_id: str, user: UserProfile, what: str):
        document = self.store.get(collection, document_id)
        if document is None:
            return None
        if document.data.get("authorId") != user.uid:
            raise PermissionDeniedError(f"You don't have permission to change this {what}.")
        return document

    # ------------------------------------------------------------------
    # Stories
    # ------------------------------------------------------------------
    def add_story(
        self,
        *,
        title: str,
        category: str | list[str],
        short_description: str,
        content: str = "",
        summary: str | None = None,
        tags: str | list[str] | None = None,
        file_name: str | None = None,
        status: str = STATUS_PENDING_REVIEW,
    ) -> str:
        """Create a story owned by the caller and return its id."""

        user = self._require_user()
        record: dict[str, Any] = {
            "title": _require_text(title, "Title"),
            "category": _clean_categories(category),
            "shortDescription": _require_text(short_description, "Short description"),
            "content": content or "",
            "tags": parse_label_list(tags),
            "status": _clean_status(status),
            "authorId": user.uid,
            "authorName": user.name,
            "authorImageUrl": user.image_url,
            "imageUrl": placeholder_story_image_url(self._clock_ms()),
            "createdAt": SERVER_TIMESTAMP,
        }
        if summary is not None:
            record["summary"] = summary
        if file_name:
            record["fileName"] = file_name
        story_id = self.store.add(STORIES, record)
        logger.info("Story %s created by %s with status %s", story_id, user.uid, record["status"])
        return story_id

    def update_story(self, story_id: str, updates: Mapping[str, Any]) -> None:
        """Merge ``updates`` into a story the caller authored."""

        user = self._require_user()
        unknown = set(updates) - EDITABLE_STORY_FIELDS
        if unknown:
            raise InvalidInputError("Cannot edit fields: " + ", ".join(sorted(unknown)))
        fields = dict(updates)
        if "title" in fields:
            fields["title"] = _require_text(fields["title"], "Title")
        if "category" in fields:
            fields["category"] = _clean_categories(fields["category"])
        if "tags" in fields:
            fields["tags"] = parse_label_list(fields["tags"])
        if "status" in fields:
            fields["status"] = _clean_status(fields["status"])
        if self._owned_document(STORIES, story_id, user, "story") is None:
            raise ResourceNotFoundError()
        self.store.update(STORIES, story_id, fields)

    def publish_story(self, story_id: str) -> None:
        self.update_story(story_id, {"status": STATUS_PUBLISHED})

    def delete_story(self, story_id: str) -> bool:
        user = self._user()
        if user is None:
            return False
        if self._owned_document(STORIES, story_id, user, "story") is None:
            return False
        removed = self.store.delete(STORIES, story_id)
        if removed:
            logger.info("Story %s deleted by %s", story_id, user.uid)
        return removed

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------
    def add_comment(self, resource_id: str, text: str) -> str | None:
        user = self._user()
        if user is None:
            logger.debug("Ignoring comment from signed-out session")
            return None
        body = _require_text(text, "Comment")
        if contains_profanity(body):
            raise ProfanityError()
        return self.store.add(
            COMMENTS,
            {
                "resourceId": resource_id,
                "authorId": user.uid,
                "authorName": user.name or "Anonymous",
                "authorImageUrl": user.image_url,
                "text": body,
                "timestamp": self._clock_ms(),
            },
        )

    def delete_comment(self, comment_id: str) -> bool:
        user = self._user()
        if user is None:
            return False
        if self._owned_document(COMMENTS, comment_id, user, "comment") is None:
            return False
        return self.store.delete(COMMENTS, comment_id)

    # ------------------------------------------------------------------
    # Engagement
    # ------------------------------------------------------------------
    def toggle_like(self, resource_id: str) -> bool | None:
        """Flip the caller in the story's liker set; returns the new liked state."""

        user = self._user()
        if user is None:
            return None
        outcome: dict[str, bool] = {}

        def _flip(current: dict[str, Any]) -> dict[str, Any]:
            user_ids, outcome["liked"] = _toggle_member(current.get("userIds"), user.uid)
            return {**current, "userIds": user_ids}

        self.store.transform(LIKES, resource_id, _flip, create_missing=True)
        return outcome["liked"]

    def toggle_bookmark(self, resource_id: str) -> bool | None:
        """Flip ``resource_id`` in the caller's bookmarks; returns the new bookmarked state."""

        user = self._user()
        if user is None:
            return None
        outcome: dict[str, Any] = {}

        def _flip(current: dict[str, Any]) -> dict[str, Any]:
            bookmarks, outcome["bookmarked"] = _toggle_member(current.get("bookmarks"), resource_id)
            outcome["bookmarks"] = bookmarks
            return {**current, "bookmarks": bookmarks}

        self.store.transform(USERS, user.uid, _flip, create_missing=True)
        self.session.apply_bookmarks(outcome["bookmarks"])
        return outcome["bookmarked"]

    def report_content(self, resource_id: str, resource_title: str) -> bool:
        """File one report per member and story; a second report raises :class:`AlreadyReportedError`."""

        user = self._user()
        if user is None:
            return False
        report_id = f"{resource_id}_{user.uid}"
        try:
            self.store.create(
                REPORTS,
                report_id,
                {
                    "resourceId": resource_id,
                    "reporterId": user.uid,
                    "resourceTitle": resource_title,
                    "timestamp": self._clock_ms(),
                },
            )
        except DocumentExistsError as exc:
            raise AlreadyReportedError() from exc
        logger.info("Story %s reported by %s", resource_id, user.uid)
        return True

    def rate_empathy(self, resource_id: str, rating: Any) -> bool:
        """Upsert the caller's 0-100 rating; invalid input or a signed-out session changes nothing."""

        user = self._user()
        if user is None or isinstance(rating, bool) or not isinstance(rating, Real):
            return False
        if math.isnan(rating) or rating < EMPATHY_MIN or rating > EMPATHY_MAX:
            return False
        value = int(math.floor(rating + 0.5))
        previous = None
        if self.mirror is not None:
            previous = self.mirror.apply_local_empathy(resource_id, user.uid, value)

        def _upsert(current: dict[str, Any]) -> dict[str, Any]:
            ratings = [entry for entry in current.get("ratings") or [] if entry.get("userId") != user.uid]
            ratings.append({"userId": user.uid, "rating": value})
            return {**current, "ratings": ratings}

        try:
            self.store.transform(EMPATHY_RATINGS, resource_id, _upsert, create_missing=True)
        except StoreError:
            if self.mirror is not None:
                self.mirror.revert_local_empathy(resource_id, user.uid, previous)
            raise
        return True

    # ------------------------------------------------------------------
    # Account
    # ------------------------------------------------------------------
    def update_user_profile(
        self,
        name: str,
        *,
        image: bytes | None = None,
        content_type: str | None = None,
    ) -> UserProfile:
        user = self._require_user()
        new_name = _require_text(name, "Name")
        image_url = user.image_url
        if image:
            if self.assets is None:
                raise AssetStoreError("Avatar uploads are not configured.")
            image_url = self.assets.upload_avatar(user.uid, image, content_type).url
            self.session.auth.update_profile(display_name=new_name, photo_url=image_url)
        else:
            self.session.auth.update_profile(display_name=new_name)
        self.store.set(USERS, user.uid, {"name": new_name, "imageUrl": image_url}, merge=True)
        self.session.apply_profile(name=new_name, image_url=image_url)
        return self.session.current_user or user

    def delete_account(self) -> None:
        """Remove the avatar (best effort), the profile record and the identity."""

        user = self._require_user()
        if self.assets is not None:
            try:
                self.assets.delete_avatar(user.uid)
            except AssetStoreError:
                logger.warning("Could not delete avatar for %s; continuing account deletion", user.uid, exc_info=True)
        self.store.delete(USERS, user.uid)
        self.session.auth.delete()
        logger.info("Account %s deleted", user.uid)


__all__ = [
    "AlreadyReportedError",
    "EDITABLE_STORY_FIELDS",
    "InvalidInputError",
    "MutationError",
    "MutationFacade",
    "NotAuthenticatedError",
    "PermissionDeniedError",
    "ProfanityError",
    "ResourceNotFoundError",
]
