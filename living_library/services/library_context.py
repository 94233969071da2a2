"""Per-member service object composing the session, mirror and mutation facade."""
from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

from ..constants import COMMENTS, EMPATHY_RATINGS, LIKES, REPORTS, STATUS_PUBLISHED, STORIES, USERS
from ..seed import SEED_RESOURCES
from .asset_service import AssetStore
from .collection_mirror import CollectionMirror
from .document_store import DocumentStore
from .identity_service import AuthSession
from .library_query import (
    EmpathySummary,
    collect_categories,
    collect_tags,
    empathy_summary,
    filter_resources,
    is_visible_to,
)
from .mutation_service import MutationFacade, PermissionDeniedError, ResourceNotFoundError
from .session_manager import SessionManager, UserProfile

logger = logging.getLogger(__name__)

_PUBLIC_USER_FIELDS = ("name", "imageUrl")


class ResourceAccessDeniedError(PermissionDeniedError):
    def __init__(
        self,
        message: str = "This resource is not yet published or you do not have permission to view it.",
    ) -> None:
        super().__init__(message)


class LibraryContext:
    """Everything one member needs: identity, live collections, reads and writes.

    A shared ``mirror`` may be passed in (the server keeps one for all
    connections); otherwise the context creates its own and stops it on close.
    """

    def __init__(
        self,
        auth: AuthSession,
        store: DocumentStore,
        *,
        assets: AssetStore | None = None,
        mirror: CollectionMirror | None = None,
        seed_resources: Sequence[Mapping[str, Any]] = SEED_RESOURCES,
    ) -> None:
        self.store = store
        self._owns_mirror = mirror is None
        self.mirror = mirror if mirror is not None else CollectionMirror(store)
        self.session = SessionManager(auth, store, self.mirror)
        self.mutations = MutationFacade(self.session, store, assets, self.mirror)
        self.seed_resources = tuple(dict(resource) for resource in seed_resources)

    def open(self) -> "LibraryContext":
        self.session.start()
        return self

    def close(self) -> None:
        self.session.stop()
        if self._owns_mirror:
            self.mirror.stop()

    def __enter__(self) -> "LibraryContext":
        return self.open()

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def current_user(self) -> UserProfile | None:
        return self.session.current_user

    @property
    def uid(self) -> str | None:
        return self.session.uid

    # ------------------------------------------------------------------
    # Stories
    # ------------------------------------------------------------------
    def visible_stories(self) -> list[dict[str, Any]]:
        """Stories the caller may see: every published one plus their own drafts."""

        uid = self.uid
        return [story for story in self.mirror.stories if is_visible_to(story, uid)]

    def get_resource(self, resource_id: str) -> dict[str, Any]:
        resource = self.mirror.find_story(resource_id)
        if resource is None:
            resource = next((seed for seed in self.seed_resources if seed["id"] == resource_id), None)
        if resource is None:
            raise ResourceNotFoundError("Resource not found.")
        if not is_visible_to(resource, self.uid):
            raise ResourceAccessDeniedError()
        return dict(resource)

    def _library_resources(self) -> list[dict[str, Any]]:
        published = [story for story in self.mirror.stories if story.get("status") == STATUS_PUBLISHED]
        return [*self.seed_resources, *published]

    def library(
        self,
        *,
        category: str | None = None,
        query: str | None = None,
        tags: Sequence[str] | None = None,
    ) -> list[dict[str, Any]]:
        return [
            dict(resource)
            for resource in filter_resources(self._library_resources(), category=category, query=query, tags=tags)
        ]

    def categories(self) -> list[str]:
        return collect_categories(self._library_resources())

    def all_tags(self) -> list[str]:
        return collect_tags(self._library_resources())

    def my_stories(self) -> list[dict[str, Any]]:
        uid = self.uid
        if uid is None:
            return []
        return [story for story in self.mirror.stories if story.get("authorId") == uid]

    def bookmarked_resources(self) -> list[dict[str, Any]]:
        marked = set(self.session.bookmarks)
        candidates = [*self.seed_resources, *self.visible_stories()]
        return [dict(resource) for resource in candidates if resource["id"] in marked]

    # ------------------------------------------------------------------
    # Engagement aggregates
    # ------------------------------------------------------------------
    def like_count(self, resource_id: str) -> int:
        return len(self.mirror.likes.get(resource_id, frozenset()))

    def has_liked(self, resource_id: str) -> bool:
        uid = self.uid
        return uid is not None and uid in self.mirror.likes.get(resource_id, frozenset())

    def is_bookmarked(self, resource_id: str) -> bool:
        return resource_id in self.session.bookmarks

    def empathy_summary(self, resource_id: str) -> EmpathySummary:
        return empathy_summary(self.mirror.empathy_ratings.get(resource_id, ()), self.uid)

    def has_reported(self, resource_id: str) -> bool:
        uid = self.uid
        if uid is None:
            return False
        return any(
            report.get("resourceId") == resource_id and report.get("reporterId") == uid
            for report in self.mirror.reports
        )

    def comments_for(self, resource_id: str) -> list[dict[str, Any]]:
        """Comments on a resource, oldest first."""

        matching = [comment for comment in self.mirror.comments if comment.get("resourceId") == resource_id]
        return sorted(matching, key=lambda comment: (comment.get("timestamp") or 0, comment["id"]))

    def my_comments(self) -> list[dict[str, Any]]:
        uid = self.uid
        if uid is None:
            return []
        return [comment for comment in self.mirror.comments if comment.get("authorId") == uid]

    def engagement(self, resource_id: str) -> dict[str, Any]:
        summary = self.empathy_summary(resource_id)
        return {
            "likeCount": self.like_count(resource_id),
            "liked": self.has_liked(resource_id),
            "bookmarked": self.is_bookmarked(resource_id),
            "reported": self.has_reported(resource_id),
            "commentCount": len(self.comments_for(resource_id)),
            "empathy": {
                "average": summary.average,
                "count": summary.count,
                "userRating": summary.user_rating,
                "label": summary.label,
            },
        }

    # ------------------------------------------------------------------
    # Realtime payloads
    # ------------------------------------------------------------------
    def snapshot_payload(self, collection: str) -> Any:
        """The caller's view of a mirrored collection, ready for JSON encoding."""

        uid = self.uid
        if collection == STORIES:
            return self.visible_stories()
        if collection == COMMENTS:
            return list(self.mirror.comments)
        if collection == LIKES:
            return {resource_id: sorted(user_ids) for resource_id, user_ids in self.mirror.likes.items()}
        if collection == EMPATHY_RATINGS:
            return {
                resource_id: [rating.to_dict() for rating in ratings]
                for resource_id, ratings in self.mirror.empathy_ratings.items()
            }
        if collection == REPORTS:
            return [report for report in self.mirror.reports if uid is not None and report.get("reporterId") == uid]
        if collection == USERS:
            return [self._user_view(user, uid) for user in self.mirror.users]
        raise ValueError(f"Unknown collection: {collection}")

    @staticmethod
    def _user_view(user: Mapping[str, Any], uid: str | None) -> dict[str, Any]:
        if uid is not None and user.get("id") == uid:
            return dict(user)
        view = {field: user.get(field) for field in _PUBLIC_USER_FIELDS}
        view["id"] = user.get("id")
        return view


__all__ = ["LibraryContext", "ResourceAccessDeniedError"]
