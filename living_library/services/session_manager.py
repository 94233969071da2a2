"""Signed-in identity tracking and per-user profile bootstrap."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from typing import Any, Callable, Optional

from ..constants import USERS, placeholder_avatar_url
from .collection_mirror import CollectionMirror
from .document_store import SERVER_TIMESTAMP, DocumentExistsError, DocumentStore, StoreError
from .identity_service import AuthSession, Principal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserProfile:
    """Merged identity-provider principal and stored profile record."""

    uid: str
    name: str | None
    email: str | None
    image_url: str

    def to_dict(self) -> dict[str, Any]:
        return {"uid": self.uid, "name": self.name, "email": self.email, "imageUrl": self.image_url}


def default_display_name(principal: Principal) -> str:
    if principal.display_name:
        return principal.display_name
    if principal.email and principal.email.split("@", 1)[0]:
        return principal.email.split("@", 1)[0]
    return "User"


class SessionManager:
    """Publishes the current user and bookmarks as the auth state changes.

    The first resolution of the auth state (signed in or not) clears
    ``loading`` and starts the collection mirror, if one was supplied.
    """

    def __init__(self, auth: AuthSession, store: DocumentStore, mirror: CollectionMirror | None = None) -> None:
        self.auth = auth
        self.store = store
        self.mirror = mirror
        self._current_user: UserProfile | None = None
        self._bookmarks: tuple[str, ...] = ()
        self._loading = True
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._lock = threading.RLock()

    @property
    def current_user(self) -> UserProfile | None:
        return self._current_user

    @property
    def bookmarks(self) -> tuple[str, ...]:
        return self._bookmarks

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def uid(self) -> str | None:
        user = self._current_user
        return user.uid if user is not None else None

    def start(self) -> None:
        with self._lock:
            if self._unsubscribe is not None:
                return
            self._unsubscribe = self.auth.on_auth_state_changed(self._on_auth_state)

    def stop(self) -> None:
        with self._lock:
            unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is not None:
            unsubscribe()

    # Provider errors propagate to the caller.
    def sign_in(self, email: str, password: str) -> UserProfile | None:
        self.auth.sign_in(email, password)
        return self._current_user

    def sign_up(self, email: str, password: str, *, display_name: str | None = None) -> UserProfile | None:
        self.auth.sign_up(email, password, display_name=display_name)
        return self._current_user

    def sign_out(self) -> None:
        self.auth.sign_out()

    def resume(self, token: str) -> UserProfile | None:
        """Restore a session from a bearer token issued earlier."""

        self.auth.restore(token)
        return self._current_user

    def apply_bookmarks(self, bookmarks: list[str] | tuple[str, ...]) -> None:
        with self._lock:
            self._bookmarks = tuple(bookmarks)

    def apply_profile(self, *, name: str | None = None, image_url: str | None = None) -> None:
        with self._lock:
            if self._current_user is None:
                return
            changes: dict[str, Any] = {}
            if name is not None:
                changes["name"] = name
            if image_url is not None:
                changes["image_url"] = image_url
            self._current_user = replace(self._current_user, **changes)

    def _on_auth_state(self, principal: Principal | None) -> None:
        if principal is None:
            with self._lock:
                self._current_user = None
                self._bookmarks = ()
        else:
            profile, bookmarks = self._bootstrap_profile(principal)
            with self._lock:
                self._current_user = profile
                self._bookmarks = bookmarks
        first_resolution = self._loading
        self._loading = False
        if first_resolution and self.mirror is not None:
            self.mirror.start()

    def _bootstrap_profile(self, principal: Principal) -> tuple[UserProfile, tuple[str, ...]]:
        name = default_display_name(principal)
        image_url = principal.photo_url or placeholder_avatar_url(principal.uid)
        try:
            document = self.store.get(USERS, principal.uid)
            if document is None:
                record = {
                    "name": name,
                    "email": principal.email,
                    "imageUrl": image_url,
                    "bookmarks": [],
                    "createdAt": SERVER_TIMESTAMP,
                }
                try:
                    document = self.store.create(USERS, principal.uid, record)
                except DocumentExistsError:
                    document = self.store.get(USERS, principal.uid)
        except StoreError:
            logger.warning("Could not load profile for %s; using defaults", principal.uid, exc_info=True)
            document = None

        bookmarks: tuple[str, ...] = ()
        if document is not None:
            name = document.data.get("name") or name
            image_url = document.data.get("imageUrl") or image_url
            bookmarks = tuple(document.data.get("bookmarks") or ())
        profile = UserProfile(uid=principal.uid, name=name, email=principal.email, image_url=image_url)
        return profile, bookmarks


__all__ = ["SessionManager", "UserProfile", "default_display_name"]
