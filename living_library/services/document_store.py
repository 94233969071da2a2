"""Document-oriented collection store with realtime snapshot subscriptions.

Documents live in a single ``documents`` table keyed by ``(collection, id)``
and hold an arbitrary JSON payload. Every committed write pushes a fresh,
complete snapshot of the affected collection to its subscribers, together
with the per-document changes since that subscriber's previous snapshot.
"""
from __future__ import annotations

import copy
import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Literal, Mapping

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import StoreDocument

logger = logging.getLogger(__name__)

ChangeType = Literal["added", "modified", "removed"]
SessionFactory = Callable[[], Session]
Mutator = Callable[[dict[str, Any]], dict[str, Any]]

_DEFAULT_CAS_ATTEMPTS = 5


class StoreError(RuntimeError):
    """Raised when the underlying database rejects a store operation."""


class DocumentNotFoundError(StoreError):
    """Raised when an operation requires a document that does not exist."""


class DocumentExistsError(StoreError):
    """Raised when creating a document under an id that is already taken."""


class ConcurrentUpdateError(StoreError):
    """Raised when a conditional update keeps losing to concurrent writers."""


class _ServerTimestamp:
    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


# Placeholder replaced by the commit time when a write is applied.
SERVER_TIMESTAMP = _ServerTimestamp()


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _resolve_sentinels(data: Mapping[str, Any], now: datetime) -> dict[str, Any]:
    stamp = now.isoformat()
    return {key: (stamp if value is SERVER_TIMESTAMP else value) for key, value in data.items()}


def _new_document_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class Document:
    """Immutable view of a stored document."""

    id: str
    data: Mapping[str, Any]
    version: int

    def to_dict(self) -> dict[str, Any]:
        """Return the payload with the document id merged in under ``id``."""
        return {**copy.deepcopy(dict(self.data)), "id": self.id}


@dataclass(frozen=True)
class DocumentChange:
    type: ChangeType
    document_id: str


@dataclass(frozen=True)
class Snapshot:
    collection: str
    documents: tuple[Document, ...]
    changes: tuple[DocumentChange, ...] = ()

    def to_dicts(self) -> list[dict[str, Any]]:
        return [document.to_dict() for document in self.documents]


SnapshotCallback = Callable[[Snapshot], None]


def _sort_documents(
    documents: Iterable[Document],
    order_by: str | None,
    descending: bool,
) -> list[Document]:
    ordered = sorted(documents, key=lambda document: document.id)
    if order_by is None:
        return ordered
    present = [document for document in ordered if document.data.get(order_by) is not None]
    missing = [document for document in ordered if document.data.get(order_by) is None]
    # Stable sort keeps ids ascending among equal keys, also when reversed.
    present.sort(key=lambda document: document.data[order_by], reverse=descending)
    return present + missing


@dataclass(eq=False)
class Subscription:
    """Handle for a live collection listener."""

    store: "DocumentStore"
    collection: str
    callback: SnapshotCallback
    order_by: str | None = None
    descending: bool = False
    _versions: dict[str, int] = field(default_factory=dict, repr=False)
    _active: bool = field(default=True, repr=False)

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self.store._remove_subscription(self)

    def _deliver(self, documents: list[Document]) -> None:
        ordered = _sort_documents(documents, self.order_by, self.descending)
        current = {document.id: document.version for document in ordered}
        changes: list[DocumentChange] = []
        for document_id, version in current.items():
            previous = self._versions.get(document_id)
            if previous is None:
                changes.append(DocumentChange("added", document_id))
            elif previous != version:
                changes.append(DocumentChange("modified", document_id))
        for document_id in self._versions.keys() - current.keys():
            changes.append(DocumentChange("removed", document_id))
        self._versions = current
        snapshot = Snapshot(collection=self.collection, documents=tuple(ordered), changes=tuple(changes))
        try:
            self.callback(snapshot)
        except Exception:
            logger.exception("Snapshot listener for %s raised; continuing", self.collection)


class DocumentStore:
    """Collection store over SQLAlchemy with snapshot listeners."""

    def __init__(
        self,
        session_factory: SessionFactory,
        *,
        clock: Callable[[], datetime] = _now,
        max_cas_attempts: int = _DEFAULT_CAS_ATTEMPTS,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock
        self._max_cas_attempts = max(1, max_cas_attempts)
        self._subscriptions: dict[str, list[Subscription]] = {}
        self._registry_lock = threading.Lock()
        # Serialises "read latest state, deliver" so listeners never see an older snapshot last.
        self._notify_lock = threading.RLock()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get(self, collection: str, document_id: str) -> Document | None:
        try:
            with self._session_factory() as session:
                row = session.get(StoreDocument, (collection, document_id))
                return self._to_document(row) if row is not None else None
        except SQLAlchemyError as exc:
            logger.exception("Failed to read %s/%s", collection, document_id)
            raise StoreError(f"Unable to read {collection}/{document_id}") from exc

    def list(
        self,
        collection: str,
        *,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[Document]:
        return _sort_documents(self._load_collection(collection), order_by, descending)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def add(self, collection: str, data: Mapping[str, Any]) -> str:
        """Insert ``data`` under a store-assigned id and return that id."""

        document_id = _new_document_id()
        self.create(collection, document_id, data)
        return document_id

    def create(self, collection: str, document_id: str, data: Mapping[str, Any]) -> Document:
        """Insert a document, failing with :class:`DocumentExistsError` if the id is taken."""

        payload = _resolve_sentinels(data, self._clock())
        try:
            with self._session_factory() as session:
                row = StoreDocument(collection=collection, id=document_id, data=payload, version=1)
                session.add(row)
                try:
                    session.commit()
                except IntegrityError as exc:
                    session.rollback()
                    raise DocumentExistsError(f"{collection}/{document_id} already exists") from exc
                document = self._to_document(row)
        except SQLAlchemyError as exc:
            logger.exception("Failed to create %s/%s", collection, document_id)
            raise StoreError(f"Unable to create {collection}/{document_id}") from exc
        self._notify(collection)
        return document

    def set(
        self,
        collection: str,
        document_id: str,
        data: Mapping[str, Any],
        *,
        merge: bool = False,
    ) -> Document:
        """Write ``data`` to the document, replacing it unless ``merge`` is set."""

        payload = dict(data)
        if merge:
            return self.transform(collection, document_id, lambda current: {**current, **payload}, create_missing=True)
        return self.transform(collection, document_id, lambda _current: dict(payload), create_missing=True)

    def update(self, collection: str, document_id: str, fields: Mapping[str, Any]) -> Document:
        """Merge ``fields`` into an existing document."""

        payload = dict(fields)
        return self.transform(collection, document_id, lambda current: {**current, **payload})

    def transform(
        self,
        collection: str,
        document_id: str,
        mutator: Mutator,
        *,
        create_missing: bool = False,
    ) -> Document:
        """Apply ``mutator`` to the document as an atomic read-modify-write.

        The new payload is written only if the document's ``version`` is unchanged
        since it was read; otherwise the mutator runs again on the fresh state.
        """

        for _attempt in range(self._max_cas_attempts):
            try:
                document = self._try_transform(collection, document_id, mutator, create_missing)
            except SQLAlchemyError as exc:
                logger.exception("Failed to write %s/%s", collection, document_id)
                raise StoreError(f"Unable to write {collection}/{document_id}") from exc
            if document is not None:
                self._notify(collection)
                return document
            logger.debug("Version conflict on %s/%s; re-reading", collection, document_id)
        raise ConcurrentUpdateError(f"Gave up updating {collection}/{document_id} after concurrent writes")

    def delete(self, collection: str, document_id: str) -> bool:
        """Remove a document; returns ``False`` if it did not exist."""

        try:
            with self._session_factory() as session:
                result = session.execute(
                    delete(StoreDocument).where(
                        StoreDocument.collection == collection,
                        StoreDocument.id == document_id,
                    )
                )
                session.commit()
        except SQLAlchemyError as exc:
            logger.exception("Failed to delete %s/%s", collection, document_id)
            raise StoreError(f"Unable to delete {collection}/{document_id}") from exc
        removed = bool(result.rowcount)
        if removed:
            self._notify(collection)
        return removed

    def clear(self) -> None:
        """Drop every document in every collection (used by tests and resets)."""

        try:
            with self._session_factory() as session:
                collections = set(session.scalars(select(StoreDocument.collection).distinct()))
                session.execute(delete(StoreDocument))
                session.commit()
        except SQLAlchemyError as exc:
            raise StoreError("Unable to clear the store") from exc
        for collection in collections:
            self._notify(collection)

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------
    def subscribe(
        self,
        collection: str,
        callback: SnapshotCallback,
        *,
        order_by: str | None = None,
        descending: bool = False,
    ) -> Subscription:
        """Register ``callback`` and deliver the current snapshot immediately."""

        subscription = Subscription(
            store=self,
            collection=collection,
            callback=callback,
            order_by=order_by,
            descending=descending,
        )
        with self._registry_lock:
            self._subscriptions.setdefault(collection, []).append(subscription)
        with self._notify_lock:
            if subscription.active:
                subscription._deliver(self._load_collection(collection))
        return subscription

    def subscriber_count(self, collection: str | None = None) -> int:
        with self._registry_lock:
            if collection is not None:
                return len(self._subscriptions.get(collection, ()))
            return sum(len(group) for group in self._subscriptions.values())

    def _remove_subscription(self, subscription: Subscription) -> None:
        with self._registry_lock:
            group = self._subscriptions.get(subscription.collection)
            if not group:
                return
            if subscription in group:
                group.remove(subscription)
            if not group:
                self._subscriptions.pop(subscription.collection, None)

    def _notify(self, collection: str) -> None:
        with self._registry_lock:
            targets = list(self._subscriptions.get(collection, ()))
        if not targets:
            return
        with self._notify_lock:
            try:
                documents = self._load_collection(collection)
            except StoreError:
                logger.exception("Unable to refresh subscribers of %s", collection)
                return
            for subscription in targets:
                if subscription.active:
                    subscription._deliver(documents)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _load_collection(self, collection: str) -> list[Document]:
        try:
            with self._session_factory() as session:
                rows = session.scalars(select(StoreDocument).where(StoreDocument.collection == collection))
                return [self._to_document(row) for row in rows]
        except SQLAlchemyError as exc:
            logger.exception("Failed to list %s", collection)
            raise StoreError(f"Unable to list {collection}") from exc

    def _try_transform(
        self,
        collection: str,
        document_id: str,
        mutator: Mutator,
        create_missing: bool,
    ) -> Document | None:
        now = self._clock()
        with self._session_factory() as session:
            row = session.get(StoreDocument, (collection, document_id))
            if row is None:
                if not create_missing:
                    raise DocumentNotFoundError(f"{collection}/{document_id} does not exist")
                payload = _resolve_sentinels(mutator({}), now)
                created = StoreDocument(collection=collection, id=document_id, data=payload, version=1)
                session.add(created)
                try:
                    session.commit()
                except IntegrityError:
                    # Another writer created it first; retry against their version.
                    session.rollback()
                    return None
                return self._to_document(created)

            current_version = int(row.version)
            payload = _resolve_sentinels(mutator(copy.deepcopy(dict(row.data or {}))), now)
            result = session.execute(
                update(StoreDocument)
                .where(
                    StoreDocument.collection == collection,
                    StoreDocument.id == document_id,
                    StoreDocument.version == current_version,
                )
                .values(data=payload, version=current_version + 1, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                session.rollback()
                return None
            session.commit()
            return Document(id=document_id, data=payload, version=current_version + 1)

    @staticmethod
    def _to_document(row: StoreDocument) -> Document:
        return Document(id=str(row.id), data=copy.deepcopy(dict(row.data or {})), version=int(row.version))


__all__ = [
    "SERVER_TIMESTAMP",
    "ConcurrentUpdateError",
    "Document",
    "DocumentChange",
    "DocumentExistsError",
    "DocumentNotFoundError",
    "DocumentStore",
    "Snapshot",
    "StoreError",
    "Subscription",
]
