"""WebSocket fan-out of collection snapshots to connected members."""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable

from fastapi import WebSocket

from ..constants import MIRRORED_COLLECTIONS
from .library_context import LibraryContext

logger = logging.getLogger(__name__)


def snapshot_message(context: LibraryContext, collection: str) -> dict[str, Any]:
    return {"type": "snapshot", "collection": collection, "data": context.snapshot_payload(collection)}


class SyncChannelManager:
    """Tracks sync sockets and pushes each one its own view of a changed collection."""

    def __init__(self) -> None:
        self._connections: dict[WebSocket, LibraryContext] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, context: LibraryContext) -> None:
        await websocket.accept()
        async with self._lock:
            self._connections[websocket] = context
        logger.info("Sync socket connected for %s", context.uid or "guest")
        for collection in MIRRORED_COLLECTIONS:
            await self._send(websocket, snapshot_message(context, collection))

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            context = self._connections.pop(websocket, None)
        if context is not None:
            context.close()
            logger.info("Sync socket disconnected for %s", context.uid or "guest")

    async def connection_count(self) -> int:
        async with self._lock:
            return len(self._connections)

    async def broadcast_collection(self, collection: str) -> None:
        async with self._lock:
            targets = list(self._connections.items())
        for connection, context in targets:
            await self._send(connection, snapshot_message(context, collection))

    async def _send(self, websocket: WebSocket, message: dict[str, Any]) -> None:
        payload = json.dumps(message, default=str)
        try:
            await websocket.send_text(payload)
        except Exception:
            await self.disconnect(websocket)

    def bridge(self, loop: asyncio.AbstractEventLoop) -> Callable[[str], None]:
        """Build a mirror listener that schedules broadcasts on ``loop`` from any thread."""

        def _listener(collection: str) -> None:
            if loop.is_closed():
                return
            try:
                asyncio.run_coroutine_threadsafe(self.broadcast_collection(collection), loop)
            except RuntimeError:
                logger.warning("Event loop unavailable; dropped %s broadcast", collection)

        return _listener


sync_channel_manager = SyncChannelManager()


__all__ = ["SyncChannelManager", "snapshot_message", "sync_channel_manager"]
