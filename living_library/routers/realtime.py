"""WebSocket endpoint streaming collection snapshots to members."""
from __future__ import annotations

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from fastapi.concurrency import run_in_threadpool

from ..dependencies import INVALID_TOKEN_MESSAGE, LibraryServices, open_context
from ..services.identity_service import InvalidTokenError
from ..services.realtime import snapshot_message, sync_channel_manager

router = APIRouter()
logger = logging.getLogger(__name__)


@router.websocket("/ws/sync")
async def sync_updates(websocket: WebSocket) -> None:
    """Send every collection on connect, then each collection again whenever it changes."""

    services: LibraryServices | None = getattr(websocket.app.state, "services", None)
    if services is None:
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        return

    token = websocket.query_params.get("token")
    try:
        context = await run_in_threadpool(open_context, services, token)
    except InvalidTokenError:
        logger.warning("Sync socket rejected: %s", INVALID_TOKEN_MESSAGE)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await sync_channel_manager.connect(websocket, context)
    try:
        while True:
            try:
                raw = await websocket.receive_text()
            except WebSocketDisconnect:
                break
            except Exception:
                logger.exception("Sync socket receive failed")
                break

            try:
                payload = json.loads(raw)
            except json.JSONDecodeError:
                payload = {"type": raw}
            if not isinstance(payload, dict):
                payload = {}

            message_type = str(payload.get("type") or "").lower()
            if message_type == "ping":
                await websocket.send_text(json.dumps({"type": "pong"}))
            elif message_type == "hello":
                await websocket.send_text(json.dumps({"type": "ready", "uid": context.uid}))
            elif message_type == "refresh":
                collection = payload.get("collection")
                if collection:
                    try:
                        message = snapshot_message(context, str(collection))
                    except ValueError:
                        message = {"type": "error", "detail": f"Unknown collection: {collection}"}
                    await websocket.send_text(json.dumps(message, default=str))
    finally:
        await sync_channel_manager.disconnect(websocket)


__all__ = ["router"]
