"""FastAPI application wiring for the Living Library backend."""
from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Callable, Iterable

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from .config import get_settings, store_config_status
from .database import init_db
from .dependencies import build_services
from .routers import (
    ai_router,
    auth_router,
    comments_router,
    interactions_router,
    profiles_router,
    realtime_router,
    stories_router,
    system_router,
)
from .services.realtime import sync_channel_manager

logger = logging.getLogger(__name__)

settings = get_settings()
APP_NAME = settings.app_name
API_VERSION = settings.api_version

app = FastAPI(title=APP_NAME, version=API_VERSION)
app.state.services = None

cors_origins = os.getenv("CORS_ORIGINS")
if cors_origins:
    origins: Iterable[str] = [origin.strip() for origin in cors_origins.split(",") if origin.strip()]
else:
    origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(system_router)
app.include_router(auth_router)
app.include_router(stories_router)
app.include_router(comments_router)
app.include_router(interactions_router)
app.include_router(profiles_router)
app.include_router(ai_router)
app.include_router(realtime_router)

_remove_bridge: Callable[[], None] | None = None


def _mount_static(directory: Path, route: str, name: str) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    app.mount(route, StaticFiles(directory=str(directory), check_dir=False), name=name)


@app.on_event("startup")
async def _startup() -> None:
    """Create the schema, build the shared services and start the collection mirror."""

    global _remove_bridge
    config_status = store_config_status(settings)
    if not config_status.valid:
        logger.error("Store configuration invalid: %s", config_status.message)
        app.state.services = None
        return

    try:
        init_db()
    except Exception:  # pragma: no cover - best effort logging
        logger.exception("Database initialisation failed")
        raise

    services = build_services(settings)
    _remove_bridge = services.mirror.add_listener(sync_channel_manager.bridge(asyncio.get_running_loop()))
    services.mirror.start()
    app.state.services = services
    logger.info("%s %s ready", APP_NAME, API_VERSION)


@app.on_event("shutdown")
async def _shutdown() -> None:
    global _remove_bridge
    services = app.state.services
    if _remove_bridge is not None:
        _remove_bridge()
        _remove_bridge = None
    if services is not None:
        services.mirror.stop()
    app.state.services = None


MEDIA_ROOT = Path(settings.media_root)

_mount_static(MEDIA_ROOT, "/media", "media")
