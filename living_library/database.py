"""Database layer utilities for the SQLAlchemy-backed document store."""
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .config import get_settings, store_config_status

logger = logging.getLogger(__name__)

# Load settings (DATABASE_URL and others come from env/.env)
settings = get_settings()


def _engine_options(url: str) -> dict[str, Any]:
    options: dict[str, Any] = {"pool_pre_ping": True, "future": True}
    if url.startswith("sqlite"):
        # Store listeners and request handlers share connections across threads.
        options["connect_args"] = {"check_same_thread": False}
    return options


engine: Engine | None = None
if store_config_status(settings).valid:
    engine = create_engine(settings.database_url, **_engine_options(settings.database_url))
else:
    logger.error("DATABASE_URL is missing or a placeholder; store-backed features are disabled")

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    future=True,
    expire_on_commit=False,
)

Base = declarative_base()


def get_engine() -> Engine | None:
    """Return the configured SQLAlchemy engine, or ``None`` when unconfigured."""
    return engine


def create_session() -> Session:
    """Return a new SQLAlchemy session for the store, identity provider or scripts."""
    return SessionLocal()


def init_db() -> None:
    """Initialise database schema by creating tables when missing."""
    if engine is None:
        raise RuntimeError("DATABASE_URL is not configured")

    # Import models to ensure they are registered on the metadata before create_all runs.
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=engine)


__all__ = [
    "Base",
    "SessionLocal",
    "engine",
    "get_engine",
    "create_session",
    "init_db",
]
