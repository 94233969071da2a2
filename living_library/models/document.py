"""SQLAlchemy ORM model backing every document collection."""
from __future__ import annotations

from sqlalchemy import JSON, Column, DateTime, Integer, String
from sqlalchemy.sql import func

from living_library.database import Base


class StoreDocument(Base):
    __tablename__ = "documents"

    collection = Column(String(64), primary_key=True)
    id = Column(String(128), primary_key=True)
    data = Column(JSON, nullable=False, default=dict)
    # Bumped on every write; conditional updates compare against it.
    version = Column(Integer, nullable=False, default=1, server_default="1")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


__all__ = ["StoreDocument"]
