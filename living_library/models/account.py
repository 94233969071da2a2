"""SQLAlchemy ORM model for identity provider accounts."""
from __future__ import annotations

import uuid

from sqlalchemy import Column, DateTime, String
from sqlalchemy.sql import func

from living_library.database import Base


def _new_uid() -> str:
    return uuid.uuid4().hex


class Account(Base):
    __tablename__ = "accounts"

    uid = Column(String(64), primary_key=True, default=_new_uid)
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    display_name = Column(String(150), nullable=True)
    photo_url = Column(String(2048), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    last_sign_in_at = Column(DateTime(timezone=True), nullable=True)


__all__ = ["Account"]
