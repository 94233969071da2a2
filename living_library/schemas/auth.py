"""Pydantic schemas for authentication endpoints."""
from __future__ import annotations

from pydantic import BaseModel, Field


class SignUpRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., max_length=128)
    display_name: str | None = Field(default=None, max_length=150)


class LoginRequest(BaseModel):
    email: str
    password: str


class UserProfileResponse(BaseModel):
    uid: str
    name: str | None = None
    email: str | None = None
    image_url: str


class SessionResponse(BaseModel):
    user: UserProfileResponse
    bookmarks: list[str] = Field(default_factory=list)
    access_token: str | None = None
    token_type: str = "bearer"


__all__ = ["LoginRequest", "SessionResponse", "SignUpRequest", "UserProfileResponse"]
