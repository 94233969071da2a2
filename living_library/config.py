"""
Runtime configuration helpers for the Living Library backend.

Loads DATABASE_URL, the Gemini API key and the avatar storage settings from
the environment, falling back to the .env file in the project root.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .security.secrets import is_placeholder

# Resolve the project root
BASE_DIR = Path(__file__).resolve().parents[1]

# Absolute path to .env
ENV_PATH = BASE_DIR / ".env"

# Load .env defaults without overriding environment variables provided by the platform
load_dotenv(dotenv_path=ENV_PATH, override=False)


class Settings(BaseSettings):
    # Store connection; a missing value degrades to the configuration notice instead of crashing.
    database_url: str | None = Field(default=None, alias="DATABASE_URL")

    app_name: str = Field(default="Living Library", alias="APP_NAME")
    api_version: str = Field(default="2.0.0", alias="API_VERSION")
    public_base_url: str = Field(default="http://localhost:8000", alias="PUBLIC_BASE_URL")

    # Generative AI provider
    gemini_api_key: str | None = Field(default=None, alias="GEMINI_API_KEY")
    gemini_model: str = Field(default="gemini-2.5-flash", alias="GEMINI_MODEL")
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta", alias="GEMINI_BASE_URL"
    )
    gemini_timeout: float = Field(default=60.0, alias="GEMINI_TIMEOUT")

    # Request bodies carrying base64 files are capped at 10 MB.
    max_upload_bytes: int = Field(default=10 * 1024 * 1024, alias="MAX_UPLOAD_BYTES")

    # Avatar storage: "local" keeps files under MEDIA_ROOT, "spaces" uses DigitalOcean Spaces.
    avatar_storage: str = Field(default="local", alias="AVATAR_STORAGE")
    media_root: str = Field(default="media", alias="MEDIA_ROOT")

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore"
    )


@dataclass(frozen=True)
class StoreConfigStatus:
    """Outcome of validating the document store configuration."""

    valid: bool
    message: str


STORE_CONFIG_NOTICE = (
    "The story library is not configured. Set DATABASE_URL to a reachable database "
    "and restart the service; stories, comments and profiles are unavailable until then."
)


def store_config_status(settings: Settings | None = None) -> StoreConfigStatus:
    """Check that the store connection settings are present and not placeholders."""

    resolved = settings or get_settings()
    url = (resolved.database_url or "").strip()
    if is_placeholder(url):
        return StoreConfigStatus(valid=False, message=STORE_CONFIG_NOTICE)
    if "://" not in url or url.split("://", 1)[1].startswith("YOUR_"):
        return StoreConfigStatus(valid=False, message=STORE_CONFIG_NOTICE)
    return StoreConfigStatus(valid=True, message="Store configuration looks valid.")


@lru_cache()
def get_settings() -> Settings:
    return Settings()


__all__ = ["Settings", "StoreConfigStatus", "STORE_CONFIG_NOTICE", "get_settings", "store_config_status"]
