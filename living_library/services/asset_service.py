"""Avatar storage: local media directory or DigitalOcean Spaces."""
from __future__ import annotations

import logging
import mimetypes
import os
import time
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Protocol, cast
from urllib.parse import urlparse

from boto3.session import Session
from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError

from ..config import Settings, get_settings
from ..security.secrets import MissingSecretError, is_placeholder, require_secret

logger = logging.getLogger(__name__)

AVATAR_FOLDER = "avatars"


@dataclass(frozen=True)
class SpacesConfig:
    """Runtime configuration extracted from environment variables."""

    key: str
    secret: str
    region: str
    bucket: str
    api_endpoint: str
    public_endpoint: str


@dataclass(frozen=True)
class StoredAsset:
    key: str
    url: str
    content_type: str


class AssetStoreError(RuntimeError):
    """Raised when an avatar cannot be stored, fetched or deleted."""


class InvalidAssetError(AssetStoreError):
    """Raised when an upload is not an acceptable avatar image."""


class SpacesConfigurationError(AssetStoreError):
    """Raised when required DigitalOcean Spaces settings are missing or invalid."""


@lru_cache(maxsize=1)
def load_spaces_config() -> SpacesConfig:
    """Read and validate DigitalOcean Spaces configuration from the environment."""

    required: dict[str, str | None] = {
        "DO_SPACES_KEY": os.getenv("DO_SPACES_KEY"),
        "DO_SPACES_SECRET": os.getenv("DO_SPACES_SECRET"),
        "DO_SPACES_REGION": os.getenv("DO_SPACES_REGION"),
        "DO_SPACES_NAME": os.getenv("DO_SPACES_NAME"),
        "DO_SPACES_ENDPOINT": os.getenv("DO_SPACES_ENDPOINT"),
    }
    missing = [name for name, value in required.items() if not value or not value.strip()]
    if missing:
        raise SpacesConfigurationError(
            "Missing required DigitalOcean Spaces configuration: " + ", ".join(sorted(missing))
        )

    try:
        key = require_secret("DO_SPACES_KEY")
        secret = require_secret("DO_SPACES_SECRET")
    except MissingSecretError as exc:
        raise SpacesConfigurationError(str(exc)) from exc

    region = cast(str, required["DO_SPACES_REGION"]).strip()
    bucket = cast(str, required["DO_SPACES_NAME"]).strip()
    endpoint_raw = cast(str, required["DO_SPACES_ENDPOINT"]).strip()
    if is_placeholder(region) or is_placeholder(bucket) or is_placeholder(endpoint_raw):
        raise SpacesConfigurationError("DigitalOcean Spaces settings still use placeholder values")

    public_endpoint = endpoint_raw.rstrip("/")
    parsed = urlparse(public_endpoint)
    if not parsed.scheme:
        parsed = urlparse(f"https://{public_endpoint.lstrip(':/')}")
    if not (parsed.netloc or parsed.path):
        raise SpacesConfigurationError("DO_SPACES_ENDPOINT must include a hostname.")

    return SpacesConfig(
        key=key,
        secret=secret,
        region=region,
        bucket=bucket,
        api_endpoint=f"https://{region}.digitaloceanspaces.com",
        public_endpoint=parsed.geturl().rstrip("/"),
    )


@lru_cache(maxsize=1)
def get_spaces_client() -> BaseClient:
    """Create a singleton boto3 client for Spaces interactions."""

    config = load_spaces_config()
    return Session().client(
        "s3",
        region_name=config.region,
        endpoint_url=config.api_endpoint,
        aws_access_key_id=config.key,
        aws_secret_access_key=config.secret,
    )


class AssetBackend(Protocol):
    def put(self, key: str, data: bytes, content_type: str) -> str: ...

    def get(self, key: str) -> tuple[bytes, str] | None: ...

    def remove(self, key: str) -> None: ...


class LocalAssetBackend:
    """Keeps avatars under ``media_root`` and serves them from ``/media``."""

    def __init__(self, media_root: str | Path, public_base_url: str) -> None:
        self.root = Path(media_root)
        self.public_base_url = public_base_url.rstrip("/")

    def _matches(self, key: str) -> list[Path]:
        target = self.root / key
        if not target.parent.exists():
            return []
        return sorted(target.parent.glob(f"{target.name}.*"))

    def put(self, key: str, data: bytes, content_type: str) -> str:
        extension = mimetypes.guess_extension(content_type) or ".bin"
        target = self.root / f"{key}{extension}"
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            for stale in self._matches(key):
                stale.unlink(missing_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            logger.exception("Failed to write avatar %s", target)
            raise AssetStoreError("Unable to store the image right now.") from exc
        relative = target.relative_to(self.root).as_posix()
        # Same key on every upload; the query string defeats cached copies.
        return f"{self.public_base_url}/media/{relative}?v={int(time.time() * 1000)}"

    def get(self, key: str) -> tuple[bytes, str] | None:
        for path in self._matches(key):
            content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
            return path.read_bytes(), content_type
        return None

    def remove(self, key: str) -> None:
        try:
            for path in self._matches(key):
                path.unlink(missing_ok=True)
        except OSError as exc:
            raise AssetStoreError("Unable to delete the stored image.") from exc


class SpacesAssetBackend:
    """Stores avatars as public-read objects in a DigitalOcean Spaces bucket."""

    def __init__(self, client: BaseClient | None = None, config: SpacesConfig | None = None) -> None:
        self._client = client
        self._config = config

    @property
    def config(self) -> SpacesConfig:
        if self._config is None:
            self._config = load_spaces_config()
        return self._config

    @property
    def client(self) -> BaseClient:
        if self._client is None:
            self._client = get_spaces_client()
        return self._client

    def put(self, key: str, data: bytes, content_type: str) -> str:
        try:
            self.client.put_object(
                Bucket=self.config.bucket,
                Key=key,
                Body=data,
                ACL="public-read",
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as exc:  # pragma: no cover - network errors hard to reproduce
            logger.exception("Upload to DigitalOcean Spaces failed: %s", exc)
            raise AssetStoreError("Upload to DigitalOcean Spaces failed") from exc
        return f"{self.config.public_endpoint}/{self.config.bucket}/{key}?v={int(time.time() * 1000)}"

    def get(self, key: str) -> tuple[bytes, str] | None:
        try:
            response = self.client.get_object(Bucket=self.config.bucket, Key=key)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in {"NoSuchKey", "404"}:
                return None
            logger.exception("Failed to fetch Spaces object %s", key)
            raise AssetStoreError("Unable to fetch media from storage") from exc
        except BotoCoreError as exc:  # pragma: no cover - network bound
            raise AssetStoreError("Unable to fetch media from storage") from exc
        body = response["Body"].read()
        return body, response.get("ContentType") or "application/octet-stream"

    def remove(self, key: str) -> None:
        try:
            self.client.delete_object(Bucket=self.config.bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:  # pragma: no cover - network bound
            logger.exception("Failed to delete Spaces object %s", key)
            raise AssetStoreError("Unable to delete media from storage") from exc


class AssetStore:
    """Avatar storage keyed by user id, one object per user."""

    def __init__(self, backend: AssetBackend, *, max_bytes: int) -> None:
        self.backend = backend
        self.max_bytes = max_bytes

    @staticmethod
    def avatar_key(uid: str) -> str:
        return f"{AVATAR_FOLDER}/{uid}"

    def upload_avatar(self, uid: str, data: bytes, content_type: str | None) -> StoredAsset:
        """Store ``data`` as the avatar of ``uid``, replacing any previous one."""

        normalized_type = (content_type or "").split(";", 1)[0].strip().lower()
        if not normalized_type.startswith("image/"):
            raise InvalidAssetError("Please choose an image file for your profile picture.")
        if not data:
            raise InvalidAssetError("The uploaded image is empty.")
        if len(data) > self.max_bytes:
            raise InvalidAssetError("The uploaded image is too large.")
        key = self.avatar_key(uid)
        url = self.backend.put(key, data, normalized_type)
        logger.info("Stored avatar for %s", uid)
        return StoredAsset(key=key, url=url, content_type=normalized_type)

    def fetch_avatar(self, uid: str) -> tuple[bytes, str] | None:
        return self.backend.get(self.avatar_key(uid))

    def delete_avatar(self, uid: str) -> None:
        self.backend.remove(self.avatar_key(uid))


def build_asset_store(settings: Settings | None = None) -> AssetStore:
    """Create the asset store selected by ``AVATAR_STORAGE``."""

    resolved = settings or get_settings()
    mode = (resolved.avatar_storage or "local").strip().lower()
    if mode == "spaces":
        backend: AssetBackend = SpacesAssetBackend()
    elif mode == "local":
        backend = LocalAssetBackend(resolved.media_root, resolved.public_base_url)
    else:
        raise SpacesConfigurationError(f"Unknown AVATAR_STORAGE backend: {resolved.avatar_storage}")
    return AssetStore(backend, max_bytes=resolved.max_upload_bytes)


__all__ = [
    "AssetBackend",
    "AssetStore",
    "AssetStoreError",
    "InvalidAssetError",
    "LocalAssetBackend",
    "SpacesAssetBackend",
    "SpacesConfig",
    "SpacesConfigurationError",
    "StoredAsset",
    "build_asset_store",
    "get_spaces_client",
    "load_spaces_config",
]
