from __future__ import annotations

import io

import pytest
from botocore.exceptions import ClientError

from living_library.config import Settings
from living_library.services.asset_service import (
    AssetStore,
    InvalidAssetError,
    LocalAssetBackend,
    SpacesAssetBackend,
    SpacesConfig,
    SpacesConfigurationError,
    build_asset_store,
    load_spaces_config,
)


class FakeS3Client:
    def __init__(self) -> None:
        self.objects: dict[str, dict] = {}

    def put_object(self, **kwargs):
        self.objects[kwargs["Key"]] = kwargs

    def get_object(self, *, Bucket, Key):
        if Key not in self.objects:
            raise ClientError({"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "GetObject")
        stored = self.objects[Key]
        return {"Body": io.BytesIO(stored["Body"]), "ContentType": stored["ContentType"]}

    def delete_object(self, *, Bucket, Key):
        self.objects.pop(Key, None)


SPACES_CONFIG = SpacesConfig(
    key="key",
    secret="secret",
    region="nyc3",
    bucket="library",
    api_endpoint="https://nyc3.digitaloceanspaces.com",
    public_endpoint="https://cdn.example.com",
)


def test_local_backend_replaces_previous_avatar(tmp_path):
    store = AssetStore(LocalAssetBackend(tmp_path, "http://localhost:8000/"), max_bytes=100)

    first = store.upload_avatar("u1", b"png-bytes", "image/png")
    second = store.upload_avatar("u1", b"jpeg-bytes", "image/jpeg; charset=binary")

    assert first.url.startswith("http://localhost:8000/media/avatars/u1.png?v=")
    assert second.content_type == "image/jpeg"
    assert len(list((tmp_path / "avatars").iterdir())) == 1
    assert store.fetch_avatar("u1") == (b"jpeg-bytes", "image/jpeg")

    store.delete_avatar("u1")
    assert store.fetch_avatar("u1") is None


@pytest.mark.parametrize(
    "data, content_type",
    [
        (b"text", "text/plain"),
        (b"", "image/png"),
        (b"x" * 101, "image/png"),
        (b"data", None),
    ],
)
def test_upload_validation(tmp_path, data, content_type):
    store = AssetStore(LocalAssetBackend(tmp_path, "http://localhost:8000"), max_bytes=100)
    with pytest.raises(InvalidAssetError):
        store.upload_avatar("u1", data, content_type)


def test_spaces_backend_round_trip():
    fake = FakeS3Client()
    store = AssetStore(SpacesAssetBackend(client=fake, config=SPACES_CONFIG), max_bytes=1000)

    asset = store.upload_avatar("u9", b"avatar", "image/png")

    assert asset.key == "avatars/u9"
    assert asset.url.startswith("https://cdn.example.com/library/avatars/u9?v=")
    assert fake.objects["avatars/u9"]["ACL"] == "public-read"
    assert store.fetch_avatar("u9") == (b"avatar", "image/png")

    store.delete_avatar("u9")
    assert store.fetch_avatar("u9") is None


def test_spaces_config_requires_environment(monkeypatch):
    for name in ("DO_SPACES_KEY", "DO_SPACES_SECRET", "DO_SPACES_REGION", "DO_SPACES_NAME", "DO_SPACES_ENDPOINT"):
        monkeypatch.delenv(name, raising=False)
    load_spaces_config.cache_clear()
    try:
        with pytest.raises(SpacesConfigurationError):
            load_spaces_config()
    finally:
        load_spaces_config.cache_clear()


def test_spaces_config_from_environment(monkeypatch):
    monkeypatch.setenv("DO_SPACES_KEY", "real-key")
    monkeypatch.setenv("DO_SPACES_SECRET", "real-secret")
    monkeypatch.setenv("DO_SPACES_REGION", "ams3")
    monkeypatch.setenv("DO_SPACES_NAME", "stories")
    monkeypatch.setenv("DO_SPACES_ENDPOINT", "cdn.stories.example.org/")
    load_spaces_config.cache_clear()
    try:
        config = load_spaces_config()
    finally:
        load_spaces_config.cache_clear()

    assert config.api_endpoint == "https://ams3.digitaloceanspaces.com"
    assert config.public_endpoint == "https://cdn.stories.example.org"


def test_build_asset_store_rejects_unknown_backend(tmp_path):
    settings = Settings(AVATAR_STORAGE="floppy", MEDIA_ROOT=str(tmp_path))
    with pytest.raises(SpacesConfigurationError):
        build_asset_store(settings)

    local = build_asset_store(Settings(AVATAR_STORAGE="local", MEDIA_ROOT=str(tmp_path)))
    assert isinstance(local.backend, LocalAssetBackend)
