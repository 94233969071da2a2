"""Shared service container and FastAPI dependencies for routers."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import STORE_CONFIG_NOTICE, Settings, get_settings
from .database import create_session
from .services.ai_service import AIService
from .services.asset_service import AssetStore, AssetStoreError, build_asset_store
from .services.collection_mirror import CollectionMirror
from .services.document_store import DocumentStore
from .services.identity_service import AuthSession, IdentityProvider, InvalidTokenError
from .services.library_context import LibraryContext

logger = logging.getLogger(__name__)

_security = HTTPBearer(auto_error=False)

NO_TOKEN_MESSAGE = "Unauthorized: No token provided."
INVALID_TOKEN_MESSAGE = "Forbidden: Invalid token."


@dataclass
class LibraryServices:
    """Process-wide collaborators created once at startup."""

    store: DocumentStore
    identity: IdentityProvider
    mirror: CollectionMirror
    assets: AssetStore | None
    ai: AIService

    def new_context(self, auth: AuthSession) -> LibraryContext:
        return LibraryContext(auth, self.store, assets=self.assets, mirror=self.mirror)


def build_services(settings: Settings | None = None) -> LibraryServices:
    resolved = settings or get_settings()
    store = DocumentStore(create_session)
    try:
        assets: AssetStore | None = build_asset_store(resolved)
    except AssetStoreError:
        logger.exception("Avatar storage is misconfigured; profile pictures are disabled")
        assets = None
    return LibraryServices(
        store=store,
        identity=IdentityProvider(create_session),
        mirror=CollectionMirror(store),
        assets=assets,
        ai=AIService(),
    )


def get_services(request: Request) -> LibraryServices:
    services: LibraryServices | None = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=STORE_CONFIG_NOTICE)
    return services


def get_ai_service(request: Request) -> AIService:
    services: LibraryServices | None = getattr(request.app.state, "services", None)
    return services.ai if services is not None else AIService()


def open_context(services: LibraryServices, token: str | None) -> LibraryContext:
    """Build and open a context, restoring the session from ``token`` when given."""

    auth = AuthSession(services.identity)
    if token:
        auth.restore(token)
    return services.new_context(auth).open()


def get_library_context(
    credentials: HTTPAuthorizationCredentials | None = Depends(_security),
    services: LibraryServices = Depends(get_services),
) -> Iterator[LibraryContext]:
    """Per-request context; anonymous when no bearer token is sent."""

    token = None
    if credentials is not None and credentials.scheme.lower() == "bearer":
        token = credentials.credentials
    try:
        context = open_context(services, token)
    except InvalidTokenError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=INVALID_TOKEN_MESSAGE) from exc
    try:
        yield context
    finally:
        context.close()


def get_signed_in_context(context: LibraryContext = Depends(get_library_context)) -> LibraryContext:
    if context.uid is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=NO_TOKEN_MESSAGE)
    return context


__all__ = [
    "INVALID_TOKEN_MESSAGE",
    "LibraryServices",
    "NO_TOKEN_MESSAGE",
    "build_services",
    "get_ai_service",
    "get_library_context",
    "get_services",
    "get_signed_in_context",
    "open_context",
]
