"""System-level routes for diagnostics and configuration status."""
from __future__ import annotations

from fastapi import APIRouter, Request
from pydantic import BaseModel

from ..config import get_settings, store_config_status
from ..security.secrets import is_placeholder

router = APIRouter(tags=["system"])


class ConfigStatusResponse(BaseModel):
    store_configured: bool
    store_ready: bool
    message: str
    ai_configured: bool
    avatar_storage: str | None


@router.get("/api")
def api_info() -> dict[str, str]:
    settings = get_settings()
    return {"service": settings.app_name, "version": settings.api_version}


@router.get("/health")
async def healthcheck(request: Request) -> dict[str, str]:
    ready = getattr(request.app.state, "services", None) is not None
    return {"status": "ok" if ready else "degraded"}


@router.get("/config-status", response_model=ConfigStatusResponse)
def config_status(request: Request) -> ConfigStatusResponse:
    """Report whether the store, AI provider and avatar storage are usable."""

    settings = get_settings()
    status = store_config_status(settings)
    services = getattr(request.app.state, "services", None)
    return ConfigStatusResponse(
        store_configured=status.valid,
        store_ready=services is not None,
        message=status.message,
        ai_configured=not is_placeholder(settings.gemini_api_key),
        avatar_storage=settings.avatar_storage if services is not None and services.assets is not None else None,
    )


__all__ = ["router"]
