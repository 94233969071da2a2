"""Profile routes: display name and avatar management."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile, status
from fastapi.concurrency import run_in_threadpool

from ..dependencies import LibraryServices, get_services, get_signed_in_context
from ..schemas import UserProfileResponse
from ..services.asset_service import AssetStoreError, InvalidAssetError
from ..services.document_store import StoreError
from ..services.identity_service import IdentityError
from ..services.library_context import LibraryContext
from ..services.mutation_service import InvalidInputError, NotAuthenticatedError
from .stories import raise_http_error

router = APIRouter(prefix="/profiles", tags=["profiles"])
logger = logging.getLogger(__name__)


@router.put("/me", response_model=UserProfileResponse)
async def update_my_profile(
    name: str = Form(...),
    avatar: UploadFile | None = File(default=None),
    context: LibraryContext = Depends(get_signed_in_context),
) -> UserProfileResponse:
    image: bytes | None = None
    content_type: str | None = None
    if avatar is not None and avatar.filename:
        image = await avatar.read()
        content_type = avatar.content_type

    try:
        profile = await run_in_threadpool(
            context.mutations.update_user_profile,
            name,
            image=image,
            content_type=content_type,
        )
    except InvalidAssetError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except AssetStoreError as exc:
        logger.error("Avatar upload failed: %s", exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    except IdentityError as exc:
        logger.error("Profile update rejected by identity provider: %s", exc)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    except (NotAuthenticatedError, InvalidInputError, StoreError) as exc:
        raise_http_error(exc)
    return UserProfileResponse(uid=profile.uid, name=profile.name, email=profile.email, image_url=profile.image_url)


@router.get("/{uid}/avatar")
def read_avatar(uid: str, services: LibraryServices = Depends(get_services)) -> Response:
    if services.assets is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Avatar storage is not configured")
    try:
        stored = services.assets.fetch_avatar(uid)
    except AssetStoreError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    if stored is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Avatar not found")
    data, content_type = stored
    return Response(content=data, media_type=content_type)


__all__ = ["router"]
