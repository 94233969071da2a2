"""Authentication routes: sign-up, sign-in, session bootstrap and account deletion."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status

from ..dependencies import LibraryServices, get_services, get_signed_in_context
from ..schemas import LoginRequest, SessionResponse, SignUpRequest, UserProfileResponse
from ..services.document_store import StoreError
from ..services.identity_service import (
    AuthSession,
    EmailAlreadyInUseError,
    IdentityError,
    InvalidCredentialsError,
    InvalidEmailError,
    WeakPasswordError,
)
from ..services.library_context import LibraryContext

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)


def _session_response(context: LibraryContext, *, token: str | None = None) -> SessionResponse:
    user = context.current_user
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not signed in")
    return SessionResponse(
        user=UserProfileResponse(uid=user.uid, name=user.name, email=user.email, image_url=user.image_url),
        bookmarks=list(context.session.bookmarks),
        access_token=token,
    )


def _identity_http_error(exc: IdentityError) -> HTTPException:
    if isinstance(exc, EmailAlreadyInUseError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, (WeakPasswordError, InvalidEmailError)):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    if isinstance(exc, InvalidCredentialsError):
        return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc))
    logger.error("Identity provider error: %s", exc)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.post("/signup", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
def signup(payload: SignUpRequest, services: LibraryServices = Depends(get_services)) -> SessionResponse:
    auth = AuthSession(services.identity)
    with services.new_context(auth) as context:
        try:
            context.session.sign_up(payload.email, payload.password, display_name=payload.display_name)
        except IdentityError as exc:
            raise _identity_http_error(exc) from exc
        return _session_response(context, token=auth.id_token)


@router.post("/login", response_model=SessionResponse)
def login(payload: LoginRequest, services: LibraryServices = Depends(get_services)) -> SessionResponse:
    auth = AuthSession(services.identity)
    with services.new_context(auth) as context:
        try:
            context.session.sign_in(payload.email, payload.password)
        except IdentityError as exc:
            raise _identity_http_error(exc) from exc
        return _session_response(context, token=auth.id_token)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(context: LibraryContext = Depends(get_signed_in_context)) -> Response:
    # Tokens are stateless; the client discards its copy.
    context.session.sign_out()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/me", response_model=SessionResponse)
def read_session(context: LibraryContext = Depends(get_signed_in_context)) -> SessionResponse:
    """Current profile and bookmarks for the bearer token's account."""

    return _session_response(context)


@router.delete("/me", status_code=status.HTTP_204_NO_CONTENT)
def delete_account(context: LibraryContext = Depends(get_signed_in_context)) -> Response:
    try:
        context.mutations.delete_account()
    except IdentityError as exc:
        raise _identity_http_error(exc) from exc
    except StoreError as exc:
        logger.error("Account deletion failed: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete account. Please try again.",
        ) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


__all__ = ["router"]
