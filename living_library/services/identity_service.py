"""Email/password identity provider with JWT id tokens.

``IdentityProvider`` is the shared backend: accounts live in the ``accounts``
table, passwords are hashed with bcrypt and id tokens are signed JWTs.
``AuthSession`` is one client's view of it, holding the signed-in principal
and notifying observers whenever that changes.
"""
from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Callable, Optional

from email_validator import EmailNotValidError, validate_email
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import Account
from ..security.secrets import MissingSecretError, require_secret

logger = logging.getLogger(__name__)

_pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
DEFAULT_TOKEN_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "1440"))
MIN_PASSWORD_LENGTH = 6


class IdentityError(RuntimeError):
    """Base class for identity provider failures carrying a user-facing message."""


class InvalidCredentialsError(IdentityError):
    def __init__(self, message: str = "Invalid email or password.") -> None:
        super().__init__(message)


class EmailAlreadyInUseError(IdentityError):
    def __init__(self, message: str = "An account with this email already exists.") -> None:
        super().__init__(message)


class WeakPasswordError(IdentityError):
    def __init__(self, message: str = "Password should be at least 6 characters.") -> None:
        super().__init__(message)


class InvalidEmailError(IdentityError):
    def __init__(self, message: str = "Please enter a valid email address.") -> None:
        super().__init__(message)


class InvalidTokenError(IdentityError):
    def __init__(self, message: str = "Forbidden: Invalid token.") -> None:
        super().__init__(message)


class AccountNotFoundError(IdentityError):
    def __init__(self, message: str = "Account not found.") -> None:
        super().__init__(message)


@dataclass(frozen=True)
class Principal:
    """Identity-provider view of a signed-in account."""

    uid: str
    email: str
    display_name: str | None = None
    photo_url: str | None = None


@lru_cache(maxsize=1)
def _get_jwt_secret() -> str:
    try:
        return require_secret("JWT_SECRET_KEY")
    except MissingSecretError as exc:
        raise RuntimeError(str(exc)) from exc


def hash_password(password: str) -> str:
    """Hash a plain-text password using bcrypt."""

    return _pwd_context.hash(password)


def verify_password(password: str, hashed_password: str) -> bool:
    try:
        return _pwd_context.verify(password, hashed_password)
    except Exception:  # pragma: no cover - passlib internal errors are rare
        logger.exception("Password verification failed due to an unexpected error")
        return False


def _normalize_email(email: str) -> str:
    try:
        result = validate_email(email.strip(), check_deliverability=False)
    except EmailNotValidError as exc:
        raise InvalidEmailError() from exc
    return result.normalized.lower()


def _to_principal(account: Account) -> Principal:
    return Principal(
        uid=account.uid,
        email=account.email,
        display_name=account.display_name,
        photo_url=account.photo_url,
    )


_UNSET = object()


class IdentityProvider:
    """Account registry and token authority shared by every client session."""

    def __init__(self, session_factory: Callable[[], Session], *, token_minutes: int | None = None) -> None:
        self._session_factory = session_factory
        self._token_minutes = token_minutes or DEFAULT_TOKEN_MINUTES

    def create_user(self, email: str, password: str, *, display_name: str | None = None) -> Principal:
        normalized = _normalize_email(email)
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise WeakPasswordError()

        account = Account(
            email=normalized,
            hashed_password=hash_password(password),
            display_name=(display_name or "").strip() or None,
        )
        with self._session_factory() as db:
            if db.scalar(select(Account).where(Account.email == normalized)):
                raise EmailAlreadyInUseError()
            try:
                db.add(account)
                db.commit()
                db.refresh(account)
            except IntegrityError as exc:
                db.rollback()
                raise EmailAlreadyInUseError() from exc
            except SQLAlchemyError as exc:
                db.rollback()
                logger.exception("Failed to register account for %s", normalized)
                raise IdentityError("Unable to create the account right now.") from exc
            logger.info("Registered account %s", account.uid)
            return _to_principal(account)

    def authenticate(self, email: str, password: str) -> Principal:
        try:
            normalized = _normalize_email(email)
        except InvalidEmailError as exc:
            raise InvalidCredentialsError() from exc
        with self._session_factory() as db:
            account = db.scalar(select(Account).where(Account.email == normalized))
            if account is None or not verify_password(password or "", account.hashed_password):
                raise InvalidCredentialsError()
            try:
                account.last_sign_in_at = datetime.now(timezone.utc)
                db.commit()
            except SQLAlchemyError:  # pragma: no cover - sign-in still succeeds
                db.rollback()
                logger.warning("Failed to record sign-in time for %s", account.uid)
            return _to_principal(account)

    def get_user(self, uid: str) -> Principal | None:
        with self._session_factory() as db:
            account = db.get(Account, uid)
            return _to_principal(account) if account is not None else None

    def update_user(
        self,
        uid: str,
        *,
        display_name: str | None | object = _UNSET,
        photo_url: str | None | object = _UNSET,
    ) -> Principal:
        with self._session_factory() as db:
            account = db.get(Account, uid)
            if account is None:
                raise AccountNotFoundError()
            if display_name is not _UNSET:
                account.display_name = display_name
            if photo_url is not _UNSET:
                account.photo_url = photo_url
            try:
                db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                logger.exception("Failed to update account %s", uid)
                raise IdentityError("Unable to update the account right now.") from exc
            return _to_principal(account)

    def delete_user(self, uid: str) -> None:
        with self._session_factory() as db:
            account = db.get(Account, uid)
            if account is None:
                raise AccountNotFoundError()
            try:
                db.delete(account)
                db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                logger.exception("Failed to delete account %s", uid)
                raise IdentityError("Unable to delete the account right now.") from exc
        logger.info("Deleted account %s", uid)

    def issue_token(self, principal: Principal, *, expires_minutes: Optional[int] = None) -> str:
        """Create a signed id token for ``principal``."""

        now = datetime.now(timezone.utc)
        payload = {
            "sub": principal.uid,
            "email": principal.email,
            "iat": now,
            "exp": now + timedelta(minutes=expires_minutes or self._token_minutes),
        }
        return jwt.encode(payload, _get_jwt_secret(), algorithm=ALGORITHM)

    def verify_id_token(self, token: str) -> Principal:
        """Decode ``token`` and return the live principal it names."""

        try:
            payload = jwt.decode(token, _get_jwt_secret(), algorithms=[ALGORITHM])
        except JWTError as exc:
            raise InvalidTokenError() from exc
        subject = payload.get("sub")
        if not subject:
            raise InvalidTokenError()
        principal = self.get_user(str(subject))
        if principal is None:
            raise InvalidTokenError()
        return principal


AuthStateCallback = Callable[[Optional[Principal]], None]


class AuthSession:
    """One client's signed-in state against a shared :class:`IdentityProvider`."""

    def __init__(self, provider: IdentityProvider) -> None:
        self.provider = provider
        self._principal: Principal | None = None
        self._token: str | None = None
        self._observers: list[AuthStateCallback] = []
        self._lock = threading.Lock()

    @property
    def current_principal(self) -> Principal | None:
        return self._principal

    @property
    def id_token(self) -> str | None:
        return self._token

    def on_auth_state_changed(self, callback: AuthStateCallback) -> Callable[[], None]:
        """Register ``callback``; it fires now with the current state and on every change."""

        with self._lock:
            self._observers.append(callback)
        callback(self._principal)

        def _unsubscribe() -> None:
            with self._lock:
                if callback in self._observers:
                    self._observers.remove(callback)

        return _unsubscribe

    def sign_up(self, email: str, password: str, *, display_name: str | None = None) -> Principal:
        principal = self.provider.create_user(email, password, display_name=display_name)
        self._set(principal, self.provider.issue_token(principal))
        return principal

    def sign_in(self, email: str, password: str) -> Principal:
        principal = self.provider.authenticate(email, password)
        self._set(principal, self.provider.issue_token(principal))
        return principal

    def restore(self, token: str) -> Principal:
        """Resume a session from a previously issued id token."""

        principal = self.provider.verify_id_token(token)
        self._set(principal, token)
        return principal

    def sign_out(self) -> None:
        if self._principal is None:
            return
        self._set(None, None)

    def update_profile(self, *, display_name: str | None | object = _UNSET, photo_url: str | None | object = _UNSET) -> Principal:
        principal = self._require_principal()
        updated = self.provider.update_user(principal.uid, display_name=display_name, photo_url=photo_url)
        # Profile edits refresh the principal in place without re-announcing a sign-in.
        self._principal = updated
        return updated

    def delete(self) -> None:
        principal = self._require_principal()
        self.provider.delete_user(principal.uid)
        self._set(None, None)

    def _require_principal(self) -> Principal:
        if self._principal is None:
            raise InvalidCredentialsError("You must be signed in to do that.")
        return self._principal

    def _set(self, principal: Principal | None, token: str | None) -> None:
        self._principal = principal
        self._token = token
        with self._lock:
            observers = list(self._observers)
        for observer in observers:
            try:
                observer(principal)
            except Exception:
                logger.exception("Auth state observer raised")


__all__ = [
    "AccountNotFoundError",
    "AuthSession",
    "EmailAlreadyInUseError",
    "IdentityError",
    "IdentityProvider",
    "InvalidCredentialsError",
    "InvalidEmailError",
    "InvalidTokenError",
    "Principal",
    "WeakPasswordError",
    "hash_password",
    "verify_password",
]
