"""Helpers for reading credentials from the environment without leaking them."""
from __future__ import annotations

import os
from typing import Final

__all__ = ["MissingSecretError", "require_secret", "optional_secret", "is_placeholder"]


class MissingSecretError(RuntimeError):
    """Raised when a required credential is absent or still set to a template value."""


_PLACEHOLDER_VALUES: Final[set[str]] = {
    "changeme",
    "change-me",
    "placeholder",
    "example",
    "your-key-here",
    "your_api_key",
}
# Copy-pasted provider templates ship values such as "YOUR_API_KEY" or "YOUR_PROJECT_ID".
_PLACEHOLDER_PREFIXES: Final[tuple[str, ...]] = ("your_", "your-")


def is_placeholder(value: str | None) -> bool:
    if not value:
        return True
    normalized = value.strip().lower()
    if not normalized or normalized in _PLACEHOLDER_VALUES:
        return True
    return normalized.startswith(_PLACEHOLDER_PREFIXES)


def optional_secret(name: str) -> str | None:
    """Return the trimmed value of ``name`` or ``None`` when unset or a placeholder."""

    value = os.getenv(name)
    if is_placeholder(value):
        return None
    return value.strip()


def require_secret(name: str) -> str:
    """Return a trimmed secret value or raise :class:`MissingSecretError`."""

    value = optional_secret(name)
    if value is None:
        raise MissingSecretError(f"Environment variable {name} is required and must not use placeholder defaults")
    return value
