"""Convenience exports for ORM models."""
from .account import Account
from .document import StoreDocument

__all__ = [
    "Account",
    "StoreDocument",
]
