"""Aggregate router exports."""
from .ai import router as ai_router
from .auth import router as auth_router
from .comments import router as comments_router
from .interactions import router as interactions_router
from .profiles import router as profiles_router
from .realtime import router as realtime_router
from .stories import router as stories_router
from .system import router as system_router

__all__ = [
    "ai_router",
    "auth_router",
    "comments_router",
    "interactions_router",
    "profiles_router",
    "realtime_router",
    "stories_router",
    "system_router",
]
