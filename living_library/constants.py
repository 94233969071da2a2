"""Project-wide constant values."""
from __future__ import annotations

from typing import Final, Literal

# Store collections
USERS: Final = "users"
STORIES: Final = "stories"
COMMENTS: Final = "comments"
LIKES: Final = "likes"
REPORTS: Final = "reports"
EMPATHY_RATINGS: Final = "empathyRatings"

MIRRORED_COLLECTIONS: Final[tuple[str, ...]] = (STORIES, COMMENTS, LIKES, REPORTS, EMPATHY_RATINGS, USERS)

# Story lifecycle
StoryStatus = Literal["processing", "pending_review", "published"]
STATUS_PROCESSING: Final = "processing"
STATUS_PENDING_REVIEW: Final = "pending_review"
STATUS_PUBLISHED: Final = "published"
STORY_STATUSES: Final[frozenset[str]] = frozenset({STATUS_PROCESSING, STATUS_PENDING_REVIEW, STATUS_PUBLISHED})

ALL_CATEGORIES: Final = "All"

EMPATHY_MIN: Final = 0
EMPATHY_MAX: Final = 100


def placeholder_avatar_url(uid: str) -> str:
    """Deterministic avatar used until a member uploads their own."""

    return f"https://picsum.photos/seed/{uid}/200/200"


def placeholder_story_image_url(seed: int | str) -> str:
    return f"https://picsum.photos/seed/{seed}/400/300"


__all__ = [
    "USERS",
    "STORIES",
    "COMMENTS",
    "LIKES",
    "REPORTS",
    "EMPATHY_RATINGS",
    "MIRRORED_COLLECTIONS",
    "StoryStatus",
    "STATUS_PROCESSING",
    "STATUS_PENDING_REVIEW",
    "STATUS_PUBLISHED",
    "STORY_STATUSES",
    "ALL_CATEGORIES",
    "EMPATHY_MIN",
    "EMPATHY_MAX",
    "placeholder_avatar_url",
    "placeholder_story_image_url",
]
