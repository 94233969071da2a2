"""Pure helpers for filtering the library and deriving engagement aggregates."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

from ..constants import ALL_CATEGORIES, STATUS_PUBLISHED


@dataclass(frozen=True)
class EmpathySummary:
    average: float
    count: int
    user_rating: int | None = None

    @property
    def label(self) -> str:
        return empathy_label(self.user_rating if self.user_rating is not None else self.average)


def normalize_categories(category: Any) -> list[str]:
    """Return the category labels of a resource as a list, whichever shape was stored."""

    if category is None:
        return []
    if isinstance(category, str):
        return [category] if category.strip() else []
    return [str(label) for label in category if str(label).strip()]


def parse_label_list(raw: str | Iterable[str] | None) -> list[str]:
    """Split comma-separated user input into trimmed, non-empty labels."""

    if raw is None:
        return []
    if isinstance(raw, str):
        parts: Iterable[str] = raw.split(",")
    else:
        parts = (piece for item in raw for piece in str(item).split(","))
    return [part.strip() for part in parts if part.strip()]


def is_visible_to(resource: Mapping[str, Any], uid: str | None) -> bool:
    if resource.get("status", STATUS_PUBLISHED) == STATUS_PUBLISHED:
        return True
    return uid is not None and resource.get("authorId") == uid


def matches_category(resource: Mapping[str, Any], category: str | None) -> bool:
    if not category or category == ALL_CATEGORIES:
        return True
    return category in normalize_categories(resource.get("category"))


def matches_search(resource: Mapping[str, Any], query: str | None) -> bool:
    if query is None or not query.strip():
        return True
    needle = query.lower()
    haystacks = [resource.get("title"), resource.get("shortDescription"), resource.get("authorName")]
    if any(value and needle in str(value).lower() for value in haystacks):
        return True
    return any(needle in str(tag).lower() for tag in resource.get("tags") or [])


def matches_tags(resource: Mapping[str, Any], tags: Sequence[str] | None) -> bool:
    if not tags:
        return True
    present = set(resource.get("tags") or [])
    return all(tag in present for tag in tags)


def filter_resources(
    resources: Iterable[Mapping[str, Any]],
    *,
    category: str | None = None,
    query: str | None = None,
    tags: Sequence[str] | None = None,
) -> list[Mapping[str, Any]]:
    return [
        resource
        for resource in resources
        if matches_category(resource, category) and matches_search(resource, query) and matches_tags(resource, tags)
    ]


def collect_categories(resources: Iterable[Mapping[str, Any]]) -> list[str]:
    """``"All"`` followed by every distinct label in first-seen order."""

    seen: dict[str, None] = {}
    for resource in resources:
        for label in normalize_categories(resource.get("category")):
            seen.setdefault(label, None)
    return [ALL_CATEGORIES, *seen]


def collect_tags(resources: Iterable[Mapping[str, Any]]) -> list[str]:
    return sorted({str(tag) for resource in resources for tag in resource.get("tags") or []})


def empathy_summary(ratings: Iterable[Mapping[str, Any] | Any], uid: str | None = None) -> EmpathySummary:
    """Average, count and the caller's own rating over a resource's rating list."""

    entries = [(_rating_user(entry), _rating_value(entry)) for entry in ratings]
    if not entries:
        return EmpathySummary(average=0.0, count=0, user_rating=None)
    average = sum(value for _, value in entries) / len(entries)
    own = next((value for user_id, value in entries if uid is not None and user_id == uid), None)
    return EmpathySummary(average=average, count=len(entries), user_rating=own)


def empathy_label(value: float) -> str:
    rounded = math.floor(value + 0.5)
    if value < 1 and rounded == 0:
        return "Rate this story"
    if rounded <= 20:
        return "Terrible"
    if rounded <= 40:
        return "Bad"
    if rounded <= 60:
        return "Okay"
    if rounded <= 80:
        return "Good"
    return "Great"


def _rating_user(entry: Any) -> str | None:
    if isinstance(entry, Mapping):
        return entry.get("userId")
    return getattr(entry, "user_id", None)


def _rating_value(entry: Any) -> int:
    if isinstance(entry, Mapping):
        return int(entry.get("rating", 0))
    return int(getattr(entry, "rating", 0))


__all__ = [
    "EmpathySummary",
    "collect_categories",
    "collect_tags",
    "empathy_label",
    "empathy_summary",
    "filter_resources",
    "is_visible_to",
    "matches_category",
    "matches_search",
    "matches_tags",
    "normalize_categories",
    "parse_label_list",
]
