from __future__ import annotations

import pytest

from living_library.services.collection_mirror import EmpathyRating
from living_library.services.library_query import (
    collect_categories,
    collect_tags,
    empathy_label,
    empathy_summary,
    filter_resources,
    is_visible_to,
    normalize_categories,
    parse_label_list,
)

RESOURCES = [
    {"id": "1", "title": "Roots", "category": "Culture", "tags": ["family"], "authorName": "Meera"},
    {"id": "2", "title": "Crossing", "category": ["Migration", "Culture"], "tags": ["journey", "family"]},
    {"id": "3", "title": "Voices", "category": ["Activism"], "shortDescription": "A march for change"},
]


@pytest.mark.parametrize(
    "raw, expected",
    [
        (None, []),
        ("Culture", ["Culture"]),
        ("   ", []),
        (["Gender", "", "LGBTQ+"], ["Gender", "LGBTQ+"]),
    ],
)
def test_normalize_categories(raw, expected):
    assert normalize_categories(raw) == expected


def test_parse_label_list_trims_and_drops_empty_entries():
    assert parse_label_list(" hope, ,resilience ,") == ["hope", "resilience"]
    assert parse_label_list(["a, b", "c"]) == ["a", "b", "c"]
    assert parse_label_list(None) == []


def test_category_filter_matches_string_and_list_forms():
    matched = filter_resources(RESOURCES, category="Culture")
    assert [resource["id"] for resource in matched] == ["1", "2"]
    assert len(filter_resources(RESOURCES, category="All")) == 3


def test_search_is_case_insensitive_across_fields():
    assert [r["id"] for r in filter_resources(RESOURCES, query="MARCH")] == ["3"]
    assert [r["id"] for r in filter_resources(RESOURCES, query="meera")] == ["1"]
    assert [r["id"] for r in filter_resources(RESOURCES, query="journ")] == ["2"]
    assert len(filter_resources(RESOURCES, query="   ")) == 3


def test_tag_filter_requires_every_tag():
    assert [r["id"] for r in filter_resources(RESOURCES, tags=["family"])] == ["1", "2"]
    assert [r["id"] for r in filter_resources(RESOURCES, tags=["family", "journey"])] == ["2"]


def test_collect_categories_and_tags():
    assert collect_categories(RESOURCES) == ["All", "Culture", "Migration", "Activism"]
    assert collect_tags(RESOURCES) == ["family", "journey"]


def test_visibility_of_pending_stories():
    pending = {"status": "pending_review", "authorId": "author"}
    assert is_visible_to(pending, "author")
    assert not is_visible_to(pending, "someone-else")
    assert not is_visible_to(pending, None)
    assert is_visible_to({"title": "curated"}, None)


def test_empathy_summary_accepts_dicts_and_ratings():
    summary = empathy_summary([{"userId": "a", "rating": 40}, EmpathyRating(user_id="b", rating=80)], "b")
    assert summary.average == 60
    assert summary.count == 2
    assert summary.user_rating == 80
    assert summary.label == "Good"


def test_empty_empathy_summary():
    summary = empathy_summary([], "a")
    assert (summary.average, summary.count, summary.user_rating) == (0.0, 0, None)
    assert summary.label == "Rate this story"


@pytest.mark.parametrize(
    "value, label",
    [
        (0, "Rate this story"),
        (0.4, "Rate this story"),
        (1, "Terrible"),
        (20, "Terrible"),
        (20.5, "Bad"),
        (40, "Bad"),
        (60, "Okay"),
        (80, "Good"),
        (81, "Great"),
        (100, "Great"),
    ],
)
def test_empathy_label_bands(value, label):
    assert empathy_label(value) == label
