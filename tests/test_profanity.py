from __future__ import annotations

import pytest

from living_library.services.profanity import censor_profanity, contains_profanity


@pytest.mark.parametrize(
    "text",
    [
        "What the FUCK is this",
        "you are such an idiot",
        "chutiya",
        "ugh, wtf.",
    ],
)
def test_flags_disallowed_words(text):
    assert contains_profanity(text)


@pytest.mark.parametrize(
    "text",
    [
        "This story moved me deeply.",
        "A classic tale of passage",
        "Scunthorpe is a town",
        "",
        None,
    ],
)
def test_ignores_clean_text_and_partial_matches(text):
    assert not contains_profanity(text)


def test_censor_replaces_words_with_same_length_mask():
    assert censor_profanity("that was crap honestly") == "that was **** honestly"
    assert censor_profanity(None) is None
