import pytest

from imagepipe.prompt import ENHANCEMENT_SUFFIX, enhance


def test_appends_suffix_to_plain_prompt():
    assert enhance("a cat") == "a cat, high quality, professional, detailed"


@pytest.mark.parametrize(
    "prompt",
    [
        "a HIGH QUALITY photo of a cat",
        "Professional headshot",
        "detailed map of Paris",
        "city skyline in 4K",
    ],
)
def test_prompt_with_quality_keyword_is_unchanged(prompt):
    assert enhance(prompt) == prompt


@pytest.mark.parametrize(
    "prompt", ["", "a cat", "A DOG", "sunset, 4k", "x" * 3000, "  spaced  "]
)
def test_enhance_is_idempotent(prompt):
    once = enhance(prompt)
    assert enhance(once) == once


def test_suffix_alone_counts_as_enhanced():
    assert enhance(ENHANCEMENT_SUFFIX) == ENHANCEMENT_SUFFIX
