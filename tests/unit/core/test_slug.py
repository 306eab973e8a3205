"""Unit tests for core/utils/slug.py"""

import pytest

from mdsite.core.utils.slug import slugify


@pytest.mark.parametrize("text,expected", [
    ("Hello World", "hello-world"),
    ("my_file_name", "my-file-name"),
    ("  leading and trailing  ", "leading-and-trailing"),
    ("multiple---hyphens", "multiple-hyphens"),
    ("Special! Ch@rs#", "special-chrs"),
    ("Café Crème", "cafe-creme"),
    ("Hugo Tips", "hugo-tips"),
    ("", ""),
])
def test_slugify_basic(text, expected):
    """slugify converts text to a lowercase hyphenated ASCII slug."""
    assert slugify(text) == expected


def test_slugify_is_stable_on_slugs():
    assert slugify("already-slugified") == "already-slugified"


def test_slugify_strips_leading_trailing_hyphens():
    assert slugify("-_!leading_-") == "leading"
