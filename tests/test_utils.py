"""Tests for utility functions."""

from datetime import UTC, datetime

import pytest

from brochure_fusion.utils import (
    clean_text,
    extract_domain,
    filename_from_url,
    normalize_name,
    parse_date_string,
    unique_in_order,
)


def test_extract_domain():
    assert extract_domain("https://Kyoto.Travel/en/") == "kyoto.travel"


def test_filename_from_url():
    assert filename_from_url("https://x.com/img/Site-Logo.PNG?w=100") == "site-logo.png"
    assert filename_from_url("https://x.com/img/") == "img"
    assert filename_from_url("") == ""


@pytest.mark.parametrize("value,expected", [
    ("Thu, 17 Jul 2025 23:17:14 GMT", datetime(2025, 7, 17, 23, 17, 14, tzinfo=UTC)),
    ("2025-05-22", datetime(2025, 5, 22, tzinfo=UTC)),
    ("2025-05-22T10:00:00Z", datetime(2025, 5, 22, 10, tzinfo=UTC)),
    ("March 3, 2024", datetime(2024, 3, 3, tzinfo=UTC)),
])
def test_parse_date_string(value, expected):
    assert parse_date_string(value) == expected


@pytest.mark.parametrize("value", [None, "", "Unknown", "yesterday-ish"])
def test_parse_date_string_failures(value):
    assert parse_date_string(value) is None


def test_clean_text():
    assert clean_text("  a \n b\t c ") == "a b c"


def test_normalize_name():
    assert normalize_name("  Tower   X ") == "tower x"
    assert normalize_name("Caf\u00e9") == normalize_name("Cafe\u0301")


def test_unique_in_order():
    assert unique_in_order(["b", "a", "b", "c"]) == ["b", "a", "c"]
    assert unique_in_order(["b", "a", "c"], limit=2) == ["b", "a"]
    assert unique_in_order(["a"], limit=0) == []
