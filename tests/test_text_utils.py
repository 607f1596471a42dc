"""Tests for text utilities."""

import pytest

from brochure_fusion.processing.text_utils import (
    FirstPhraseExtractor,
    count_occurrences,
    extract_name,
    similarity,
    split_paragraphs,
    tokenize,
)


def test_tokenize_lowercases_and_dedupes():
    assert tokenize("Kyoto kyoto  Temple") == {"kyoto", "temple"}
    assert tokenize("") == set()


def test_similarity_jaccard():
    assert similarity("a b c", "a b d") == 0.5
    assert similarity("Hello World", "hello world") == 1.0
    assert similarity("a b", "c d") == 0.0


def test_similarity_empty_inputs():
    assert similarity("", "") == 1.0
    assert similarity("", "text") == 0.0
    assert similarity("text", "") == 0.0


@pytest.mark.parametrize("a,b", [
    ("the quick brown fox", "the lazy dog"),
    ("one two three", "three two one four"),
    ("", "something"),
])
def test_similarity_is_symmetric(a, b):
    assert similarity(a, b) == similarity(b, a)


def test_count_occurrences():
    assert count_occurrences("Kyoto kyoto KYOTO", "kyoto") == 3
    assert count_occurrences("aaa", "aa") == 1
    assert count_occurrences("", "x") == 0
    assert count_occurrences("text", "") == 0


def test_split_paragraphs_filters_short_blocks():
    long_a = "x" * 60
    long_b = "y" * 50
    text = f"short\n\n  {long_a}  \n   \n{long_b}"

    assert split_paragraphs(text) == [long_a, long_b]
    assert split_paragraphs(text, min_length=55) == [long_a]
    assert split_paragraphs("") == []


def test_extract_name_first_phrase():
    assert extract_name("The Louvre (Paris), a museum. More text.") == "The Louvre"
    assert extract_name("Tower X, built in 1900.") == "Tower X"
    assert extract_name("") == ""


def test_extract_name_known_limitation():
    # Abbreviations end the name early
    assert FirstPhraseExtractor().extract_name("Mt. Fuji is tall") == "Mt"
