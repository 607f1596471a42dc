"""Text processing utilities shared by the fusion components."""

import re
from typing import Protocol

from ..logging import get_logger

logger = get_logger(__name__)

PARAGRAPH_BREAK = re.compile(r'\n\s*\n')


def tokenize(text: str) -> set[str]:
    """Split text into a set of lowercase whitespace-delimited tokens.

    Args:
        text: Input text

    Returns:
        Set of tokens (punctuation is kept attached to its word)
    """
    if not text:
        return set()
    return set(text.lower().split())


def similarity(text_a: str, text_b: str) -> float:
    """Jaccard similarity of the token sets of two texts.

    Two empty texts count as identical (1.0); one empty text against a
    non-empty one gives 0.0.

    Args:
        text_a: First text
        text_b: Second text

    Returns:
        Similarity score (0.0 to 1.0)
    """
    tokens_a = tokenize(text_a)
    tokens_b = tokenize(text_b)

    if not tokens_a and not tokens_b:
        return 1.0
    if not tokens_a or not tokens_b:
        return 0.0

    return len(tokens_a & tokens_b) / len(tokens_a | tokens_b)


def count_occurrences(text: str, term: str) -> int:
    """Count case-insensitive, non-overlapping occurrences of term in text."""
    if not text or not term:
        return 0
    return text.lower().count(term.lower())


def split_paragraphs(text: str, min_length: int = 50) -> list[str]:
    """Split text on blank lines, dropping paragraphs shorter than min_length.

    Args:
        text: Document main text
        min_length: Minimum paragraph length after trimming

    Returns:
        Trimmed paragraphs in document order
    """
    if not text:
        return []

    paragraphs = []
    for block in PARAGRAPH_BREAK.split(text):
        block = block.strip()
        if len(block) >= min_length:
            paragraphs.append(block)
    return paragraphs


class NameExtractor(Protocol):
    """Strategy that derives an attraction name from a block of text."""

    def extract_name(self, text: str) -> str:
        ...


class FirstPhraseExtractor:
    """Take the text up to the first period, then up to the first comma or
    parenthesis.

    Crude on purpose: "The Louvre (Paris), a museum..." becomes "The Louvre",
    but "Mt. Fuji is..." becomes "Mt".
    """

    def extract_name(self, text: str) -> str:
        if not text:
            return ""
        first_sentence = text.split('.', 1)[0]
        return re.split(r'[,()]', first_sentence, maxsplit=1)[0].strip()


def extract_name(text: str) -> str:
    """Extract an attraction name with the default strategy."""
    return FirstPhraseExtractor().extract_name(text)
