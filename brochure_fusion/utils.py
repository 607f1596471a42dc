"""Utility functions for the brochure fusion engine."""

import re
from collections.abc import Hashable, Iterable
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import TypeVar
from unicodedata import normalize
from urllib.parse import urlparse

from .logging import get_logger

logger = get_logger(__name__)

T = TypeVar('T', bound=Hashable)


def extract_domain(url: str) -> str:
    """Extract domain from URL.

    Args:
        url: URL string

    Returns:
        Domain name
    """
    return urlparse(url).netloc.lower()


def filename_from_url(url: str) -> str:
    """Last path segment of a URL, lowercased."""
    if not url:
        return ""
    path = urlparse(url).path or url
    return path.rstrip('/').split('/')[-1].lower()


def parse_date_string(date_str: str) -> datetime | None:
    """Parse various date string formats.

    Args:
        date_str: Date string to parse

    Returns:
        Parsed timezone-aware datetime or None if parsing fails
    """
    if not date_str or not isinstance(date_str, str):
        return None

    date_str = date_str.strip()

    # RFC 2822, e.g. "Thu, 17 Jul 2025 23:17:14 GMT"
    try:
        parsed = parsedate_to_datetime(date_str)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=UTC)
        return parsed
    except (ValueError, TypeError, IndexError):
        pass

    try:
        parsed = datetime.fromisoformat(date_str.replace('Z', '+00:00'))
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=UTC)
        return parsed
    except ValueError:
        pass

    formats = [
        "%d/%m/%Y",
        "%m/%d/%Y",
        "%B %d, %Y",
        "%b %d, %Y",
        "%d %B %Y",
        "%d %b %Y",
        "%B %Y",
        "%b %Y",
    ]

    for fmt in formats:
        try:
            return datetime.strptime(date_str, fmt).replace(tzinfo=UTC)
        except ValueError:
            continue

    logger.debug("Failed to parse date string", date_string=date_str)
    return None


def clean_text(text: str) -> str:
    """Collapse runs of whitespace and trim."""
    if not text:
        return ""
    return re.sub(r'\s+', ' ', text.strip())


def normalize_name(name: str) -> str:
    """Canonical key for a place name.

    Args:
        name: Display name

    Returns:
        NFKD-normalized, lowercase name with collapsed whitespace
    """
    if not name:
        return ""
    return clean_text(normalize('NFKD', name).lower())


def unique_in_order(items: Iterable[T], limit: int | None = None) -> list[T]:
    """Drop repeated items keeping first occurrences, optionally capped."""
    seen: set[T] = set()
    result: list[T] = []
    if limit is not None and limit <= 0:
        return result
    for item in items:
        if item in seen:
            continue
        seen.add(item)
        result.append(item)
        if limit is not None and len(result) >= limit:
            break
    return result
