"""Pytest configuration and fixtures."""

import os
from datetime import UTC, datetime

import pytest

# Set test environment
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ["JSON_LOGGING"] = "false"


@pytest.fixture
def now():
    """Fixed reference time for recency scoring."""
    return datetime(2025, 6, 1, tzinfo=UTC)


@pytest.fixture
def sample_hits():
    """Raw search provider hits about Kyoto."""
    return [
        {
            "title": "Kyoto Travel Guide",
            "url": "https://www.japan-guide.com/kyoto",
            "snippet": "Visit Kyoto temples",
            "contentType": "Travel Guide",
            "publishDate": "Unknown",
        },
        {
            "title": "Kyoto city",
            "url": "https://kyoto.travel/en",
            "snippet": "",
            "contentType": "Official Site",
        },
        {
            "title": "My trip",
            "url": "https://example.org/blog",
            "snippet": "",
            "contentType": "Blog",
            "publishDate": "2025-05-22",
        },
    ]


@pytest.fixture
def sample_documents():
    """Two scraped documents sharing one landmark."""
    return [
        {
            "url": "https://a.example/kyoto",
            "title": "Kyoto history",
            "mainText": (
                "The ancient city was founded in the eighth century and its history is long.\n\n"
                "Too short."
            ),
            "images": [
                {"url": "https://a.example/img/tower.jpg", "alt": "Tower X",
                 "width": 1600, "height": 900},
            ],
            "analyzedContent": {
                "overview": "Kyoto was the imperial capital for a thousand years.",
                "keyFeatures": [
                    {"name": "Tower X", "type": "LANDMARK", "score": 4,
                     "description": "A tall tower."},
                    {"name": "Tea ceremony", "type": "ACTIVITY"},
                ],
                "practicalInfo": {"bestTimeToVisit": "Spring", "fees": ""},
                "visitorExperience": {
                    "suggestedActivities": ["Temple hopping", "tea ceremony"],
                    "highlights": ["Autumn leaves"],
                    "tips": ["Buy a bus pass"],
                },
            },
        },
        {
            "url": "https://b.example/kyoto",
            "title": "Kyoto sights",
            "mainText": "",
            "analyzedContent": {
                "overview": "A city of temples and gardens.",
                "keyFeatures": [
                    {"name": "Tower X", "type": "LANDMARK", "score": 3,
                     "description": "A tall tower with views over the whole city."},
                    {"name": "Park Y", "type": "LANDMARK", "score": 5},
                ],
                "practicalInfo": {"fees": "Free"},
                "environmentalContext": {"climate": "Humid summers"},
                "visitorExperience": {
                    "highlights": ["Autumn leaves", "Geisha district"],
                },
            },
        },
    ]
