"""Image classifier interface and a keyword-based implementation.

The fusion core only consumes classifier output. Real deployments plug in an
LLM-backed classifier; ``KeywordImageClassifier`` labels images from their
alt text, title, caption and surrounding text so the engine can run offline.
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from .logging import get_logger
from .models import ImageClassification, ImageRecord
from .processing.text_utils import count_occurrences
from .utils import filename_from_url

logger = get_logger(__name__)

CATEGORY_KEYWORDS = {
    "HERO": ["skyline", "panorama", "panoramic", "aerial", "view", "landscape",
             "sunset", "sunrise", "overlook", "scenery"],
    "ATTRACTION": ["temple", "shrine", "museum", "tower", "castle", "palace",
                   "monument", "cathedral", "bridge", "landmark", "gate", "park"],
    "ACTIVITY": ["hiking", "tour", "cruise", "kayak", "cycling", "shopping",
                 "climbing", "skiing", "surfing", "walking", "boat"],
    "CULTURAL": ["festival", "traditional", "ceremony", "kimono", "dance",
                 "parade", "costume", "craft", "ritual"],
    "FOOD": ["food", "cuisine", "dish", "restaurant", "market", "sushi",
             "street food", "dessert", "cafe"],
}


class ImageClassifier(ABC):
    """Labels an image with brochure categories."""

    @abstractmethod
    async def classify(
        self,
        image: ImageRecord,
        location: str,
        context: Mapping[str, Any] | None = None,
    ) -> ImageClassification:
        """Classify a single image.

        Args:
            image: Image to label
            location: Location the brochure is about
            context: Location context (description, attractions, activities)

        Returns:
            Classification with category confidences
        """


class KeywordImageClassifier(ImageClassifier):
    """Rule-based classifier over the image's own text fields."""

    def __init__(self, keywords: Mapping[str, list[str]] | None = None,
                 high_quality_width: int = 1200):
        self.keywords = dict(keywords or CATEGORY_KEYWORDS)
        self.high_quality_width = high_quality_width

    def _describe(self, image: ImageRecord) -> str:
        return " ".join(filter(None, [image.alt, image.title, image.caption, image.context]))

    async def classify(
        self,
        image: ImageRecord,
        location: str,
        context: Mapping[str, Any] | None = None,
    ) -> ImageClassification:
        text = self._describe(image)

        categories = []
        for category, keywords in self.keywords.items():
            hits = sum(count_occurrences(text, keyword) for keyword in keywords)
            if hits:
                categories.append({
                    "type": category,
                    "confidence": round(min(0.95, 0.5 + 0.15 * hits), 2),
                })
        if not categories:
            categories.append({"type": "GENERAL", "confidence": 0.5})

        primary = max(categories, key=lambda c: c["confidence"])["type"]

        filename = filename_from_url(image.url)
        is_logo = image.is_logo or "logo" in filename
        is_high_quality = not is_logo and image.width >= self.high_quality_width

        relevance = 0.4
        if location and any(count_occurrences(text, term) for term in location.split()):
            relevance += 0.3
        if image.alt:
            relevance += 0.1

        # Keep the event loop responsive when classifying many images
        await asyncio.sleep(0)

        return ImageClassification.from_raw({
            "categories": categories,
            "primaryCategory": primary,
            "isHighQuality": is_high_quality,
            "relevanceScore": round(min(1.0, relevance), 2),
        })
