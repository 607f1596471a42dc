"""Keyword-density categorization of scraped paragraphs."""

import math
from collections.abc import Mapping

from ..config import FusionConfig, get_fusion_config
from ..logging import get_logger
from ..models import ContentParagraph
from .text_utils import count_occurrences, split_paragraphs

logger = get_logger(__name__)


class ContentCategorizer:
    """Assign paragraphs to the category whose keywords they mention most.

    Scores are normalized by the square root of the paragraph length so long
    paragraphs do not win on volume alone.
    """

    def __init__(self, categories: Mapping[str, Mapping[str, float]] | None = None):
        self.categories = dict(categories if categories is not None
                               else get_fusion_config().categories)

    def score(self, text: str, category: str) -> float:
        """Length-normalized weighted keyword count for one category."""
        if not text:
            return 0.0
        keywords = self.categories.get(category, {})
        hits = sum(weight * count_occurrences(text, keyword)
                   for keyword, weight in keywords.items())
        return hits / math.sqrt(len(text))

    def score_all(self, text: str) -> dict[str, float]:
        """Per-category scores in configured order."""
        return {category: self.score(text, category) for category in self.categories}

    def categorize(self, text: str) -> tuple[str | None, float]:
        """Best category for a paragraph.

        Returns:
            (category, score); (None, 0.0) when no keyword matches anywhere.
            Ties go to the category configured first.
        """
        best_category = None
        best_score = 0.0
        for category, score in self.score_all(text).items():
            if score > best_score:
                best_category, best_score = category, score
        return best_category, best_score

    def categorize_paragraph(self, paragraph: ContentParagraph) -> ContentParagraph | None:
        category, score = self.categorize(paragraph.text)
        if category is None:
            return None
        return ContentParagraph(
            text=paragraph.text,
            source_url=paragraph.source_url,
            category=category,
            score=score,
        )

    def categorize_text(
        self, text: str, source_url: str, min_length: int = 50
    ) -> list[ContentParagraph]:
        """Split a document's text and categorize each paragraph.

        Uncategorized paragraphs are dropped rather than filed under a
        catch-all bucket.
        """
        categorized = []
        paragraphs = split_paragraphs(text, min_length)
        for block in paragraphs:
            paragraph = self.categorize_paragraph(ContentParagraph(block, source_url))
            if paragraph is not None:
                categorized.append(paragraph)

        logger.debug(
            "Categorized paragraphs",
            source=source_url,
            paragraphs=len(paragraphs),
            categorized=len(categorized),
        )
        return categorized


def categorize_paragraphs(
    text: str, source_url: str, config: FusionConfig | None = None
) -> list[ContentParagraph]:
    """Convenience function for paragraph categorization."""
    config = config or get_fusion_config()
    categorizer = ContentCategorizer(config.categories)
    return categorizer.categorize_text(text, source_url, config.min_paragraph_length)
