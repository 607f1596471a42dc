"""
Deduplication and merging of same-category paragraphs.

Travel sites often restate the same facts. Paragraphs are taken best first
and a paragraph is dropped when it is too similar to one already kept, so
restatements collapse while complementary detail survives.
"""

from collections.abc import Iterable, Mapping, Sequence

from ..logging import get_logger, log_processing_stage
from ..models import ContentParagraph
from .text_utils import similarity

logger = get_logger(__name__)


class ParagraphFuser:
    """Greedy similarity-based paragraph deduplication."""

    def __init__(self, similarity_threshold: float = 0.7):
        self.similarity_threshold = similarity_threshold

    def deduplicate(self, paragraphs: Iterable[ContentParagraph]) -> list[ContentParagraph]:
        """Keep paragraphs in score order, skipping near-duplicates of kept ones."""
        ordered = sorted(paragraphs, key=lambda p: p.score, reverse=True)

        kept: list[ContentParagraph] = []
        for paragraph in ordered:
            if any(similarity(paragraph.text, other.text) >= self.similarity_threshold
                   for other in kept):
                continue
            kept.append(paragraph)
        return kept

    def merge(self, paragraphs: Iterable[ContentParagraph]) -> str:
        """Merge paragraphs into one text block separated by blank lines."""
        paragraphs = list(paragraphs)
        kept = self.deduplicate(paragraphs)
        logger.debug(**log_processing_stage(
            "paragraph_fusion", len(paragraphs), len(kept)
        ))
        return "\n\n".join(paragraph.text for paragraph in kept)

    def merge_all(
        self,
        by_category: Mapping[str, Sequence[ContentParagraph]],
        exclude: Iterable[str] = (),
    ) -> dict[str, str]:
        """Merge every category except the excluded ones; empty results are omitted."""
        excluded = set(exclude)
        merged = {}
        for category, paragraphs in by_category.items():
            if category in excluded:
                continue
            text = self.merge(paragraphs)
            if text:
                merged[category] = text
        return merged


def merge_paragraphs(
    paragraphs: Iterable[ContentParagraph], similarity_threshold: float = 0.7
) -> str:
    """Convenience function for paragraph fusion."""
    return ParagraphFuser(similarity_threshold).merge(paragraphs)
