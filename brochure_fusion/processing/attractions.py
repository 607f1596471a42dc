"""Merging of attraction mentions across documents."""

from collections.abc import Iterable
from dataclasses import replace

from ..logging import get_logger, log_processing_stage
from ..models import AttractionFeature, AttractionRecord, ContentParagraph
from ..utils import normalize_name, unique_in_order
from .text_utils import FirstPhraseExtractor, NameExtractor

logger = get_logger(__name__)


class AttractionFuser:
    """Fold attraction features into unique records keyed by normalized name."""

    def __init__(self, name_extractor: NameExtractor | None = None):
        self.name_extractor = name_extractor or FirstPhraseExtractor()

    def features_from_paragraphs(
        self, paragraphs: Iterable[ContentParagraph]
    ) -> list[AttractionFeature]:
        """Turn attraction-category paragraphs into named features."""
        features = []
        for paragraph in paragraphs:
            name = self.name_extractor.extract_name(paragraph.text)
            if not name:
                continue
            features.append(AttractionFeature(
                name=name,
                description=paragraph.text,
                score=paragraph.score,
                source_url=paragraph.source_url,
            ))
        return features

    def merge(self, features: Iterable[AttractionFeature]) -> list[AttractionRecord]:
        """Merge features sharing a name.

        Scores add up, sources accumulate and the longer description wins.
        The first display name seen for a key is kept.

        Returns:
            Records sorted by aggregate score, highest first
        """
        features = list(features)
        records: dict[str, AttractionRecord] = {}

        for feature in features:
            key = normalize_name(feature.name)
            if not key:
                continue

            existing = records.get(key)
            if existing is None:
                records[key] = AttractionRecord(
                    name=feature.name.strip(),
                    description=feature.description,
                    aggregate_score=feature.score,
                    sources=(feature.source_url,) if feature.source_url else (),
                )
                continue

            sources = existing.sources
            if feature.source_url and feature.source_url not in sources:
                sources = (*sources, feature.source_url)
            description = existing.description
            if len(feature.description) > len(description):
                description = feature.description
            records[key] = replace(
                existing,
                description=description,
                aggregate_score=existing.aggregate_score + feature.score,
                sources=sources,
            )

        merged = sorted(records.values(), key=lambda r: r.aggregate_score, reverse=True)
        logger.debug(**log_processing_stage("attraction_fusion", len(features), len(merged)))
        return merged

    @staticmethod
    def merge_names(names: Iterable[str], limit: int | None = None) -> list[str]:
        """Deduplicate plain names (activities) keeping first spelling and order."""
        by_key: dict[str, str] = {}
        for name in names:
            key = normalize_name(name)
            if key and key not in by_key:
                by_key[key] = name.strip()
        return unique_in_order(by_key.values(), limit)


def merge_attractions(
    features: Iterable[AttractionFeature], name_extractor: NameExtractor | None = None
) -> list[AttractionRecord]:
    """Convenience function for attraction fusion."""
    return AttractionFuser(name_extractor).merge(features)
