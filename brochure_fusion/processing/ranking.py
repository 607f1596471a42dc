"""
Relevance ranking for location search results.

Scores are additive:
- Content type (travel guides first, unknown pages last)
- Occurrences of the location query terms in title and snippet
- Domain authority (.gov, .org, tourism/travel urls)
- Recency of the publish date
"""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import Any

from ..config import FusionConfig, RankingConfig, get_fusion_config, get_settings
from ..exceptions import MalformedInputError
from ..logging import get_logger
from ..models import ContentType, SearchHit
from ..utils import parse_date_string
from .text_utils import count_occurrences

logger = get_logger(__name__)

DAYS_PER_MONTH = 30


@dataclass
class HitScore:
    """Scoring breakdown for a search hit."""
    total_score: float
    type_score: float
    term_score: float
    authority_score: float
    recency_score: float


class SearchResultRanker:
    """Additive relevance scoring for search hits about a location."""

    def __init__(self, config: RankingConfig | None = None):
        self.config = config or get_fusion_config().ranking

    def _type_score(self, content_type: ContentType) -> float:
        scores = self.config.content_type_scores
        return scores.get(content_type.value, scores.get(ContentType.OTHER.value, 0.0))

    def _term_score(self, hit: SearchHit, query: str) -> float:
        content = f"{hit.title} {hit.snippet}"
        matches = sum(count_occurrences(content, term) for term in query.split())
        return matches * self.config.term_match_score

    def _authority_score(self, url: str) -> float:
        url = url.lower()
        score = 0.0
        if '.gov' in url:
            score += self.config.gov_bonus
        if '.org' in url:
            score += self.config.org_bonus
        if any(term in url for term in self.config.travel_url_terms):
            score += self.config.travel_bonus
        return score

    def _recency_score(self, publish_date: str | None, now: datetime) -> float:
        """Bonus by age; unknown or unparsable dates score 0."""
        if not publish_date:
            return 0.0

        published = parse_date_string(publish_date)
        if published is None:
            return 0.0

        age_days = (now - published).total_seconds() / 86400
        for max_age_days, bonus in self.config.recency_bonuses:
            if age_days < max_age_days:
                return bonus
        return 0.0

    def score_hit(self, hit: SearchHit, query: str, now: datetime | None = None) -> HitScore:
        """Calculate the relevance breakdown for a single hit."""
        now = now or datetime.now(UTC)

        type_score = self._type_score(hit.content_type)
        term_score = self._term_score(hit, query)
        authority_score = self._authority_score(hit.url)
        recency_score = self._recency_score(hit.publish_date, now)

        return HitScore(
            total_score=type_score + term_score + authority_score + recency_score,
            type_score=type_score,
            term_score=term_score,
            authority_score=authority_score,
            recency_score=recency_score,
        )

    def rank(
        self,
        hits: Iterable[SearchHit],
        location_query: str,
        now: datetime | None = None,
    ) -> list[SearchHit]:
        """Score hits and sort them by relevance, highest first.

        The sort is stable, so equal scores keep their input order and
        ranking an already ranked list leaves it unchanged.
        """
        hits = list(hits)
        if not hits:
            logger.info("No search hits to rank")
            return []

        now = now or datetime.now(UTC)
        scored = [
            replace(hit, relevance_score=self.score_hit(hit, location_query, now).total_score)
            for hit in hits
        ]
        scored.sort(key=lambda hit: hit.relevance_score, reverse=True)

        logger.info(
            "Ranked search hits",
            count=len(scored),
            query=location_query,
            top_score=scored[0].relevance_score,
        )
        return scored


def build_search_queries(location: str, config: RankingConfig | None = None) -> list[str]:
    """Expand a location name into the search queries sent to the provider."""
    config = config or get_fusion_config().ranking
    location = location.strip()
    return [template.format(location=location) for template in config.query_templates]


def merge_search_results(result_lists: Iterable[Iterable[SearchHit]]) -> list[SearchHit]:
    """Deduplicate hits from several queries by url.

    A url keeps the position of its first appearance and the metadata of its
    last one.
    """
    merged: dict[str, SearchHit] = {}
    for results in result_lists:
        for hit in results:
            merged[hit.url] = hit
    return list(merged.values())


def select_best_sources(hits: Sequence[SearchHit], top_n: int | None = None) -> list[str]:
    """Urls of the top ranked hits (MAX_SOURCES by default)."""
    if top_n is None:
        top_n = get_settings().max_sources
    ranked = sorted(hits, key=lambda hit: hit.relevance_score, reverse=True)
    return [hit.url for hit in ranked[:top_n]]


def parse_search_hits(raw_hits: Iterable[Mapping[str, Any] | SearchHit]) -> list[SearchHit]:
    """Convert provider JSON into SearchHits, skipping malformed entries."""
    hits = []
    for raw in raw_hits:
        if isinstance(raw, SearchHit):
            hits.append(raw)
            continue
        try:
            hits.append(SearchHit.from_dict(raw))
        except MalformedInputError as e:
            logger.warning("Skipping malformed search hit", error=str(e))
    return hits


def rank_search_results(
    hits: Iterable[Mapping[str, Any] | SearchHit],
    query: str,
    config: FusionConfig | None = None,
    now: datetime | None = None,
) -> list[SearchHit]:
    """Convenience function for search result ranking."""
    config = config or get_fusion_config()
    ranker = SearchResultRanker(config.ranking)
    return ranker.rank(parse_search_hits(hits), query, now=now)
