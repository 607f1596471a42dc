"""Content processing module."""

from .attractions import AttractionFuser, merge_attractions
from .categorize import ContentCategorizer, categorize_paragraphs
from .images import (
    DiverseImageSelector,
    ImageBucketer,
    ImageRelevanceScorer,
    select_gallery,
    select_hero_image,
    select_images,
    select_thumbnails,
)
from .paragraphs import ParagraphFuser, merge_paragraphs
from .ranking import HitScore, SearchResultRanker, build_search_queries, rank_search_results
from .text_utils import extract_name, similarity, split_paragraphs

__all__ = [
    'rank_search_results',
    'SearchResultRanker',
    'HitScore',
    'build_search_queries',
    'categorize_paragraphs',
    'ContentCategorizer',
    'merge_paragraphs',
    'ParagraphFuser',
    'merge_attractions',
    'AttractionFuser',
    'ImageRelevanceScorer',
    'DiverseImageSelector',
    'ImageBucketer',
    'select_images',
    'select_gallery',
    'select_thumbnails',
    'select_hero_image',
    'similarity',
    'split_paragraphs',
    'extract_name',
]
