"""
Image relevance scoring and category-balanced selection.

Selection is two-phase: every category present first contributes its best
image, then the remaining slots go to the best images overall. A plain top-K
sort would let one prolific category crowd out the others.
"""

from collections.abc import Callable, Iterable, Mapping, Sequence

from ..config import BucketConfig, ImageScoringConfig, SelectionConfig, get_fusion_config
from ..logging import get_logger, log_processing_stage
from ..models import ImageRecord
from ..utils import filename_from_url

logger = get_logger(__name__)

ImageKey = Callable[[ImageRecord], float]

BUCKETS = ('hero', 'attraction', 'activity', 'general')


class ImageRelevanceScorer:
    """Score an image from its metadata and the text around it."""

    def __init__(self, config: ImageScoringConfig | None = None):
        self.config = config or get_fusion_config().image_scoring

    def score(self, image: ImageRecord, document_text: str) -> float:
        score = 0.0

        if image.alt:
            score += self.config.alt_bonus
            if document_text and image.alt.lower() in document_text.lower():
                score += self.config.alt_in_context_bonus

        filename = filename_from_url(image.url)
        if not any(term in filename for term in self.config.excluded_filename_terms):
            score += self.config.filename_bonus

        # Thumbnails and oversized assets
        area = image.area
        if area is not None and not self.config.min_area <= area <= self.config.max_area:
            score -= self.config.size_penalty

        return max(0.0, score)


def default_image_key(image: ImageRecord) -> float:
    return image.score


def composite_image_score(image: ImageRecord) -> float:
    """Resolution-dominated score used to pick a hero image."""
    return (
        (image.area or 0)
        + image.quality * 100
        + image.colorfulness * 100
        + image.prominence * 100
        + (20 if image.is_scenic else 0)
    )


def thumbnail_score(image: ImageRecord) -> float:
    return (
        image.quality * 0.4
        + image.prominence * 0.3
        + image.colorfulness * 0.2
        + (0.1 if image.is_scenic else 0.0)
    ) * 100


class DiverseImageSelector:
    """Two-phase greedy selection: category coverage, then best of the rest."""

    def __init__(self, key: ImageKey | None = None):
        self.key = key or default_image_key

    def _group(self, images: Iterable[ImageRecord]) -> dict[str | None, list[ImageRecord]]:
        groups: dict[str | None, list[ImageRecord]] = {}
        for image in images:
            groups.setdefault(image.category, []).append(image)
        # Best first within a group; the stable sort keeps input order on ties
        for members in groups.values():
            members.sort(key=self.key, reverse=True)
        return groups

    def select(
        self,
        images: Iterable[ImageRecord],
        target_count: int,
        key: ImageKey | None = None,
    ) -> list[ImageRecord]:
        """Pick at most target_count images, covering each category once
        before filling by score.

        Args:
            images: Candidate images; a None category is its own group
            target_count: Maximum number of images to return
            key: Optional score function overriding the selector's default

        Returns:
            Selected images in selection order
        """
        if key is not None and key is not self.key:
            return DiverseImageSelector(key).select(images, target_count)

        images = list(images)
        if target_count <= 0 or not images:
            return []

        groups = self._group(images)
        selected: list[ImageRecord] = []

        # Round 1: one image per category
        for members in groups.values():
            if len(selected) >= target_count:
                break
            if members:
                selected.append(members.pop(0))

        # Round 2: best remaining image across all categories
        while len(selected) < target_count:
            best_group = None
            best_score = None
            for members in groups.values():
                if not members:
                    continue
                candidate = self.key(members[0])
                if best_score is None or candidate > best_score:
                    best_group, best_score = members, candidate
            if best_group is None:
                break
            selected.append(best_group.pop(0))

        logger.debug(**log_processing_stage(
            "diverse_selection", len(images), len(selected), categories=len(groups)
        ))
        return selected


def select_gallery(
    images: Iterable[ImageRecord], config: SelectionConfig | None = None
) -> list[ImageRecord]:
    """Diverse gallery of good, reasonably wide images."""
    config = config or get_fusion_config().selection
    suitable = [
        image for image in images
        if image.quality >= config.gallery_min_quality
        and image.width >= config.gallery_min_width
        and not image.is_logo
    ]
    return DiverseImageSelector().select(suitable, config.gallery_count)


def select_thumbnails(
    images: Iterable[ImageRecord], config: SelectionConfig | None = None
) -> list[ImageRecord]:
    """Diverse thumbnail strip ranked by the weighted thumbnail score."""
    config = config or get_fusion_config().selection
    suitable = [
        image for image in images
        if image.quality >= config.thumbnail_min_quality
        and image.width >= config.thumbnail_min_width
        and not image.is_logo
    ]
    return DiverseImageSelector(thumbnail_score).select(suitable, config.thumbnail_count)


def select_hero_image(
    images: Sequence[ImageRecord],
    config: SelectionConfig | None = None,
    buckets: BucketConfig | None = None,
) -> ImageRecord | None:
    """Best wide, high-resolution image; falls back to the first image."""
    if not images:
        return None
    config = config or get_fusion_config().selection
    buckets = buckets or get_fusion_config().buckets

    suitable = [
        image for image in images
        if (image.aspect_ratio or 0) >= buckets.hero_min_aspect
        and image.width >= buckets.hero_min_width
        and image.quality >= config.hero_min_quality
        and not image.is_logo
    ]
    if not suitable:
        return images[0]
    return max(suitable, key=composite_image_score)


class ImageBucketer:
    """Distribute classified images into brochure buckets."""

    def __init__(self, config: BucketConfig | None = None):
        self.config = config or get_fusion_config().buckets

    def _is_hero(self, image: ImageRecord) -> bool:
        if image.category != 'HERO' or not image.is_high_quality:
            return False
        if image.width and image.width < self.config.hero_min_width:
            return False
        aspect = image.aspect_ratio
        return aspect is None or aspect >= self.config.hero_min_aspect

    def _has_label(self, image: ImageRecord, *types: str) -> bool:
        threshold = self.config.category_confidence
        return any(image.confidence(t) > threshold for t in types)

    def buckets_for(self, image: ImageRecord) -> list[str]:
        """Buckets an image belongs to.

        Hero membership only needs the primary category and quality flag, so
        it is checked before the label rules. Images without labels go to
        general.
        """
        buckets = []
        if self._is_hero(image):
            buckets.append('hero')
        if not image.is_classified:
            return buckets or ['general']

        if self._has_label(image, 'ATTRACTION'):
            buckets.append('attraction')
        if self._has_label(image, 'ACTIVITY'):
            buckets.append('activity')
        if self._has_label(image, *self.config.general_categories):
            buckets.append('general')
        return buckets

    def assign(self, images: Iterable[ImageRecord]) -> dict[str, list[ImageRecord]]:
        """Bucket images, keeping one entry per url in each bucket."""
        assigned: dict[str, dict[str, ImageRecord]] = {bucket: {} for bucket in BUCKETS}
        for image in images:
            for bucket in self.buckets_for(image):
                assigned[bucket][image.url] = image
        return {bucket: list(by_url.values()) for bucket, by_url in assigned.items()}


def select_images(
    images: Iterable[ImageRecord],
    bucket_config: BucketConfig | Mapping[str, int] | None = None,
    selector: DiverseImageSelector | None = None,
) -> dict[str, list[ImageRecord]]:
    """Bucket images and run diverse selection per bucket under its cap.

    Args:
        images: Scored and classified images
        bucket_config: Bucket rules and caps, or a plain bucket -> cap mapping
        selector: Selector to use (defaults to relevance + quality ranking)

    Returns:
        Mapping of bucket name to selected images
    """
    if bucket_config is None:
        bucket_config = get_fusion_config().buckets
    elif isinstance(bucket_config, Mapping):
        bucket_config = get_fusion_config().buckets.model_copy(update=dict(bucket_config))

    images = list(images)
    selector = selector or DiverseImageSelector()
    caps = bucket_config.caps()
    assigned = ImageBucketer(bucket_config).assign(images)

    selected = {
        bucket: selector.select(members, caps[bucket])
        for bucket, members in assigned.items()
    }
    logger.info(
        "Selected brochure images",
        input_count=len(images),
        **{bucket: len(members) for bucket, members in selected.items()},
    )
    return selected
