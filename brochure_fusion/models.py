"""Data records exchanged between the fusion components.

Records produced by the engine are frozen dataclasses; enrichment (scoring,
classification, ranking) always returns a new record via ``dataclasses.replace``.
JSON coming from the Content Analyzer and the Image Classifier is parsed with
lenient pydantic models: a malformed field is treated as absent instead of
failing the whole payload.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Annotated, Any

import orjson
from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    ValidationError,
    WrapValidator,
)
from pydantic.alias_generators import to_camel

from .exceptions import MalformedInputError


# ── Lenient field helpers ───────────────────────────────────────────────────

def _absent_on_error(value: Any, handler: Any) -> Any:
    try:
        return handler(value)
    except ValidationError:
        return None


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def _dict_list(value: Any) -> list[dict]:
    if not isinstance(value, (list, tuple)):
        return []
    return [item for item in value if isinstance(item, dict)]


LenientStr = Annotated[str | None, WrapValidator(_absent_on_error)]
LenientFloat = Annotated[float | None, WrapValidator(_absent_on_error)]
LenientBool = Annotated[bool | None, WrapValidator(_absent_on_error)]
StringList = Annotated[list[str], BeforeValidator(_string_list)]


class _LenientModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


# ── Content Analyzer output ─────────────────────────────────────────────────

class KeyFeature(_LenientModel):
    """A named feature (landmark, activity, ...) reported by the analyzer."""
    name: LenientStr = None
    description: LenientStr = None
    type: LenientStr = None
    score: LenientFloat = None


class PracticalInfo(_LenientModel):
    best_time_to_visit: LenientStr = None
    fees: LenientStr = None


class EnvironmentalContext(_LenientModel):
    climate: LenientStr = None


class VisitorExperience(_LenientModel):
    suggested_activities: StringList = []
    highlights: StringList = []
    tips: StringList = []


class AnalyzedContent(_LenientModel):
    """Structured semantic fields extracted from one document."""
    overview: LenientStr = None
    key_features: Annotated[list[KeyFeature], BeforeValidator(_dict_list)] = []
    historical_context: LenientStr = None
    practical_info: Annotated[PracticalInfo | None, WrapValidator(_absent_on_error)] = None
    environmental_context: Annotated[
        EnvironmentalContext | None, WrapValidator(_absent_on_error)
    ] = None
    cultural_significance: LenientStr = None
    visitor_experience: Annotated[
        VisitorExperience | None, WrapValidator(_absent_on_error)
    ] = None

    @classmethod
    def from_raw(cls, data: Any) -> "AnalyzedContent":
        """Parse analyzer output given as a dict or a JSON string.

        Anything that is not a JSON object yields an empty record.
        """
        if isinstance(data, cls):
            return data
        if isinstance(data, (str, bytes)):
            try:
                data = orjson.loads(data)
            except orjson.JSONDecodeError:
                return cls()
        if not isinstance(data, dict):
            return cls()
        return cls.model_validate(data)


# ── Image Classifier output ─────────────────────────────────────────────────

class CategoryLabel(_LenientModel):
    type: LenientStr = None
    confidence: LenientFloat = None


class ImageClassification(_LenientModel):
    """Category labels and quality flags for one image."""
    categories: Annotated[list[CategoryLabel], BeforeValidator(_dict_list)] = []
    primary_category: LenientStr = None
    is_high_quality: LenientBool = None
    relevance_score: LenientFloat = None

    @classmethod
    def from_raw(cls, data: Any) -> "ImageClassification":
        if isinstance(data, cls):
            return data
        if isinstance(data, (str, bytes)):
            try:
                data = orjson.loads(data)
            except orjson.JSONDecodeError:
                return cls()
        if not isinstance(data, dict):
            return cls()
        return cls.model_validate(data)


# ── Engine records ──────────────────────────────────────────────────────────

def _as_int(value: Any) -> int:
    try:
        return max(0, int(float(value)))
    except (TypeError, ValueError, OverflowError):
        return 0


def _as_float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _as_str(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _as_bool(value: Any) -> bool:
    # "false" and 0 are not flags
    return value if isinstance(value, bool) else False


class ContentType(Enum):
    """Kind of page behind a search hit."""
    TRAVEL_GUIDE = "Travel Guide"
    OFFICIAL_SITE = "Official Site"
    BLOG = "Blog"
    NEWS_ARTICLE = "News Article"
    OTHER = "Other"

    @classmethod
    def parse(cls, value: Any) -> "ContentType":
        """Accept "Travel Guide", "TravelGuide", "travel_guide", ...; default Other."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return cls.OTHER
        key = re.sub(r'[\s_\-]', '', value).lower()
        for member in cls:
            if member.value.replace(' ', '').lower() == key:
                return member
        return cls.OTHER


@dataclass(frozen=True)
class SearchHit:
    """One search provider result."""
    title: str
    url: str
    snippet: str = ""
    content_type: ContentType = ContentType.OTHER
    publish_date: str | None = None
    relevance_score: float = 0.0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SearchHit":
        if not isinstance(data, Mapping):
            raise MalformedInputError("Search hit must be an object")
        url = _as_str(data.get('url') or data.get('link'))
        if not url:
            raise MalformedInputError("Search hit has no url")
        date = data.get('publishDate', data.get('date'))
        if not isinstance(date, str) or date.strip().lower() in {'', 'unknown'}:
            date = None
        return cls(
            title=_as_str(data.get('title')),
            url=url,
            snippet=_as_str(data.get('snippet')),
            content_type=ContentType.parse(data.get('contentType', data.get('type'))),
            publish_date=date,
            relevance_score=_as_float(data.get('relevanceScore'), 0.0),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            'title': self.title,
            'url': self.url,
            'snippet': self.snippet,
            'type': self.content_type.value,
            'date': self.publish_date,
            'relevanceScore': self.relevance_score,
        }


@dataclass(frozen=True)
class ContentParagraph:
    """A block of scraped text and the category it was filed under."""
    text: str
    source_url: str
    category: str | None = None
    score: float = 0.0


@dataclass(frozen=True)
class AttractionFeature:
    """An attraction mention from one document, before merging."""
    name: str
    description: str
    score: float
    source_url: str


@dataclass(frozen=True)
class AttractionRecord:
    """A landmark merged across documents."""
    name: str
    description: str
    aggregate_score: float
    sources: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            'name': self.name,
            'description': self.description,
            'score': self.aggregate_score,
            'sources': list(self.sources),
        }


@dataclass(frozen=True)
class CategoryScore:
    """Classifier label with its confidence."""
    type: str
    confidence: float


def _merge_categories(
    current: tuple[CategoryScore, ...], extra: tuple[CategoryScore, ...]
) -> tuple[CategoryScore, ...]:
    merged: dict[str, float] = {}
    for label in (*current, *extra):
        merged[label.type] = max(label.confidence, merged.get(label.type, label.confidence))
    return tuple(CategoryScore(t, c) for t, c in merged.items())


@dataclass(frozen=True)
class ImageRecord:
    """Image metadata, enriched by local scoring and classification."""
    url: str
    alt: str = ""
    title: str = ""
    width: int = 0
    height: int = 0
    quality: float = 0.5
    category: str | None = None
    context: str = ""
    caption: str = ""
    categories: tuple[CategoryScore, ...] = ()
    is_high_quality: bool = False
    relevance: float = 0.0
    prominence: float = 0.5
    colorfulness: float = 0.5
    is_scenic: bool = False
    is_logo: bool = False
    source_url: str = ""

    @property
    def area(self) -> int | None:
        if self.width and self.height:
            return self.width * self.height
        return None

    @property
    def aspect_ratio(self) -> float | None:
        if self.width and self.height:
            return self.width / self.height
        return None

    @property
    def score(self) -> float:
        """Selection score: local relevance plus final quality."""
        return self.relevance + self.quality

    @property
    def is_classified(self) -> bool:
        return bool(self.categories)

    def confidence(self, category_type: str) -> float:
        for label in self.categories:
            if label.type == category_type:
                return label.confidence
        return 0.0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], source_url: str = "") -> "ImageRecord":
        if not isinstance(data, Mapping):
            raise MalformedInputError("Image entry must be an object", source_url)
        url = _as_str(data.get('url') or data.get('src'))
        if not url:
            raise MalformedInputError("Image entry has no url", source_url)

        image = cls(
            url=url,
            alt=_as_str(data.get('alt')),
            title=_as_str(data.get('title')),
            width=_as_int(data.get('width')),
            height=_as_int(data.get('height')),
            quality=min(1.0, max(0.0, _as_float(data.get('quality'), 0.5))),
            category=_as_str(data.get('category')).upper() or None,
            context=_as_str(data.get('context') or data.get('surroundingText')),
            caption=_as_str(data.get('caption')),
            prominence=_as_float(data.get('prominence'), 0.5),
            colorfulness=_as_float(data.get('colorfulness'), 0.5),
            is_scenic=_as_bool(data.get('isScenic')),
            is_logo=_as_bool(data.get('isLogo')),
            source_url=source_url,
        )
        if 'categories' in data or 'primaryCategory' in data:
            image = image.with_classification(ImageClassification.from_raw(dict(data)))
        return image

    def with_classification(self, classification: ImageClassification) -> "ImageRecord":
        """Apply classifier output: labels accumulate, quality is floored."""
        labels = tuple(
            CategoryScore(label.type.strip().upper(), label.confidence or 0.0)
            for label in classification.categories
            if label.type and label.type.strip()
        )
        primary = (classification.primary_category or "").strip().upper() or None
        quality = self.quality
        if classification.relevance_score is not None:
            quality = max(quality, classification.relevance_score)
        return replace(
            self,
            categories=_merge_categories(self.categories, labels),
            category=primary or self.category,
            is_high_quality=bool(classification.is_high_quality) or self.is_high_quality,
            quality=quality,
        )

    def merged_with(self, newer: "ImageRecord") -> "ImageRecord":
        """Combine two sightings of the same url.

        The newer metadata wins while classifier labels accumulate.
        """
        return replace(
            newer,
            categories=_merge_categories(self.categories, newer.categories),
            category=newer.category or self.category,
            is_high_quality=newer.is_high_quality or self.is_high_quality,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            'url': self.url,
            'alt': self.alt,
            'title': self.title,
            'width': self.width,
            'height': self.height,
            'quality': self.quality,
            'category': self.category,
            'categories': [
                {'type': label.type, 'confidence': label.confidence}
                for label in self.categories
            ],
            'isHighQuality': self.is_high_quality,
            'relevanceScore': self.relevance,
            'source': self.source_url,
        }


@dataclass(frozen=True)
class ScrapedDocument:
    """Fetched page content plus the analyzer's structured reading of it."""
    url: str
    title: str = ""
    main_text: str = ""
    images: tuple[ImageRecord, ...] = ()
    analyzed_content: AnalyzedContent = field(default_factory=AnalyzedContent)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ScrapedDocument":
        """Build a document from Fetcher/Analyzer JSON.

        Raises:
            MalformedInputError: If the payload is not an object or has no url
        """
        if not isinstance(data, Mapping):
            raise MalformedInputError("Document must be an object")
        url = _as_str(data.get('url'))
        if not url:
            raise MalformedInputError("Document has no url")

        main_text = data.get('mainText', data.get('mainContent', data.get('main_text')))
        raw_images = data.get('images')
        images = []
        for raw in raw_images if isinstance(raw_images, list) else []:
            try:
                images.append(ImageRecord.from_dict(raw, source_url=url))
            except MalformedInputError:
                continue

        analyzed = data.get('analyzedContent', data.get('content'))
        return cls(
            url=url,
            title=_as_str(data.get('title')),
            main_text=main_text if isinstance(main_text, str) else "",
            images=tuple(images),
            analyzed_content=AnalyzedContent.from_raw(analyzed),
        )


@dataclass(frozen=True)
class MergedLocationData:
    """Terminal aggregate of one fusion run."""
    location: str
    description: str = ""
    attractions: tuple[AttractionRecord, ...] = ()
    content_by_category: Mapping[str, str] = field(default_factory=dict)
    images: Mapping[str, tuple[ImageRecord, ...]] = field(default_factory=dict)
    activities: tuple[str, ...] = ()
    highlights: tuple[str, ...] = ()
    tips: tuple[str, ...] = ()
    quick_facts: Mapping[str, str] = field(default_factory=dict)
    sources: tuple[str, ...] = ()
    hero_image: ImageRecord | None = None
    gallery: tuple[ImageRecord, ...] = ()
    thumbnails: tuple[ImageRecord, ...] = ()

    def __post_init__(self) -> None:
        for name in ('content_by_category', 'images', 'quick_facts'):
            object.__setattr__(self, name, MappingProxyType(dict(getattr(self, name))))

    @classmethod
    def empty(cls, location: str, buckets: tuple[str, ...] = ()) -> "MergedLocationData":
        return cls(location=location, images={bucket: () for bucket in buckets})

    def to_dict(self) -> dict[str, Any]:
        return {
            'location': self.location,
            'description': self.description,
            'attractions': [a.to_dict() for a in self.attractions],
            'activities': list(self.activities),
            'content': dict(self.content_by_category),
            'highlights': list(self.highlights),
            'tips': list(self.tips),
            'quickFacts': dict(self.quick_facts),
            'images': {
                bucket: [image.to_dict() for image in images]
                for bucket, images in self.images.items()
            },
            'heroImage': self.hero_image.to_dict() if self.hero_image else None,
            'gallery': [image.to_dict() for image in self.gallery],
            'thumbnails': [image.to_dict() for image in self.thumbnails],
            'sources': list(self.sources),
        }
