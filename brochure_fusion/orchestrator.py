"""End-to-end fusion of scraped documents into one brochure dataset."""

import asyncio
import sys
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import Any

import click
import orjson

from .classifier import ImageClassifier, KeywordImageClassifier
from .config import FusionConfig, get_fusion_config, get_settings, load_fusion_config
from .exceptions import UpstreamFailureError
from .logging import (
    LoggingMixin,
    PerformanceLogger,
    get_logger,
    log_error,
    log_processing_stage,
    setup_logging,
)
from .models import (
    AttractionFeature,
    ContentParagraph,
    ImageRecord,
    MergedLocationData,
    ScrapedDocument,
)
from .processing.attractions import AttractionFuser
from .processing.categorize import ContentCategorizer
from .processing.images import (
    BUCKETS,
    DiverseImageSelector,
    ImageRelevanceScorer,
    select_gallery,
    select_hero_image,
    select_images,
    select_thumbnails,
)
from .processing.paragraphs import ParagraphFuser
from .processing.ranking import rank_search_results
from .processing.text_utils import NameExtractor
from .utils import unique_in_order

logger = get_logger(__name__)

DocumentInput = ScrapedDocument | Mapping[str, Any]


@dataclass
class DocumentContribution:
    """Everything one document adds to the merge."""
    url: str
    paragraphs: list[ContentParagraph] = field(default_factory=list)
    features: list[AttractionFeature] = field(default_factory=list)
    activities: list[str] = field(default_factory=list)
    images: list[ImageRecord] = field(default_factory=list)
    overview: str | None = None
    highlights: list[str] = field(default_factory=list)
    tips: list[str] = field(default_factory=list)
    quick_facts: dict[str, str] = field(default_factory=dict)


def coerce_documents(documents: Iterable[DocumentInput]) -> list[ScrapedDocument]:
    """Parse raw document payloads, skipping the malformed ones."""
    parsed = []
    for index, document in enumerate(documents):
        if isinstance(document, ScrapedDocument):
            parsed.append(document)
            continue
        try:
            parsed.append(ScrapedDocument.from_dict(document))
        except Exception as e:
            logger.warning(**log_error(e, context="document_parsing", index=index))
    return parsed


class FusionOrchestrator(LoggingMixin):
    """Drive paragraph, attraction and image fusion over a set of documents."""

    def __init__(
        self,
        config: FusionConfig | None = None,
        name_extractor: NameExtractor | None = None,
    ):
        self.config = config or get_fusion_config()
        self.categorizer = ContentCategorizer(self.config.categories)
        self.paragraph_fuser = ParagraphFuser(self.config.similarity_threshold)
        self.attraction_fuser = AttractionFuser(name_extractor)
        self.image_scorer = ImageRelevanceScorer(self.config.image_scoring)
        self.selector = DiverseImageSelector()

    # ── Per-document extraction ────────────────────────────────────────────

    def _document_paragraphs(self, document: ScrapedDocument) -> list[ContentParagraph]:
        paragraphs = self.categorizer.categorize_text(
            document.main_text, document.url, self.config.min_paragraph_length
        )

        # Analyzer narrative fields are categorized like any other paragraph
        analyzed = document.analyzed_content
        for text in (analyzed.historical_context, analyzed.cultural_significance):
            if text:
                paragraph = self.categorizer.categorize_paragraph(
                    ContentParagraph(text.strip(), document.url)
                )
                if paragraph is not None:
                    paragraphs.append(paragraph)
        return paragraphs

    def _document_features(
        self, document: ScrapedDocument, paragraphs: Sequence[ContentParagraph]
    ) -> list[AttractionFeature]:
        attraction_paragraphs = [
            p for p in paragraphs if p.category == self.config.attraction_category
        ]
        features = self.attraction_fuser.features_from_paragraphs(attraction_paragraphs)

        # Analyzer landmarks keep the name they were given
        for feature in document.analyzed_content.key_features:
            if (feature.type or "").upper() != "LANDMARK" or not feature.name:
                continue
            score = feature.score if feature.score is not None else self.config.limits.feature_score
            features.append(AttractionFeature(
                name=feature.name,
                description=feature.description or "",
                score=score,
                source_url=document.url,
            ))
        return features

    def _document_activities(self, document: ScrapedDocument) -> list[str]:
        analyzed = document.analyzed_content
        activities = [
            feature.name for feature in analyzed.key_features
            if (feature.type or "").upper() == "ACTIVITY" and feature.name
        ]
        if analyzed.visitor_experience:
            activities.extend(analyzed.visitor_experience.suggested_activities)
        return activities

    def _document_images(self, document: ScrapedDocument) -> list[ImageRecord]:
        return [
            replace(image, relevance=self.image_scorer.score(image, document.main_text))
            for image in document.images
        ]

    def process_document(self, document: ScrapedDocument) -> DocumentContribution:
        """Extract one document's contribution without touching shared state."""
        analyzed = document.analyzed_content
        paragraphs = self._document_paragraphs(document)

        quick_facts = {}
        if analyzed.practical_info:
            quick_facts['bestTime'] = analyzed.practical_info.best_time_to_visit
            quick_facts['fees'] = analyzed.practical_info.fees
        if analyzed.environmental_context:
            quick_facts['climate'] = analyzed.environmental_context.climate

        experience = analyzed.visitor_experience
        return DocumentContribution(
            url=document.url,
            paragraphs=paragraphs,
            features=self._document_features(document, paragraphs),
            activities=self._document_activities(document),
            images=self._document_images(document),
            overview=analyzed.overview,
            highlights=list(experience.highlights) if experience else [],
            tips=list(experience.tips) if experience else [],
            quick_facts={k: v for k, v in quick_facts.items() if v},
        )

    # ── Merge ──────────────────────────────────────────────────────────────

    def _description(self, overviews: list[str], content: Mapping[str, str]) -> str:
        description = " ".join(o.strip() for o in overviews if o and o.strip())
        if not description:
            overview_text = content.get(self.config.overview_category, "")
            description = overview_text.split("\n\n", 1)[0]

        max_length = self.config.limits.description_length
        if len(description) > max_length:
            description = description[:max_length].rstrip() + "..."
        return description

    def fuse(self, documents: Iterable[DocumentInput], location_name: str) -> MergedLocationData:
        """Merge scraped documents about one location.

        A document that fails to process is logged and skipped; the others
        still contribute.

        Args:
            documents: ScrapedDocuments or their raw JSON payloads
            location_name: Location the documents describe

        Returns:
            Immutable merged dataset (empty when no usable documents remain)
        """
        with PerformanceLogger("fusion", self.logger):
            parsed = coerce_documents(documents)
            if not parsed:
                self.logger.info("No documents to fuse", location=location_name)
                return MergedLocationData.empty(location_name, BUCKETS)

            limits = self.config.limits
            by_category: dict[str, list[ContentParagraph]] = {
                category: [] for category in self.config.categories
            }
            features: list[AttractionFeature] = []
            activities: list[str] = []
            overviews: list[str] = []
            highlights: list[str] = []
            tips: list[str] = []
            quick_facts: dict[str, str] = {}
            images_by_url: dict[str, ImageRecord] = {}
            sources: list[str] = []

            for document in parsed:
                try:
                    contribution = self.process_document(document)
                except Exception as e:
                    self.logger.warning(**log_error(e, context="document_fusion", url=document.url))
                    continue

                sources.append(contribution.url)
                for paragraph in contribution.paragraphs:
                    by_category.setdefault(paragraph.category, []).append(paragraph)
                features.extend(contribution.features)
                activities.extend(contribution.activities)
                if contribution.overview:
                    overviews.append(contribution.overview)
                highlights.extend(contribution.highlights)
                tips.extend(contribution.tips)
                for key, value in contribution.quick_facts.items():
                    quick_facts.setdefault(key, value)
                for image in contribution.images:
                    existing = images_by_url.get(image.url)
                    images_by_url[image.url] = existing.merged_with(image) if existing else image

            content = self.paragraph_fuser.merge_all(
                by_category, exclude=[self.config.attraction_category]
            )
            attractions = self.attraction_fuser.merge(features)[:limits.attractions]
            self.logger.info(**log_processing_stage(
                "attractions", len(features), len(attractions), location=location_name
            ))

            images = list(images_by_url.values())
            buckets = select_images(images, self.config.buckets, self.selector)

            merged = MergedLocationData(
                location=location_name,
                description=self._description(overviews, content),
                attractions=tuple(attractions),
                content_by_category=content,
                images={bucket: tuple(members) for bucket, members in buckets.items()},
                activities=tuple(AttractionFuser.merge_names(activities, limits.activities)),
                highlights=tuple(unique_in_order(highlights, limits.highlights)),
                tips=tuple(unique_in_order(tips, limits.tips)),
                quick_facts=quick_facts,
                sources=tuple(unique_in_order(sources)),
                hero_image=select_hero_image(images, self.config.selection, self.config.buckets),
                gallery=tuple(select_gallery(images, self.config.selection)),
                thumbnails=tuple(select_thumbnails(images, self.config.selection)),
            )

            self.logger.info(
                "Fusion complete",
                location=location_name,
                documents=len(parsed),
                contributing=len(sources),
                categories=sorted(content),
                attractions=len(merged.attractions),
                images=len(images),
            )
            return merged


def _classification_context(document: ScrapedDocument) -> dict[str, Any]:
    analyzed = document.analyzed_content
    return {
        "description": analyzed.overview or "",
        "attractions": [f.name for f in analyzed.key_features
                        if f.name and (f.type or "").upper() == "LANDMARK"],
        "activities": [f.name for f in analyzed.key_features
                       if f.name and (f.type or "").upper() == "ACTIVITY"],
    }


async def classify_images(
    documents: Sequence[ScrapedDocument],
    classifier: ImageClassifier,
    location: str,
    concurrency: int | None = None,
) -> list[ScrapedDocument]:
    """Run the image classifier over every document image.

    Calls run concurrently up to ``concurrency`` at a time, but results are
    applied in input order, so completion order never changes the output.
    A failed call leaves that image unclassified.
    """
    semaphore = asyncio.Semaphore(concurrency or get_settings().classifier_concurrency)

    async def _classify(image: ImageRecord, context: dict[str, Any]) -> ImageRecord:
        async with semaphore:
            try:
                classification = await classifier.classify(image, location, context)
            except Exception as e:
                failure = UpstreamFailureError(str(e), item=image.url)
                logger.warning(**log_error(failure, context="image_classification",
                                           url=image.url, cause=e.__class__.__name__))
                return image
        return image.with_classification(classification)

    async def _classify_document(document: ScrapedDocument) -> ScrapedDocument:
        context = _classification_context(document)
        images = await asyncio.gather(*(_classify(image, context) for image in document.images))
        return replace(document, images=tuple(images))

    classified = await asyncio.gather(*(_classify_document(d) for d in documents))
    logger.info(**log_processing_stage(
        "image_classification",
        sum(len(d.images) for d in documents),
        sum(img.is_classified for d in classified for img in d.images),
    ))
    return list(classified)


async def fuse_documents(
    documents: Iterable[DocumentInput],
    location_name: str,
    classifier: ImageClassifier | None = None,
    config: FusionConfig | None = None,
    concurrency: int | None = None,
) -> MergedLocationData:
    """Classify images (when a classifier is given), then fuse."""
    parsed = coerce_documents(documents)
    if classifier is not None and parsed:
        parsed = await classify_images(parsed, classifier, location_name, concurrency)
    return FusionOrchestrator(config).fuse(parsed, location_name)


def fuse(
    documents: Iterable[DocumentInput],
    location_name: str,
    config: FusionConfig | None = None,
) -> MergedLocationData:
    """Convenience function for document fusion."""
    return FusionOrchestrator(config).fuse(documents, location_name)


# ── Command line ───────────────────────────────────────────────────────────

def _load_json_list(stream, key: str) -> list:
    data = orjson.loads(stream.read())
    if isinstance(data, dict):
        data = data.get(key, [])
    if not isinstance(data, list):
        raise click.BadParameter(f"Expected a JSON list or an object with '{key}'")
    return data


def _write_json(output, payload: Any) -> None:
    output.write(orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode() + "\n")


@click.group()
@click.option("--log-level", default="WARNING", help="Log level")
@click.option("--json-logs/--console-logs", default=False, help="Log format")
def cli(log_level, json_logs):
    """Brochure fusion - rank sources and merge scraped location content."""
    setup_logging(log_level=log_level, json_logging=json_logs)


@cli.command()
@click.argument("query")
@click.argument("hits_file", type=click.File("rb"))
@click.option("--output", "-o", type=click.File("w"), default="-",
              help="Output file (default: stdout)")
@click.option("--top", type=int, default=None, help="Only print the best N hits")
def rank(query, hits_file, output, top):
    """Rank search hits in HITS_FILE for QUERY."""
    try:
        ranked = rank_search_results(_load_json_list(hits_file, "results"), query)
    except orjson.JSONDecodeError as e:
        click.echo(f"❌ Error: invalid JSON: {e}", err=True)
        sys.exit(1)
    if top is not None:
        ranked = ranked[:top]
    _write_json(output, [hit.to_dict() for hit in ranked])


@cli.command(name="fuse")
@click.argument("location")
@click.argument("documents_file", type=click.File("rb"))
@click.option("--output", "-o", type=click.File("w"), default="-",
              help="Output file (default: stdout)")
@click.option("--classify", is_flag=True, help="Label images with the keyword classifier")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), default=None,
              help="Fusion config YAML")
def fuse_command(location, documents_file, output, classify, config_path):
    """Fuse the scraped documents in DOCUMENTS_FILE about LOCATION."""
    try:
        config = load_fusion_config(config_path) if config_path else get_fusion_config()
        documents = _load_json_list(documents_file, "documents")
    except (FileNotFoundError, orjson.JSONDecodeError) as e:
        click.echo(f"❌ Error: {e}", err=True)
        sys.exit(1)

    classifier = KeywordImageClassifier() if classify else None
    merged = asyncio.run(fuse_documents(documents, location, classifier, config))
    _write_json(output, merged.to_dict())


if __name__ == "__main__":
    cli()
