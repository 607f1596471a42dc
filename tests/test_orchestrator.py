"""Tests for the fusion orchestrator."""

import asyncio
from dataclasses import FrozenInstanceError

import pytest

from brochure_fusion.classifier import ImageClassifier
from brochure_fusion.config import FusionConfig
from brochure_fusion.models import ImageClassification, ScrapedDocument
from brochure_fusion.orchestrator import (
    FusionOrchestrator,
    classify_images,
    coerce_documents,
    fuse,
    fuse_documents,
)
from brochure_fusion.processing.text_utils import FirstPhraseExtractor

HISTORY = "The ancient city was founded in the eighth century and its history is long."


@pytest.fixture
def orchestrator():
    return FusionOrchestrator(FusionConfig())


class TestFuse:

    def test_attractions_merge_across_documents(self, orchestrator, sample_documents):
        merged = orchestrator.fuse(sample_documents, "Kyoto")

        assert [(a.name, a.aggregate_score) for a in merged.attractions] == [
            ("Tower X", 7),
            ("Park Y", 5),
        ]
        tower = merged.attractions[0]
        assert tower.description == "A tall tower with views over the whole city."
        assert tower.sources == ("https://a.example/kyoto", "https://b.example/kyoto")

    def test_content_and_analyzer_fields(self, orchestrator, sample_documents):
        merged = orchestrator.fuse(sample_documents, "Kyoto")

        assert merged.location == "Kyoto"
        assert dict(merged.content_by_category) == {"history": HISTORY}
        assert merged.description == (
            "Kyoto was the imperial capital for a thousand years. "
            "A city of temples and gardens."
        )
        assert merged.activities == ("Tea ceremony", "Temple hopping")
        assert merged.highlights == ("Autumn leaves", "Geisha district")
        assert merged.tips == ("Buy a bus pass",)
        assert dict(merged.quick_facts) == {
            "bestTime": "Spring",
            "fees": "Free",
            "climate": "Humid summers",
        }
        assert merged.sources == ("https://a.example/kyoto", "https://b.example/kyoto")

    def test_images(self, orchestrator, sample_documents):
        merged = orchestrator.fuse(sample_documents, "Kyoto")

        assert set(merged.images) == {"hero", "attraction", "activity", "general"}
        assert [i.url for i in merged.images["general"]] == ["https://a.example/img/tower.jpg"]
        assert merged.images["hero"] == ()
        # alt text (+2) and a clean filename (+1)
        assert merged.images["general"][0].relevance == 3.0
        assert merged.images["general"][0].source_url == "https://a.example/kyoto"
        assert merged.hero_image.url == "https://a.example/img/tower.jpg"
        assert merged.gallery == ()
        assert [i.url for i in merged.thumbnails] == ["https://a.example/img/tower.jpg"]

    def test_empty_input(self, orchestrator):
        merged = orchestrator.fuse([], "Nowhere")

        assert merged.location == "Nowhere"
        assert merged.attractions == ()
        assert dict(merged.content_by_category) == {}
        assert {bucket: list(images) for bucket, images in merged.images.items()} == {
            "hero": [], "attraction": [], "activity": [], "general": [],
        }
        assert merged.hero_image is None

    def test_malformed_documents_are_skipped(self, orchestrator, sample_documents):
        documents = ["not a document", {"title": "no url"}, *sample_documents]

        merged = orchestrator.fuse(documents, "Kyoto")

        assert len(merged.attractions) == 2
        assert len(merged.sources) == 2

    def test_failing_document_contributes_nothing(self):
        class ExplodingExtractor(FirstPhraseExtractor):
            def extract_name(self, text):
                if "Explode" in text:
                    raise ValueError("cannot extract")
                return super().extract_name(text)

        good = {
            "url": "https://good.example",
            "mainText": HISTORY,
            "images": [{"url": "https://good.example/a.jpg"}],
        }
        bad = {
            "url": "https://bad.example",
            "mainText": "Explode Temple, a shrine and museum with palace gardens in the old town.",
            "images": [{"url": "https://bad.example/b.jpg"}],
            "analyzedContent": {"overview": "Should not appear."},
        }

        merged = FusionOrchestrator(FusionConfig(), ExplodingExtractor()).fuse([good, bad], "Kyoto")

        assert merged.sources == ("https://good.example",)
        assert [i.url for i in merged.images["general"]] == ["https://good.example/a.jpg"]
        assert merged.description == ""
        assert dict(merged.content_by_category) == {"history": HISTORY}

    def test_non_finite_image_size_does_not_abort(self, orchestrator, sample_documents):
        broken = {
            "url": "https://c.example/kyoto",
            "images": [{"url": "https://c.example/huge.jpg", "width": "inf", "height": 10}],
        }

        merged = orchestrator.fuse([*sample_documents, broken], "Kyoto")

        assert merged.sources == (
            "https://a.example/kyoto", "https://b.example/kyoto", "https://c.example/kyoto",
        )
        assert [a.name for a in merged.attractions] == ["Tower X", "Park Y"]
        assert "https://c.example/huge.jpg" in [i.url for i in merged.images["general"]]

    def test_unexpected_parse_error_skips_only_that_document(self, orchestrator, sample_documents):
        class UnreadablePayload(dict):
            def get(self, key, default=None):
                raise RuntimeError("payload cannot be read")

        merged = orchestrator.fuse([UnreadablePayload(), *sample_documents], "Kyoto")

        assert len(merged.sources) == 2
        assert [a.name for a in merged.attractions] == ["Tower X", "Park Y"]

    def test_malformed_analyzed_content_degrades(self, orchestrator):
        document = {
            "url": "https://a.example",
            "mainText": HISTORY,
            "analyzedContent": {"overview": 42, "keyFeatures": "oops",
                                "visitorExperience": ["not", "an", "object"]},
        }

        merged = orchestrator.fuse([document], "Kyoto")

        assert merged.attractions == ()
        assert merged.description == ""
        assert dict(merged.content_by_category) == {"history": HISTORY}

    def test_attraction_paragraphs_become_attractions(self, orchestrator):
        text = "Kinkaku-ji, a golden temple and shrine inside a moss garden near the park."
        documents = [
            {"url": "https://a.example", "mainText": text},
            {"url": "https://b.example", "mainText": text + " Visit early."},
        ]

        merged = orchestrator.fuse(documents, "Kyoto")

        assert [a.name for a in merged.attractions] == ["Kinkaku-ji"]
        assert merged.attractions[0].sources == ("https://a.example", "https://b.example")
        assert "attractions" not in merged.content_by_category

    def test_description_is_truncated(self, orchestrator):
        document = {"url": "https://a.example", "analyzedContent": {"overview": "a" * 600}}

        merged = orchestrator.fuse([document], "Kyoto")

        assert merged.description == "a" * 500 + "..."

    def test_description_falls_back_to_overview_content(self, orchestrator):
        overview = "An overview and introduction with a short summary of the whole region."
        merged = orchestrator.fuse([{"url": "https://a.example", "mainText": overview}], "Kyoto")

        assert merged.description == overview

    def test_images_dedupe_by_url(self, orchestrator):
        documents = [
            {"url": "https://a.example", "images": [{
                "url": "https://img/x.jpg", "alt": "old",
                "categories": [{"type": "ATTRACTION", "confidence": 0.9}],
            }]},
            {"url": "https://b.example", "images": [{
                "url": "https://img/x.jpg", "alt": "new",
                "categories": [{"type": "FOOD", "confidence": 0.8}],
            }]},
        ]

        merged = orchestrator.fuse(documents, "Kyoto")

        attraction = merged.images["attraction"]
        assert [i.alt for i in attraction] == ["new"]
        assert {c.type for c in attraction[0].categories} == {"ATTRACTION", "FOOD"}
        assert [i.url for i in merged.images["general"]] == ["https://img/x.jpg"]

    def test_result_is_immutable(self, orchestrator, sample_documents):
        merged = orchestrator.fuse(sample_documents, "Kyoto")

        with pytest.raises(FrozenInstanceError):
            merged.description = "changed"
        with pytest.raises(TypeError):
            merged.content_by_category["history"] = "changed"

    def test_deterministic(self, sample_documents):
        assert fuse(sample_documents, "Kyoto").to_dict() == fuse(sample_documents, "Kyoto").to_dict()

    def test_to_dict_keys(self, sample_documents):
        data = fuse(sample_documents, "Kyoto").to_dict()

        assert data["attractions"][0] == {
            "name": "Tower X",
            "description": "A tall tower with views over the whole city.",
            "score": 7,
            "sources": ["https://a.example/kyoto", "https://b.example/kyoto"],
        }
        assert data["quickFacts"]["fees"] == "Free"
        assert data["heroImage"]["url"] == "https://a.example/img/tower.jpg"


def test_coerce_documents_passes_through_records():
    document = ScrapedDocument(url="https://a.example")

    assert coerce_documents([document, {"nope": 1}]) == [document]


class FakeClassifier(ImageClassifier):
    """Resolves later images first and fails on broken urls."""

    def __init__(self):
        self.calls = []

    async def classify(self, image, location, context=None):
        self.calls.append((image.url, location))
        if "broken" in image.url:
            raise RuntimeError("classifier unavailable")
        await asyncio.sleep(0.01 if image.url.endswith("1.jpg") else 0)
        return ImageClassification.from_raw({
            "categories": [{"type": "ATTRACTION", "confidence": 0.9}],
            "primaryCategory": "ATTRACTION",
            "isHighQuality": False,
            "relevanceScore": 0.8,
        })


@pytest.fixture
def classifiable_documents():
    return coerce_documents([{
        "url": "https://a.example",
        "images": [
            {"url": "https://img/1.jpg"},
            {"url": "https://img/2.jpg"},
            {"url": "https://img/broken.jpg"},
        ],
        "analyzedContent": {"keyFeatures": [{"name": "Tower X", "type": "LANDMARK"}]},
    }])


@pytest.mark.asyncio
async def test_classify_images_keeps_order_and_survives_failures(classifiable_documents):
    classifier = FakeClassifier()

    documents = await classify_images(classifiable_documents, classifier, "Kyoto", concurrency=2)

    images = documents[0].images
    assert [i.url for i in images] == ["https://img/1.jpg", "https://img/2.jpg",
                                       "https://img/broken.jpg"]
    assert images[0].category == "ATTRACTION"
    assert images[0].quality == 0.8
    assert not images[2].is_classified
    assert len(classifier.calls) == 3
    # Input documents are untouched
    assert not classifiable_documents[0].images[0].is_classified


@pytest.mark.asyncio
async def test_fuse_documents_with_classifier(classifiable_documents):
    merged = await fuse_documents(classifiable_documents, "Kyoto", FakeClassifier(), FusionConfig())

    assert [i.url for i in merged.images["attraction"]] == ["https://img/1.jpg", "https://img/2.jpg"]
    assert [i.url for i in merged.images["general"]] == ["https://img/broken.jpg"]
    assert [a.name for a in merged.attractions] == ["Tower X"]
    assert merged.attractions[0].aggregate_score == 1.0


@pytest.mark.asyncio
async def test_fuse_documents_without_classifier(sample_documents):
    merged = await fuse_documents(sample_documents, "Kyoto", config=FusionConfig())

    assert merged.to_dict() == fuse(sample_documents, "Kyoto", FusionConfig()).to_dict()
