"""Tests for the literature retriever stage."""

from __future__ import annotations

import asyncio

import pytest

from nelson.errors import UpstreamUnavailable
from nelson.schemas.medical import MedicalContext, QueryClassification
from nelson.schemas.result import StageOutcome
from nelson.stages import LiteratureRetriever


def _run(retriever: LiteratureRetriever, **inputs):
    inputs.setdefault("query", "febrile infant")
    return asyncio.run(retriever.run(inputs))


class TestRanking:
    def test_threshold_and_order(self, fake_index) -> None:
        references, entry = _run(LiteratureRetriever(fake_index(), threshold=0.7))

        assert [ref.title for ref in references] == ["Urinary Tract Infections", "Fever Without a Focus"]
        assert all(ref.relevance >= 0.7 for ref in references)
        assert entry.outcome is StageOutcome.SUCCESS
        assert entry.detail == "2 reference(s)"

    def test_limit(self, fake_index) -> None:
        references, _ = _run(LiteratureRetriever(fake_index(), limit=1, threshold=0.0))
        assert len(references) == 1
        assert references[0].relevance == pytest.approx(0.91)

    def test_relevance_clamped(self, fake_index) -> None:
        index = fake_index([{"title": "Sepsis", "page": 10, "confidence": 1.7}])
        references, _ = _run(LiteratureRetriever(index))
        assert references[0].relevance == 1.0

    def test_relevance_key_and_content_fallback(self, fake_index) -> None:
        index = fake_index([{"title": "Bronchiolitis", "page": 2201, "relevance": 0.8, "content": "RSV..."}])
        references, _ = _run(LiteratureRetriever(index))
        assert references[0].excerpt == "RSV..."

    def test_malformed_entries_skipped(self, fake_index) -> None:
        index = fake_index(
            [
                "not a dict",
                {"title": "", "page": 3, "confidence": 0.9},
                {"title": "No page", "confidence": 0.9},
                {"title": "Bad score", "page": 4, "confidence": "high"},
                {"title": "Kawasaki Disease", "page": 1310, "confidence": 0.75},
            ]
        )
        references, entry = _run(LiteratureRetriever(index))
        assert [ref.title for ref in references] == ["Kawasaki Disease"]
        assert entry.outcome is StageOutcome.SUCCESS

    def test_empty_results_succeed(self, fake_index) -> None:
        references, entry = _run(LiteratureRetriever(fake_index([])))
        assert references == []
        assert entry.outcome is StageOutcome.SUCCESS

    def test_limit_and_threshold_forwarded(self, fake_index) -> None:
        index = fake_index()
        _run(LiteratureRetriever(index, limit=3, threshold=0.5))
        assert index.calls[0]["limit"] == 3
        assert index.calls[0]["threshold"] == 0.5


class TestDegradation:
    def test_unavailable_degrades(self, fake_index) -> None:
        references, entry = _run(LiteratureRetriever(fake_index(UpstreamUnavailable("HTTP 500"))))
        assert references == []
        assert entry.outcome is StageOutcome.DEGRADED
        assert entry.detail == "literature unavailable (unavailable)"

    def test_timeout_degrades(self, fake_index) -> None:
        references, entry = _run(LiteratureRetriever(fake_index(delay=1.0), timeout=0.05))
        assert references == []
        assert entry.detail == "literature unavailable (timeout)"

    def test_no_index_configured(self) -> None:
        references, entry = _run(LiteratureRetriever(None))
        assert references == []
        assert entry.outcome is StageOutcome.DEGRADED

    def test_unexpected_index_error_degrades(self, fake_index) -> None:
        references, entry = _run(LiteratureRetriever(fake_index(RuntimeError("index exploded"))))
        assert references == []
        assert entry.outcome is StageOutcome.DEGRADED
        assert entry.detail == "literature unavailable (RuntimeError)"

    def test_non_list_results_degrade(self, fake_index) -> None:
        index = fake_index()
        index.results = 42
        references, entry = _run(LiteratureRetriever(index))
        assert references == []
        assert entry.outcome is StageOutcome.DEGRADED


class TestSearchContext:
    def test_classification_hints(self, fake_index, payloads: dict) -> None:
        index = fake_index()
        classification = QueryClassification.model_validate(payloads["classification"])
        _run(LiteratureRetriever(index), classification=classification)
        assert index.calls[0]["context"] == {"specialty": "pediatrics", "urgency": "urgent"}

    def test_extracted_context_preferred(self, fake_index, payloads: dict) -> None:
        index = fake_index()
        context = MedicalContext.model_validate(payloads["context"])
        classification = QueryClassification.model_validate(payloads["classification"])
        _run(LiteratureRetriever(index), context=context, classification=classification)
        assert index.calls[0]["context"]["ageGroup"] == "infant"

    def test_no_hints(self, fake_index) -> None:
        index = fake_index()
        _run(LiteratureRetriever(index))
        assert index.calls[0] == {"query": "febrile infant", "context": {}, "limit": 5, "threshold": 0.7}
