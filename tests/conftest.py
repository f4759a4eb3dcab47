"""Shared pytest fixtures: scripted fakes for the LLM and literature index."""

from __future__ import annotations

import asyncio
import json

import pytest

from nelson.clients.literature import LiteratureIndex
from nelson.clients.llm import LLMClient, LLMRequestConfig
from nelson.schemas.medical import MedicalQuery
from nelson.stages import (
    Classifier,
    ContextExtractor,
    DiagnosisGenerator,
    LiteratureRetriever,
    PipelineStages,
    SafetyValidator,
    TreatmentGenerator,
)
from nelson.stages.prompts import TemplateId

EXAMPLE_QUERY = "3-month-old infant with fever 39.5°C and poor feeding"

CLASSIFICATION = {
    "category": "SYMPTOM_ASSESSMENT",
    "confidence": 0.9,
    "urgency": "urgent",
    "specialty": "pediatrics",
}

CONTEXT = {
    "symptoms": ["fever", "poor feeding"],
    "ageGroup": "infant",
    "severity": "moderate",
    "contraindications": [],
    "relevantHistory": [],
}

DIAGNOSIS = {
    "primaryDiagnosis": "Suspected serious bacterial infection",
    "alternatives": [
        {"diagnosis": "Viral illness", "probability": 0.3, "reasoning": "Most common cause of fever."},
        {"diagnosis": "Urinary tract infection", "probability": 0.6, "reasoning": "Common occult source."},
    ],
    "redFlags": ["age < 3 months with fever requires urgent evaluation"],
    "investigations": ["blood culture", "urinalysis", "full blood count"],
}

TREATMENT = {
    "firstLine": "Same-day hospital assessment with full septic screen",
    "alternatives": ["Empirical parenteral antibiotics after cultures"],
    "dosing": {"paracetamol": "15 mg/kg every 6 hours as needed"},
    "monitoring": ["temperature", "feeding volume", "wet nappies"],
    "escalationCriteria": ["Lethargy or reduced feeding requires emergency evaluation"],
    "parentalEducation": ["Return immediately if the baby becomes drowsy or stops feeding"],
}

SAFETY = {
    "isSafe": True,
    "warnings": ["Febrile infant under 3 months"],
    "requiresEscalation": True,
}

LITERATURE_RESULTS = [
    {"title": "Fever Without a Focus", "page": 1280, "excerpt": "Infants younger than 3 months...", "confidence": 0.82},
    {"title": "Urinary Tract Infections", "page": 2789, "excerpt": "UTI is the most common...", "confidence": 0.91},
    {"title": "Teething", "page": 1905, "excerpt": "Low-grade fever...", "confidence": 0.4},
]

# Distinctive phrases identifying each prompt template
_MARKERS = {
    TemplateId.CLASSIFICATION: "medical query classifier",
    TemplateId.CONTEXT_EXTRACTION: "Extract medical information",
    TemplateId.DIAGNOSIS: "expert pediatric diagnostician",
    TemplateId.TREATMENT: "pediatric treatment specialist",
    TemplateId.SAFETY: "Validate the safety",
}


def template_of(prompt: str) -> TemplateId:
    for template_id, marker in _MARKERS.items():
        if marker in prompt:
            return template_id
    raise AssertionError(f"Unrecognised prompt: {prompt[:80]!r}")


class ScriptedLLM(LLMClient):
    """LLM fake answering each template with a scripted response.

    A response may be a string, an exception instance (raised), or a list
    consumed one item per call.  ``delays`` holds per-template sleeps.
    """

    def __init__(self, responses: dict, delays: dict | None = None) -> None:
        self.responses = dict(responses)
        self.delays = delays or {}
        self.calls: list[tuple[TemplateId, str, LLMRequestConfig]] = []
        self.cancelled: list[TemplateId] = []

    async def generate(self, prompt: str, config: LLMRequestConfig) -> str:
        template_id = template_of(prompt)
        self.calls.append((template_id, prompt, config))
        try:
            await asyncio.sleep(self.delays.get(template_id, 0))
        except asyncio.CancelledError:
            self.cancelled.append(template_id)
            raise

        response = self.responses[template_id]
        if isinstance(response, list):
            response = response.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response

    def prompts_for(self, template_id: TemplateId) -> list[str]:
        return [prompt for tid, prompt, _ in self.calls if tid == template_id]


class FakeIndex(LiteratureIndex):
    def __init__(self, results: list | BaseException | None = None, delay: float = 0) -> None:
        self.results = LITERATURE_RESULTS if results is None else results
        self.delay = delay
        self.calls: list[dict] = []
        self.cancelled = False

    async def search(self, query, context, limit, threshold):
        self.calls.append({"query": query, "context": context, "limit": limit, "threshold": threshold})
        try:
            await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if isinstance(self.results, BaseException):
            raise self.results
        return list(self.results)


@pytest.fixture
def llm_responses() -> dict:
    """Valid JSON answers for every template, matching the febrile-infant scenario."""
    return {
        TemplateId.CLASSIFICATION: "Here is the classification:\n" + json.dumps(CLASSIFICATION),
        TemplateId.CONTEXT_EXTRACTION: "```json\n" + json.dumps(CONTEXT) + "\n```",
        TemplateId.DIAGNOSIS: json.dumps(DIAGNOSIS),
        TemplateId.TREATMENT: json.dumps(TREATMENT),
        TemplateId.SAFETY: json.dumps(SAFETY) + "\nLet me know if you need more detail.",
    }


@pytest.fixture
def scripted_llm():
    """Factory fixture: ``scripted_llm(responses, delays=None)``."""
    return ScriptedLLM


@pytest.fixture
def fake_index():
    """Factory fixture: ``fake_index(results=None, delay=0)``."""
    return FakeIndex


@pytest.fixture
def build_stages():
    """Factory fixture building all six stages with short test timeouts."""

    def _build(llm, index, timeout: float = 2.0, literature_timeout: float = 1.0, max_retries: int = 1):
        return PipelineStages(
            classifier=Classifier(llm, timeout=timeout, max_retries=max_retries),
            context_extractor=ContextExtractor(llm, timeout=timeout, max_retries=max_retries),
            literature_retriever=LiteratureRetriever(index, limit=5, threshold=0.7, timeout=literature_timeout),
            diagnosis_generator=DiagnosisGenerator(llm, timeout=timeout, max_retries=max_retries),
            treatment_generator=TreatmentGenerator(llm, timeout=timeout, max_retries=max_retries),
            safety_validator=SafetyValidator(llm, timeout=timeout, max_retries=max_retries),
        )

    return _build


@pytest.fixture
def example_query() -> MedicalQuery:
    return MedicalQuery(text=EXAMPLE_QUERY, session_id="test_session_001")


@pytest.fixture
def payloads() -> dict:
    """Deep copies of the scenario payloads, safe to mutate per test."""
    return json.loads(
        json.dumps(
            {
                "classification": CLASSIFICATION,
                "context": CONTEXT,
                "diagnosis": DIAGNOSIS,
                "treatment": TREATMENT,
                "safety": SAFETY,
                "literature": LITERATURE_RESULTS,
            }
        )
    )
