"""Stage adapters and the factory that wires them from configuration."""

from __future__ import annotations

from dataclasses import dataclass

from nelson.clients.literature import LiteratureIndex
from nelson.clients.llm import LLMClient, LLMRequestConfig
from nelson.config import AppConfig
from nelson.stages.classifier import Classifier
from nelson.stages.context import ContextExtractor
from nelson.stages.diagnosis import DiagnosisGenerator
from nelson.stages.literature import LiteratureRetriever
from nelson.stages.safety import SafetyValidator
from nelson.stages.treatment import TreatmentGenerator

__all__ = [
    "Classifier",
    "ContextExtractor",
    "DiagnosisGenerator",
    "LiteratureRetriever",
    "PipelineStages",
    "SafetyValidator",
    "TreatmentGenerator",
    "create_stages",
]


@dataclass(frozen=True)
class PipelineStages:
    classifier: Classifier
    context_extractor: ContextExtractor
    literature_retriever: LiteratureRetriever
    diagnosis_generator: DiagnosisGenerator
    treatment_generator: TreatmentGenerator
    safety_validator: SafetyValidator


def create_stages(config: AppConfig, llm: LLMClient, index: LiteratureIndex | None) -> PipelineStages:
    """Builds all six stages around the shared client handles.

    Args:
        config: Loaded application configuration.
        llm:    Shared LLM client.
        index:  Shared literature index client, or ``None`` to run without
            literature (the retriever then always degrades to empty).
    """

    def request(timeout: float) -> LLMRequestConfig:
        return LLMRequestConfig(
            temperature=config.llm.temperature,
            max_tokens=config.llm.max_tokens,
            top_p=config.llm.top_p,
            timeout_ms=int(timeout * 1000),
        )

    timeouts = config.stages
    retries = config.llm.max_retries
    return PipelineStages(
        classifier=Classifier(llm, request(timeouts.classification), timeouts.classification, retries),
        context_extractor=ContextExtractor(llm, request(timeouts.context), timeouts.context, retries),
        literature_retriever=LiteratureRetriever(
            index,
            limit=config.literature.limit,
            threshold=config.literature.threshold,
            timeout=config.literature.timeout_s,
        ),
        diagnosis_generator=DiagnosisGenerator(llm, request(timeouts.diagnosis), timeouts.diagnosis, retries),
        treatment_generator=TreatmentGenerator(llm, request(timeouts.treatment), timeouts.treatment, retries),
        safety_validator=SafetyValidator(llm, request(timeouts.safety), timeouts.safety, retries),
    )
