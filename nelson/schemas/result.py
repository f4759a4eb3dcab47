"""Terminal result records handed back to the pipeline's caller."""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from nelson.schemas.medical import (
    DifferentialDiagnosis,
    LiteratureReference,
    MedicalContext,
    QueryClassification,
    SafetyAssessment,
    TreatmentPlan,
)


class StageOutcome(str, Enum):
    SUCCESS = "success"
    DEGRADED = "degraded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class TraceEntry(BaseModel):
    """One stage attempt in the reasoning trace."""

    model_config = ConfigDict(frozen=True)

    stage: str
    label: str
    outcome: StageOutcome
    detail: str = ""

    def __str__(self) -> str:
        text = f"{self.label}: {self.outcome.value}"
        return f"{text} ({self.detail})" if self.detail else text


class DiagnosticResult(BaseModel):
    """Assembled output of a pipeline run that reached ``Assembled``."""

    model_config = ConfigDict(frozen=True)

    success: Literal[True] = True
    session_id: str
    query: str
    classification: QueryClassification
    confidence: float = Field(..., ge=0.0, le=1.0)
    context: MedicalContext
    diagnosis: DifferentialDiagnosis
    treatment: TreatmentPlan
    literature: tuple[LiteratureReference, ...]
    safety: SafetyAssessment
    trace: tuple[TraceEntry, ...]

    @property
    def reasoning(self) -> list[str]:
        return [str(entry) for entry in self.trace]

    def confidence_scores(self) -> dict[str, float]:
        """Per-stage confidence scores persisted with the workflow record."""
        top = self.diagnosis.alternatives[0].probability if self.diagnosis.alternatives else 0.0
        return {"classification": self.confidence, "diagnosis": top}


class FallbackResult(BaseModel):
    """Degraded, non-diagnostic response produced when the pipeline falls back.

    ``success`` is always ``False`` so that persistence and display code can
    never mistake it for clinical output.
    """

    model_config = ConfigDict(frozen=True)

    success: Literal[False] = False
    session_id: str
    query: str
    message: str
    trace: tuple[TraceEntry, ...]

    @property
    def reasoning(self) -> list[str]:
        return [str(entry) for entry in self.trace]
