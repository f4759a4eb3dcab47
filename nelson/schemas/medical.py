"""Pydantic models for the medical data exchanged between stages.

Field aliases follow the camelCase keys the LLM is asked to emit, so the
same models validate raw LLM JSON and serialise back to it with
``model_dump(by_alias=True)``.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class QueryCategory(str, Enum):
    SYMPTOM_ASSESSMENT = "SYMPTOM_ASSESSMENT"
    DIAGNOSIS_REQUEST = "DIAGNOSIS_REQUEST"
    TREATMENT_PLAN = "TREATMENT_PLAN"
    MEDICATION_QUERY = "MEDICATION_QUERY"
    GUIDELINE_REFERENCE = "GUIDELINE_REFERENCE"
    GENERAL_EDUCATION = "GENERAL_EDUCATION"


class Urgency(str, Enum):
    ROUTINE = "routine"
    URGENT = "urgent"
    EMERGENCY = "emergency"


class AgeGroup(str, Enum):
    NEWBORN = "newborn"
    INFANT = "infant"
    TODDLER = "toddler"
    PRESCHOOL = "preschool"
    SCHOOL_AGE = "school-age"
    ADOLESCENT = "adolescent"
    GENERAL = "general"


class Severity(str, Enum):
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"


def _unique(items: list[str]) -> list[str]:
    """De-duplicates *items* preserving first-seen order."""
    seen: set[str] = set()
    unique: list[str] = []
    for item in items:
        if item not in seen:
            seen.add(item)
            unique.append(item)
    return unique


class _Shape(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, str_strip_whitespace=True)


class MedicalQuery(BaseModel):
    """Immutable pipeline input.

    ``text`` is kept exactly as submitted, surrounding whitespace included,
    so the fallback response can echo it verbatim.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    text: str = Field(..., min_length=1)
    session_id: str = Field(..., min_length=1, alias="sessionId")

    @field_validator("text", "session_id")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must contain non-whitespace characters")
        return value


class QueryClassification(_Shape):
    category: QueryCategory
    confidence: float = Field(..., ge=0.0, le=1.0)
    urgency: Urgency
    specialty: str = Field(..., min_length=1)


class MedicalContext(_Shape):
    symptoms: list[str] = Field(..., description="Set semantics, first-seen order kept")
    age_group: AgeGroup = Field(..., alias="ageGroup")
    severity: Severity
    contraindications: list[str]
    relevant_history: list[str] = Field(..., alias="relevantHistory")

    @field_validator("symptoms", "contraindications")
    @classmethod
    def _dedupe(cls, value: list[str]) -> list[str]:
        return _unique(value)


class LiteratureReference(_Shape):
    title: str = Field(..., min_length=1)
    page: int = Field(..., ge=1)
    excerpt: str = ""
    relevance: float = Field(..., ge=0.0, le=1.0)

    def citation(self) -> str:
        """Renders the reference the way prompts cite it."""
        return f"- {self.title} (p.{self.page})"


class AlternativeDiagnosis(_Shape):
    diagnosis: str = Field(..., min_length=1)
    # Independent LLM-estimated likelihood; alternatives need not sum to 1
    probability: float = Field(..., ge=0.0, le=1.0)
    reasoning: str


class DifferentialDiagnosis(_Shape):
    primary: str = Field(..., min_length=1, alias="primaryDiagnosis")
    alternatives: list[AlternativeDiagnosis]
    red_flags: list[str] = Field(..., alias="redFlags")
    investigations: list[str]

    @field_validator("alternatives")
    @classmethod
    def _by_probability(cls, value: list[AlternativeDiagnosis]) -> list[AlternativeDiagnosis]:
        return sorted(value, key=lambda alt: alt.probability, reverse=True)

    @field_validator("red_flags", "investigations")
    @classmethod
    def _dedupe(cls, value: list[str]) -> list[str]:
        return _unique(value)


class TreatmentPlan(_Shape):
    first_line: str = Field(..., min_length=1, alias="firstLine")
    alternatives: list[str]
    dosing: dict[str, str]
    monitoring: list[str]
    escalation_criteria: list[str] = Field(..., alias="escalationCriteria")
    parental_education: list[str] = Field(..., alias="parentalEducation")


class SafetyAssessment(_Shape):
    is_safe: bool = Field(..., alias="isSafe")
    warnings: list[str]
    requires_escalation: bool = Field(..., alias="requiresEscalation")

    @classmethod
    def unavailable(cls) -> SafetyAssessment:
        """Conservative assessment used when the safety validator cannot run."""
        return cls(is_safe=False, warnings=["safety validation unavailable"], requires_escalation=True)
