"""Pydantic models for every data contract passed between pipeline stages."""

from nelson.schemas.medical import (
    AgeGroup,
    AlternativeDiagnosis,
    DifferentialDiagnosis,
    LiteratureReference,
    MedicalContext,
    MedicalQuery,
    QueryCategory,
    QueryClassification,
    SafetyAssessment,
    Severity,
    TreatmentPlan,
    Urgency,
)
from nelson.schemas.result import DiagnosticResult, FallbackResult, StageOutcome, TraceEntry

__all__ = [
    "AgeGroup",
    "AlternativeDiagnosis",
    "DiagnosticResult",
    "DifferentialDiagnosis",
    "FallbackResult",
    "LiteratureReference",
    "MedicalContext",
    "MedicalQuery",
    "QueryCategory",
    "QueryClassification",
    "SafetyAssessment",
    "Severity",
    "StageOutcome",
    "TraceEntry",
    "TreatmentPlan",
    "Urgency",
]
