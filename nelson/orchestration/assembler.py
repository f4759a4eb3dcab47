"""Result assembler: merges stage outputs and the trace into a DiagnosticResult."""

from __future__ import annotations

from typing import Iterable

from nelson.errors import AssemblyError
from nelson.schemas.medical import (
    DifferentialDiagnosis,
    LiteratureReference,
    MedicalContext,
    MedicalQuery,
    QueryClassification,
    SafetyAssessment,
    TreatmentPlan,
)
from nelson.schemas.result import DiagnosticResult, TraceEntry

# classification, context, literature, diagnosis, treatment, safety
ASSEMBLED_TRACE_LENGTH = 6


def assemble(
    *,
    query: MedicalQuery | None,
    classification: QueryClassification | None,
    context: MedicalContext | None,
    literature: list[LiteratureReference] | None,
    diagnosis: DifferentialDiagnosis | None,
    treatment: TreatmentPlan | None,
    safety: SafetyAssessment | None,
    trace: Iterable[TraceEntry],
) -> DiagnosticResult:
    """Builds the immutable terminal result.

    Raises:
        AssemblyError: if any input is missing or the trace does not hold one
            entry per stage.  Either indicates a programming error upstream.
    """
    inputs = {
        "query": query,
        "classification": classification,
        "context": context,
        "literature": literature,
        "diagnosis": diagnosis,
        "treatment": treatment,
        "safety": safety,
    }
    missing = [name for name, value in inputs.items() if value is None]
    if missing:
        raise AssemblyError(f"Cannot assemble result; missing: {', '.join(missing)}")

    entries = tuple(trace)
    if len(entries) != ASSEMBLED_TRACE_LENGTH:
        raise AssemblyError(
            f"Expected {ASSEMBLED_TRACE_LENGTH} trace entries for an assembled result, got {len(entries)}"
        )

    return DiagnosticResult(
        session_id=query.session_id,
        query=query.text,
        classification=classification,
        confidence=classification.confidence,
        context=context,
        diagnosis=diagnosis,
        treatment=treatment,
        literature=tuple(literature),
        safety=safety,
        trace=entries,
    )
