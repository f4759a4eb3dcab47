"""Per-invocation pipeline state.

A :class:`PipelineRun` is created for every ``Orchestrator.run`` call and is
never shared between invocations.  It travels through the LangGraph graph
as the ``run`` key of :class:`PipelineState`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, TypedDict

from nelson.errors import Cancelled, StageError
from nelson.schemas.medical import (
    DifferentialDiagnosis,
    LiteratureReference,
    MedicalContext,
    MedicalQuery,
    QueryClassification,
    SafetyAssessment,
    TreatmentPlan,
)
from nelson.schemas.result import DiagnosticResult, FallbackResult, StageOutcome, TraceEntry

logger = logging.getLogger(__name__)


class PipelineStatus(str, Enum):
    IDLE = "Idle"
    CLASSIFYING = "Classifying"
    EXTRACTING_AND_SEARCHING = "ExtractingAndSearching"
    DIAGNOSING = "Diagnosing"
    TREATMENT_PLANNING = "TreatmentPlanning"
    VALIDATING_SAFETY = "ValidatingSafety"
    ASSEMBLED = "Assembled"
    FALLEN_BACK = "FallenBack"


class ReasoningTrace:
    """Append-only, ordered log of stage attempts."""

    def __init__(self) -> None:
        self._entries: list[TraceEntry] = []

    def append(self, entry: TraceEntry) -> None:
        self._entries.append(entry)

    @property
    def entries(self) -> tuple[TraceEntry, ...]:
        return tuple(self._entries)

    def as_strings(self) -> list[str]:
        return [str(entry) for entry in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[TraceEntry]:
        return iter(tuple(self._entries))


@dataclass
class PipelineRun:
    """Mutable working state of one pipeline invocation.

    ``in_flight`` maps stage name to trace label for every stage that has been
    launched but not yet recorded, in launch order.  If the run is cancelled,
    those stages are recorded as cancelled so no attempt is lost from the trace.
    """

    query: MedicalQuery
    trace: ReasoningTrace = field(default_factory=ReasoningTrace)
    status: PipelineStatus = PipelineStatus.IDLE
    classification: QueryClassification | None = None
    context: MedicalContext | None = None
    literature: list[LiteratureReference] | None = None
    diagnosis: DifferentialDiagnosis | None = None
    treatment: TreatmentPlan | None = None
    safety: SafetyAssessment | None = None
    failure: StageError | None = None
    in_flight: dict[str, str] = field(default_factory=dict)

    def transition(self, status: PipelineStatus) -> None:
        logger.debug("session=%s %s -> %s", self.query.session_id, self.status.value, status.value)
        self.status = status

    def begin(self, stage: str, label: str) -> None:
        self.in_flight[stage] = label

    def record(self, entry: TraceEntry) -> None:
        self.in_flight.pop(entry.stage, None)
        self.trace.append(entry)

    def record_failure(self, stage: str, label: str, error: StageError) -> None:
        self.failure = error
        self.record(TraceEntry(stage=stage, label=label, outcome=StageOutcome.FAILED, detail=f"{error.kind}: {error}"))

    def record_cancellation(self, reason: str) -> None:
        """Records every in-flight stage as cancelled.

        When cancellation lands between stages, a single pipeline-level entry
        notes it instead.
        """
        self.failure = Cancelled(reason)
        if not self.in_flight:
            self.trace.append(
                TraceEntry(stage="pipeline", label="Pipeline", outcome=StageOutcome.CANCELLED, detail=reason)
            )
            return
        for stage, label in list(self.in_flight.items()):
            self.record(TraceEntry(stage=stage, label=label, outcome=StageOutcome.CANCELLED, detail=reason))


class PipelineState(TypedDict):
    run: PipelineRun
    result: DiagnosticResult | FallbackResult | None
