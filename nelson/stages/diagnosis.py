"""Differential diagnosis stage."""

from __future__ import annotations

from typing import Any, Mapping

from nelson.schemas.medical import DifferentialDiagnosis, LiteratureReference, MedicalContext
from nelson.schemas.parser import ShapeTag
from nelson.schemas.result import StageOutcome, TraceEntry
from nelson.stages.base import LLMStage, render_literature
from nelson.stages.prompts import TemplateId


class DiagnosisGenerator(LLMStage):
    """Produces a differential diagnosis grounded in the retrieved literature.

    Inputs: ``context`` (:class:`MedicalContext`) and ``literature`` (a list of
    :class:`LiteratureReference`, empty when retrieval degraded).
    """

    name = "diagnosis"
    label = "Generating differential diagnosis"
    template_id = TemplateId.DIAGNOSIS
    shape = ShapeTag.DIAGNOSIS

    async def run(self, inputs: Mapping[str, Any]) -> tuple[DifferentialDiagnosis, TraceEntry]:
        context: MedicalContext = inputs["context"]
        literature: list[LiteratureReference] = inputs["literature"]
        diagnosis = await self._complete(
            {
                "symptoms": ", ".join(context.symptoms) or "not specified",
                "age_group": context.age_group.value,
                "medical_context": context.model_dump_json(by_alias=True),
                "literature": render_literature(literature),
            }
        )
        detail = (
            f"primary={diagnosis.primary}, {len(diagnosis.alternatives)} alternative(s), "
            f"{len(diagnosis.red_flags)} red flag(s)"
        )
        return diagnosis, self.trace(StageOutcome.SUCCESS, detail)
