"""Treatment plan stage."""

from __future__ import annotations

from typing import Any, Mapping

from nelson.schemas.medical import DifferentialDiagnosis, MedicalContext, TreatmentPlan
from nelson.schemas.parser import ShapeTag
from nelson.schemas.result import StageOutcome, TraceEntry
from nelson.stages.base import LLMStage, render_literature
from nelson.stages.prompts import TemplateId


class TreatmentGenerator(LLMStage):
    name = "treatment"
    label = "Generating treatment plan"
    template_id = TemplateId.TREATMENT
    shape = ShapeTag.TREATMENT

    async def run(self, inputs: Mapping[str, Any]) -> tuple[TreatmentPlan, TraceEntry]:
        diagnosis: DifferentialDiagnosis = inputs["diagnosis"]
        context: MedicalContext = inputs["context"]
        plan = await self._complete(
            {
                "diagnosis": diagnosis.primary,
                "age_group": context.age_group.value,
                "medical_context": context.model_dump_json(by_alias=True),
                "literature": render_literature(inputs["literature"]),
            }
        )
        detail = f"{len(plan.dosing)} dosed drug(s), {len(plan.escalation_criteria)} escalation criterion(s)"
        return plan, self.trace(StageOutcome.SUCCESS, detail)
