"""Safety validator stage.

Fail-safe, never fail-open: when validation cannot be performed the stage
returns :meth:`SafetyAssessment.unavailable`, which requires escalation.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from nelson.errors import StageError
from nelson.schemas.medical import DifferentialDiagnosis, SafetyAssessment, TreatmentPlan
from nelson.schemas.parser import ShapeTag
from nelson.schemas.result import StageOutcome, TraceEntry
from nelson.stages.base import LLMStage
from nelson.stages.prompts import TemplateId

logger = logging.getLogger(__name__)


class SafetyValidator(LLMStage):
    name = "safety"
    label = "Validating safety"
    template_id = TemplateId.SAFETY
    shape = ShapeTag.SAFETY

    async def run(self, inputs: Mapping[str, Any]) -> tuple[SafetyAssessment, TraceEntry]:
        diagnosis: DifferentialDiagnosis = inputs["diagnosis"]
        treatment: TreatmentPlan = inputs["treatment"]
        try:
            assessment = await self._complete(
                {
                    "query": inputs["query"],
                    "diagnosis": diagnosis.primary,
                    "treatment": treatment.model_dump_json(by_alias=True),
                }
            )
        except StageError as exc:
            logger.warning("Safety validation failed (%s): %s; escalating by default.", exc.kind, exc)
            return SafetyAssessment.unavailable(), self.trace(
                StageOutcome.DEGRADED, f"safety validation unavailable ({exc.kind}), escalation required"
            )

        detail = (
            f"is_safe={assessment.is_safe}, requires_escalation={assessment.requires_escalation}, "
            f"{len(assessment.warnings)} warning(s)"
        )
        return assessment, self.trace(StageOutcome.SUCCESS, detail)
