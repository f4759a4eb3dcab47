"""Context extractor stage: pulls symptoms, age group, and history out of the query."""

from __future__ import annotations

from typing import Any, Mapping

from nelson.schemas.medical import MedicalContext
from nelson.schemas.parser import ShapeTag
from nelson.schemas.result import StageOutcome, TraceEntry
from nelson.stages.base import LLMStage
from nelson.stages.prompts import TemplateId


class ContextExtractor(LLMStage):
    name = "context"
    label = "Extracting medical context"
    template_id = TemplateId.CONTEXT_EXTRACTION
    shape = ShapeTag.CONTEXT

    async def run(self, inputs: Mapping[str, Any]) -> tuple[MedicalContext, TraceEntry]:
        context = await self._complete({"query": inputs["query"]})
        detail = (
            f"age_group={context.age_group.value}, severity={context.severity.value}, "
            f"{len(context.symptoms)} symptom(s)"
        )
        return context, self.trace(StageOutcome.SUCCESS, detail)
