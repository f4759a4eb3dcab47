"""Classifier stage: routes the query to a category, urgency, and specialty."""

from __future__ import annotations

from typing import Any, Mapping

from nelson.schemas.medical import QueryClassification
from nelson.schemas.parser import ShapeTag
from nelson.schemas.result import StageOutcome, TraceEntry
from nelson.stages.base import LLMStage
from nelson.stages.prompts import TemplateId


class Classifier(LLMStage):
    """Classifies a raw pediatric query.

    Inputs: ``query`` (raw query text).
    """

    name = "classification"
    label = "Classifying query"
    template_id = TemplateId.CLASSIFICATION
    shape = ShapeTag.CLASSIFICATION

    async def run(self, inputs: Mapping[str, Any]) -> tuple[QueryClassification, TraceEntry]:
        classification = await self._complete({"query": inputs["query"]})
        detail = (
            f"{classification.category.value}, confidence={classification.confidence:.2f}, "
            f"urgency={classification.urgency.value}"
        )
        return classification, self.trace(StageOutcome.SUCCESS, detail)
