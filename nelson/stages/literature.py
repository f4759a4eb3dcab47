"""Literature retriever stage.

Literature is an enrichment, not a hard dependency: any upstream failure
degrades to an empty reference list instead of failing the stage.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from pydantic import ValidationError

from nelson.clients.literature import LiteratureIndex
from nelson.errors import StageError
from nelson.schemas.medical import LiteratureReference, MedicalContext, QueryClassification
from nelson.schemas.result import StageOutcome, TraceEntry
from nelson.stages.base import BaseStage

logger = logging.getLogger(__name__)


class LiteratureRetriever(BaseStage):
    """Retrieves ranked references for the query.

    Inputs: ``query``; optionally ``context`` (a :class:`MedicalContext`, when
    extraction has already finished) and ``classification`` (used as search
    hints otherwise).

    Attributes:
        limit: Maximum number of references returned.
        threshold: Minimum relevance for a reference to be kept.
    """

    name = "literature"
    label = "Searching medical literature"

    def __init__(
        self,
        index: LiteratureIndex | None,
        limit: int = 5,
        threshold: float = 0.7,
        timeout: float = 10.0,
    ) -> None:
        super().__init__(timeout)
        self.index = index
        self.limit = limit
        self.threshold = threshold

    async def run(self, inputs: Mapping[str, Any]) -> tuple[list[LiteratureReference], TraceEntry]:
        if self.index is None:
            return [], self.trace(StageOutcome.DEGRADED, "literature index not configured")

        search_context = _search_context(inputs.get("context"), inputs.get("classification"))
        try:
            raw_results = await self._within_timeout(
                self.index.search(inputs["query"], search_context, self.limit, self.threshold)
            )
            references = self._rank(raw_results)
        except StageError as exc:
            logger.warning("Literature search failed (%s): %s; continuing without references.", exc.kind, exc)
            return [], self.trace(StageOutcome.DEGRADED, f"literature unavailable ({exc.kind})")
        except Exception as exc:
            logger.warning(
                "Literature search raised %s: %s; continuing without references.",
                type(exc).__name__,
                exc,
                exc_info=True,
            )
            return [], self.trace(StageOutcome.DEGRADED, f"literature unavailable ({type(exc).__name__})")

        return references, self.trace(StageOutcome.SUCCESS, f"{len(references)} reference(s)")

    def _rank(self, raw_results: list[dict]) -> list[LiteratureReference]:
        """Validates, thresholds, sorts, and truncates raw index results."""
        references: list[LiteratureReference] = []
        for item in raw_results:
            reference = _to_reference(item)
            if reference is None:
                logger.warning("Skipping malformed literature result: %r", item)
                continue
            if reference.relevance >= self.threshold:
                references.append(reference)
        references.sort(key=lambda ref: ref.relevance, reverse=True)
        return references[: self.limit]


def _search_context(
    context: MedicalContext | None, classification: QueryClassification | None
) -> dict[str, Any]:
    if context is not None:
        return context.model_dump(mode="json", by_alias=True)
    if classification is not None:
        return {"specialty": classification.specialty, "urgency": classification.urgency.value}
    return {}


def _to_reference(item: Any) -> LiteratureReference | None:
    if not isinstance(item, dict):
        return None
    try:
        relevance = min(max(float(item.get("confidence", item.get("relevance", 0.0))), 0.0), 1.0)
        return LiteratureReference(
            title=item.get("title", ""),
            page=item.get("page", 0),
            excerpt=item.get("excerpt") or item.get("content") or "",
            relevance=relevance,
        )
    except (TypeError, ValueError, ValidationError):
        return None
