"""Base stage templates shared by the six pipeline stage adapters.

Every stage exposes ``run(inputs) -> (output, TraceEntry)`` and raises only
:class:`~nelson.errors.StageError` subclasses.  Stages never write to the
reasoning trace themselves; they hand back the entry and the orchestrator
appends it.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Mapping

from pydantic import BaseModel

from nelson.clients.llm import LLMClient, LLMRequestConfig
from nelson.errors import StageError, UpstreamTimeout, UpstreamUnavailable
from nelson.schemas.medical import LiteratureReference
from nelson.schemas.parser import ShapeTag, parse
from nelson.schemas.result import StageOutcome, TraceEntry
from nelson.stages.prompts import TemplateId, bind

logger = logging.getLogger(__name__)

NO_LITERATURE = "No literature references retrieved."


def render_literature(references: list[LiteratureReference]) -> str:
    """Renders references as ``- {title} (p.{page})`` lines for prompts."""
    if not references:
        return NO_LITERATURE
    return "\n".join(ref.citation() for ref in references)


class BaseStage(ABC):
    """Common interface for all stages.

    Attributes:
        name: Stable identifier used in errors and trace entries.
        label: Human-readable description shown in the reasoning trace.
        timeout: Seconds the stage may spend on its external call.
    """

    name: str = "stage"
    label: str = "Running stage"

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout

    @abstractmethod
    async def run(self, inputs: Mapping[str, Any]) -> tuple[Any, TraceEntry]:
        """Executes the stage.

        Args:
            inputs: Stage-specific named inputs.

        Returns:
            The stage output and the trace entry describing the attempt.

        Raises:
            StageError: when the stage fails and does not degrade locally.
        """

    def trace(self, outcome: StageOutcome, detail: str = "") -> TraceEntry:
        return TraceEntry(stage=self.name, label=self.label, outcome=outcome, detail=detail)

    def trace_cancelled(self, reason: str) -> TraceEntry:
        return self.trace(StageOutcome.CANCELLED, reason)

    async def _within_timeout(self, awaitable: Awaitable[Any]) -> Any:
        """Awaits *awaitable*, converting an expired stage timeout to ``UpstreamTimeout``."""
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise UpstreamTimeout(
                f"{self.name} stage exceeded its {self.timeout:g}s timeout", stage=self.name
            ) from exc


class LLMStage(BaseStage):
    """Stage that binds a prompt, calls the LLM, and parses a structured shape.

    ``UpstreamUnavailable`` failures are retried up to ``max_retries`` times;
    timeouts and malformed output are not.
    """

    template_id: TemplateId
    shape: ShapeTag

    def __init__(
        self,
        llm: LLMClient,
        request: LLMRequestConfig | None = None,
        timeout: float = 30.0,
        max_retries: int = 1,
    ) -> None:
        super().__init__(timeout)
        self.llm = llm
        self.request = request or LLMRequestConfig(timeout_ms=int(timeout * 1000))
        self.max_retries = max_retries

    async def _complete(self, variables: Mapping[str, Any]) -> BaseModel:
        """Runs bind -> generate -> parse for this stage's template and shape."""
        prompt = bind(self.template_id, variables)
        try:
            raw = await self._within_timeout(self._generate(prompt))
            return parse(raw, self.shape, stage=self.name)
        except StageError as exc:
            if exc.stage is None:
                exc.stage = self.name
            raise

    async def _generate(self, prompt: str) -> str:
        attempt = 0
        while True:
            try:
                return await self.llm.generate(prompt, self.request)
            except UpstreamUnavailable as exc:
                attempt += 1
                if attempt > self.max_retries:
                    logger.error(
                        "%s: LLM call failed after %d attempt(s): %s", self.name, attempt, exc
                    )
                    raise
                logger.warning(
                    "%s: LLM call failed (attempt %d/%d): %s, retrying.",
                    self.name,
                    attempt,
                    self.max_retries + 1,
                    exc,
                )
