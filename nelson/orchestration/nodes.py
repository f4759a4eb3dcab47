"""Node functions for the pipeline graph.

Each node moves the run into its pipeline state, invokes one stage (two for
the concurrent extraction/search node) and appends exactly one trace entry
per stage attempted.  Trace writes happen only here, on the orchestrator's
task, so entries land in pipeline-causal order even when context extraction
and literature search race.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping

from nelson.errors import StageError
from nelson.orchestration.assembler import assemble
from nelson.orchestration.state import PipelineRun, PipelineState, PipelineStatus
from nelson.safety.fallback import FallbackResponder
from nelson.stages import PipelineStages
from nelson.stages.base import BaseStage

logger = logging.getLogger(__name__)


class PipelineNodes:
    """Graph nodes bound to one set of injected stages."""

    def __init__(self, stages: PipelineStages, responder: FallbackResponder) -> None:
        self.stages = stages
        self.responder = responder

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    async def classify(self, state: PipelineState) -> dict:
        run = state["run"]
        run.transition(PipelineStatus.CLASSIFYING)
        run.classification = await self._attempt(run, self.stages.classifier, {"query": run.query.text})
        return {"run": run}

    async def extract_and_search(self, state: PipelineState) -> dict:
        """Runs context extraction and literature search concurrently.

        Context extraction is the hard dependency; literature is joined
        best-effort (the retriever bounds itself with its own timeout and
        degrades to an empty list).  If extraction fails, the search is
        cancelled and recorded as such.
        """
        run = state["run"]
        run.transition(PipelineStatus.EXTRACTING_AND_SEARCHING)
        extractor = self.stages.context_extractor
        retriever = self.stages.literature_retriever

        run.begin(extractor.name, extractor.label)
        run.begin(retriever.name, retriever.label)
        context_task = asyncio.create_task(extractor.run({"query": run.query.text}))
        literature_task = asyncio.create_task(
            retriever.run(
                {
                    "query": run.query.text,
                    "context": run.context,
                    "classification": run.classification,
                }
            )
        )

        context_error: StageError | None = None
        try:
            try:
                context, context_entry = await context_task
            except StageError as exc:
                context_error = exc
                literature_task.cancel()
            (literature_outcome,) = await asyncio.gather(literature_task, return_exceptions=True)
        finally:
            if not literature_task.done():
                literature_task.cancel()
                await asyncio.gather(literature_task, return_exceptions=True)

        if context_error is not None:
            logger.error("Context extraction failed: %s", context_error)
            run.record_failure(extractor.name, extractor.label, context_error)
        else:
            run.context = context
            run.record(context_entry)

        if isinstance(literature_outcome, asyncio.CancelledError):
            run.record(retriever.trace_cancelled("context extraction failed"))
        elif isinstance(literature_outcome, BaseException):
            raise literature_outcome
        else:
            run.literature, literature_entry = literature_outcome
            run.record(literature_entry)
        return {"run": run}

    async def diagnose(self, state: PipelineState) -> dict:
        run = state["run"]
        run.transition(PipelineStatus.DIAGNOSING)
        run.diagnosis = await self._attempt(
            run,
            self.stages.diagnosis_generator,
            {"context": run.context, "literature": run.literature or []},
        )
        return {"run": run}

    async def plan_treatment(self, state: PipelineState) -> dict:
        run = state["run"]
        run.transition(PipelineStatus.TREATMENT_PLANNING)
        run.treatment = await self._attempt(
            run,
            self.stages.treatment_generator,
            {"diagnosis": run.diagnosis, "context": run.context, "literature": run.literature or []},
        )
        return {"run": run}

    async def validate_safety(self, state: PipelineState) -> dict:
        run = state["run"]
        run.transition(PipelineStatus.VALIDATING_SAFETY)
        run.safety = await self._attempt(
            run,
            self.stages.safety_validator,
            {"query": run.query.text, "diagnosis": run.diagnosis, "treatment": run.treatment},
        )
        return {"run": run}

    async def assemble(self, state: PipelineState) -> dict:
        run = state["run"]
        result = assemble(
            query=run.query,
            classification=run.classification,
            context=run.context,
            literature=run.literature,
            diagnosis=run.diagnosis,
            treatment=run.treatment,
            safety=run.safety,
            trace=run.trace,
        )
        run.transition(PipelineStatus.ASSEMBLED)
        return {"result": result}

    async def fall_back(self, state: PipelineState) -> dict:
        run = state["run"]
        run.transition(PipelineStatus.FALLEN_BACK)
        return {"result": self.responder.respond(run.query, run.trace)}

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _attempt(self, run: PipelineRun, stage: BaseStage, inputs: Mapping[str, Any]) -> Any:
        """Runs one stage and records its trace entry; returns ``None`` on failure."""
        run.begin(stage.name, stage.label)
        try:
            output, entry = await stage.run(inputs)
        except StageError as exc:
            logger.error("Stage %s failed (%s): %s", stage.name, exc.kind, exc)
            run.record_failure(stage.name, stage.label, exc)
            return None
        run.record(entry)
        return output
