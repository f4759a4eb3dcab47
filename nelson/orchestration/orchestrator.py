"""Pipeline orchestrator: the public entry point of the reasoning pipeline."""

from __future__ import annotations

import asyncio
import logging
import time

from nelson.clients.literature import LiteratureIndex
from nelson.clients.llm import LLMClient
from nelson.config import AppConfig
from nelson.orchestration.graph import build_graph
from nelson.orchestration.nodes import PipelineNodes
from nelson.orchestration.state import PipelineRun, PipelineStatus
from nelson.safety.fallback import FallbackResponder
from nelson.schemas.medical import MedicalQuery
from nelson.schemas.result import DiagnosticResult, FallbackResult
from nelson.stages import PipelineStages, create_stages

logger = logging.getLogger(__name__)


class Orchestrator:
    """Sequences the stage adapters for one query at a time.

    The orchestrator owns no mutable state across invocations; every call to
    :meth:`run` builds a fresh :class:`PipelineRun`.  Client handles live in
    the injected stages and are shared safely between concurrent runs.

    Attributes:
        stages: The six injected stage adapters.
        responder: Builds the degraded result on the fallback path.
        deadline_s: Default overall deadline in seconds, or ``None`` for none.
    """

    def __init__(
        self,
        stages: PipelineStages,
        responder: FallbackResponder | None = None,
        deadline_s: float | None = None,
    ) -> None:
        self.stages = stages
        self.responder = responder or FallbackResponder()
        self.deadline_s = deadline_s
        self._graph = build_graph(PipelineNodes(stages, self.responder))

    @classmethod
    def from_config(
        cls, config: AppConfig, llm: LLMClient, index: LiteratureIndex | None
    ) -> Orchestrator:
        return cls(create_stages(config, llm, index), deadline_s=config.pipeline.deadline_s)

    async def run(
        self,
        query: MedicalQuery,
        *,
        deadline: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> DiagnosticResult | FallbackResult:
        """Runs the full pipeline for *query*.

        Args:
            query:        The immutable pipeline input.
            deadline:     Overall deadline in seconds; defaults to ``deadline_s``.
            cancel_event: Setting this event cancels the run.

        Returns:
            A :class:`DiagnosticResult` (``success=True``) when the pipeline
            reached ``Assembled``, otherwise a :class:`FallbackResult`
            (``success=False``).  Cancellation and an expired deadline cancel
            every in-flight external call and also yield a ``FallbackResult``
            whose trace notes the cancellation.
        """
        run = PipelineRun(query=query)
        deadline = self.deadline_s if deadline is None else deadline
        started = time.monotonic()
        logger.info("Pipeline started: session=%s", query.session_id)

        graph_task = asyncio.create_task(self._graph.ainvoke({"run": run, "result": None}))
        waiters: set[asyncio.Future] = {graph_task}
        cancel_waiter = None
        if cancel_event is not None:
            cancel_waiter = asyncio.ensure_future(cancel_event.wait())
            waiters.add(cancel_waiter)

        try:
            done, _ = await asyncio.wait(waiters, timeout=deadline, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            graph_task.cancel()
            raise
        finally:
            if cancel_waiter is not None:
                cancel_waiter.cancel()

        if graph_task in done:
            result = graph_task.result()["result"]
        else:
            if cancel_event is not None and cancel_event.is_set():
                reason = "cancelled by caller"
            else:
                reason = f"deadline of {deadline:g}s exceeded"
            graph_task.cancel()
            (outcome,) = await asyncio.gather(graph_task, return_exceptions=True)
            if isinstance(outcome, dict) and outcome.get("result") is not None:
                result = outcome["result"]
            else:
                result = self._cancelled(run, reason)

        logger.info(
            "Pipeline finished: session=%s state=%s stages=%d elapsed=%.2fs",
            query.session_id,
            run.status.value,
            len(run.trace),
            time.monotonic() - started,
        )
        return result

    def orchestrate(self, text: str, session_id: str) -> DiagnosticResult | FallbackResult:
        """Synchronous entry point for callers without an event loop."""
        return asyncio.run(self.run(MedicalQuery(text=text, session_id=session_id)))

    def _cancelled(self, run: PipelineRun, reason: str) -> FallbackResult:
        logger.warning("Pipeline %s in state %s: %s", run.query.session_id, run.status.value, reason)
        run.record_cancellation(reason)
        run.transition(PipelineStatus.FALLEN_BACK)
        return self.responder.respond(run.query, run.trace)
