"""Error taxonomy shared by the clients, stages, and orchestrator.

Stage adapters only ever raise :class:`StageError` subclasses; the
orchestrator decides whether a given failure degrades in place or forces
the fallback path.
"""

from __future__ import annotations


class NelsonError(Exception):
    """Base class for every error raised by this package."""


class ConfigError(NelsonError):
    """Raised when ``configs/app.yaml`` cannot be read or validated."""


class MissingVariable(NelsonError, KeyError):
    """A template placeholder has no bound value."""

    def __init__(self, template_id: str, variable: str) -> None:
        super().__init__(f"Template '{template_id}' requires variable '{variable}'.")
        self.template_id = template_id
        self.variable = variable

    def __str__(self) -> str:
        return self.args[0]


class AssemblyError(NelsonError):
    """The result assembler was called with a structurally incomplete input set."""


class StageError(NelsonError):
    """Base class for recoverable stage failures."""

    kind = "stage_error"

    def __init__(self, message: str, stage: str | None = None) -> None:
        super().__init__(message)
        self.stage = stage


class UpstreamTimeout(StageError):
    """The external call did not complete within the stage timeout."""

    kind = "timeout"


class UpstreamUnavailable(StageError):
    """Non-timeout transport or service failure (5xx, quota, bad payload)."""

    kind = "unavailable"


class Cancelled(StageError):
    """The caller cancelled the pipeline while the stage was in flight."""

    kind = "cancelled"


class MalformedOutput(StageError):
    """LLM output could not be parsed into the expected shape."""

    kind = "malformed_output"

    # Keep enough of the raw text for operator triage without dumping it all
    SNIPPET_LENGTH = 200

    def __init__(self, shape: str, raw: str, reason: str, stage: str | None = None) -> None:
        self.shape = shape
        self.raw_snippet = (raw or "")[: self.SNIPPET_LENGTH]
        self.reason = reason
        super().__init__(f"Malformed {shape} output: {reason}", stage=stage)
