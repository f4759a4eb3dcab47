"""Pipeline orchestration: state machine, graph wiring, and result assembly."""

from nelson.orchestration.orchestrator import Orchestrator
from nelson.orchestration.state import PipelineRun, PipelineStatus, ReasoningTrace

__all__ = ["Orchestrator", "PipelineRun", "PipelineStatus", "ReasoningTrace"]
