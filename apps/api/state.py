"""Process-wide state shared by the API routers.

``orchestrator`` is built once in the app lifespan.  Conversations, workflow
records and query records are kept in memory and are lost on restart; each
worker process holds its own copy.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from nelson.orchestration import Orchestrator


@dataclass
class AppState:
    """Container for server-wide mutable state."""

    orchestrator: Orchestrator | None = None
    model: str = ""
    conversations: dict[str, list[dict]] = field(default_factory=dict)
    workflows: dict[str, list[dict]] = field(default_factory=dict)
    queries: list[dict] = field(default_factory=list)
    clients: list = field(default_factory=list)


# Singleton imported by the routers
app_state = AppState()
