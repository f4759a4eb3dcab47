"""Produces a safe, non-diagnostic answer when the pipeline falls back."""

from __future__ import annotations

from typing import Iterable

from nelson.schemas.medical import MedicalQuery
from nelson.schemas.result import FallbackResult, TraceEntry

# Static by construction: never carries diagnosis or treatment content.
FALLBACK_RESPONSE_TEMPLATE = """I'm currently unable to process your query due to a temporary issue.

Please try again in a moment. If the issue persists, please contact support.
If the child is unwell or you are worried, seek in-person medical care or
call your local emergency number.

Your query: "{query}\""""


class FallbackResponder:
    """Builds the fixed-shape degraded result carrying the accumulated trace."""

    def message_for(self, query_text: str) -> str:
        """Returns the apology message echoing *query_text* verbatim."""
        return FALLBACK_RESPONSE_TEMPLATE.format(query=query_text)

    def respond(self, query: MedicalQuery, trace: Iterable[TraceEntry]) -> FallbackResult:
        return FallbackResult(
            session_id=query.session_id,
            query=query.text,
            message=self.message_for(query.text),
            trace=tuple(trace),
        )
