"""Chat endpoints: run the pipeline and persist its artifacts.

Lifecycle
---------
POST /chat                         → run the pipeline for one message
GET  /chat/workflows/{session_id}  → diagnostic-workflow records for a session
GET  /chat/{conversation_id}/messages → conversation message log

Fallback results are persisted only as plain assistant messages, never as
diagnostic-workflow records.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field, field_validator

from apps.api.state import app_state
from nelson.schemas.medical import MedicalQuery
from nelson.schemas.result import DiagnosticResult

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1)
    session_id: str = Field(..., min_length=1)
    conversation_id: str | None = None

    @field_validator("message", "session_id")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must contain non-whitespace characters")
        return value


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("/", summary="Run the reasoning pipeline for one message")
async def chat(body: ChatRequest) -> dict:
    """Runs the pipeline and records the exchange.

    Returns ``success=false`` with the fallback message when the pipeline
    could not produce a validated diagnosis.
    """
    orchestrator = app_state.orchestrator
    if orchestrator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="The reasoning pipeline is not configured.",
        )

    conversation_id = body.conversation_id or body.session_id
    _append_message(conversation_id, "user", body.message)

    started = time.monotonic()
    result = await orchestrator.run(MedicalQuery(text=body.message, session_id=body.session_id))
    latency_ms = int((time.monotonic() - started) * 1000)

    if not result.success:
        _append_message(conversation_id, "assistant", result.message)
        return {
            "success": False,
            "message": result.message,
            "error": "Fallback response used",
            "reasoning": result.reasoning,
            "latency": latency_ms,
        }

    _persist_diagnostic(result, latency_ms)
    sources = [
        {"title": ref.title, "page": ref.page, "confidence": ref.relevance} for ref in result.literature
    ]
    _append_message(
        conversation_id,
        "assistant",
        f"Primary diagnosis: {result.diagnosis.primary}",
        sources=sources,
        confidence=result.confidence,
    )

    diagnosis = result.diagnosis.model_dump(mode="json", by_alias=True)
    return {
        "success": True,
        "classification": result.classification.model_dump(mode="json"),
        "diagnostic": {
            "primaryDiagnosis": diagnosis["primaryDiagnosis"],
            "differentialDiagnoses": diagnosis["alternatives"],
            "redFlags": diagnosis["redFlags"],
            "investigations": diagnosis["investigations"],
        },
        "treatment": result.treatment.model_dump(mode="json", by_alias=True),
        "safety": result.safety.model_dump(mode="json", by_alias=True),
        "sources": sources,
        "confidence": result.confidence,
        "reasoning": result.reasoning,
        "latency": latency_ms,
    }


@router.get("/workflows/{session_id}", summary="Diagnostic-workflow records for a session")
def get_workflows(session_id: str) -> dict:
    return {"session_id": session_id, "workflows": app_state.workflows.get(session_id, [])}


@router.get("/{conversation_id}/messages", summary="Retrieve a conversation's messages")
def get_messages(conversation_id: str) -> dict:
    messages = app_state.conversations.get(conversation_id)
    if messages is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Conversation '{conversation_id}' not found.",
        )
    return {"conversation_id": conversation_id, "messages": messages}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _append_message(conversation_id: str, role: str, content: str, **extra) -> None:
    app_state.conversations.setdefault(conversation_id, []).append(
        {"type": role, "content": content, "created_at": _now(), **extra}
    )


def _persist_diagnostic(result: DiagnosticResult, latency_ms: int) -> None:
    """Stores the workflow and query records for an assembled result."""
    app_state.workflows.setdefault(result.session_id, []).append(
        {
            "session_id": result.session_id,
            "workflow_type": "standard",
            "step_data": result.model_dump(mode="json"),
            "completed_steps": result.reasoning,
            "confidence_scores": result.confidence_scores(),
            "created_at": _now(),
        }
    )
    app_state.queries.append(
        {
            "session_id": result.session_id,
            "user_question": result.query,
            "confidence": result.confidence,
            "model": app_state.model,
            "latency_ms": latency_ms,
            "diagnostic_stage": result.classification.category.value,
            "reasoning_steps": result.reasoning,
            "created_at": _now(),
        }
    )
    logger.info("Persisted diagnostic workflow for session=%s", result.session_id)
