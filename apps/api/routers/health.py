"""Health check endpoint."""

from __future__ import annotations

from fastapi import APIRouter

from apps.api.state import app_state

router = APIRouter()


@router.get("/", summary="System health and pipeline status")
def check_health() -> dict:
    """Returns service status and whether the pipeline can serve requests."""
    return {
        "status": "ok",
        "pipeline_ready": app_state.orchestrator is not None,
        "conversations": len(app_state.conversations),
        "workflows": sum(len(records) for records in app_state.workflows.values()),
    }
