"""FastAPI app — Nelson pediatric reasoning pipeline."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from apps.api.routers import chat, health
from apps.api.state import app_state
from nelson.clients import create_literature_index, create_llm
from nelson.config import DEFAULT_CONFIG_PATH, load_config
from nelson.orchestration import Orchestrator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Builds the shared client handles and orchestrator once per process."""
    cfg = load_config(os.environ.get("NELSON_CONFIG", DEFAULT_CONFIG_PATH))
    logging.basicConfig(level=cfg.logging.level)

    llm = create_llm(cfg.llm)
    index = create_literature_index(cfg.literature)
    if llm is None:
        logger.warning("No LLM credentials; /chat will answer 503 until configured.")
    else:
        app_state.orchestrator = Orchestrator.from_config(cfg, llm, index)
        app_state.model = cfg.llm.model
    app_state.clients = [client for client in (llm, index) if client is not None]

    yield

    for client in app_state.clients:
        await client.aclose()
    app_state.clients = []
    app_state.orchestrator = None


app = FastAPI(
    title="Nelson Pediatric Reasoning Pipeline",
    description="Multi-stage pediatric diagnostic reasoning over an LLM and a literature index",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router, prefix="/health", tags=["health"])
app.include_router(chat.router, prefix="/chat", tags=["chat"])
