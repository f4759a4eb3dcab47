"""Entry point CLI for the Nelson pediatric reasoning pipeline.

Usage examples::

    python main.py ask --query "3-month-old infant with fever 39.5°C and poor feeding"
    python main.py serve
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
import uuid

import click

from nelson.config import DEFAULT_CONFIG_PATH, load_config
from nelson.errors import ConfigError


def _load(config_path: str):
    try:
        cfg = load_config(config_path)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    logging.basicConfig(level=cfg.logging.level, stream=sys.stderr)
    return cfg


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
def cli() -> None:
    """Nelson — multi-stage pediatric diagnostic reasoning pipeline."""


# ---------------------------------------------------------------------------
# ask
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--query", required=True, help="Pediatric question to run through the pipeline.")
@click.option("--session-id", default=None, help="Session identifier (generated if omitted).")
@click.option("--config", default=DEFAULT_CONFIG_PATH, show_default=True, help="Config file.")
def ask(query: str, session_id: str | None, config: str) -> None:
    """Runs one query through the pipeline and prints the result as JSON.

    Exits with status 2 when the pipeline fell back to the degraded response.
    """
    cfg = _load(config)

    from nelson.clients import create_literature_index, create_llm
    from nelson.orchestration import Orchestrator
    from nelson.schemas.medical import MedicalQuery

    llm = create_llm(cfg.llm)
    if llm is None:
        raise click.ClickException(f"Set {cfg.llm.api_key_env} to call the LLM service.")
    index = create_literature_index(cfg.literature)
    orchestrator = Orchestrator.from_config(cfg, llm, index)
    session_id = session_id or f"cli_{uuid.uuid4().hex[:8]}"

    async def _run():
        try:
            return await orchestrator.run(MedicalQuery(text=query, session_id=session_id))
        finally:
            await llm.aclose()
            if index is not None:
                await index.aclose()

    result = asyncio.run(_run())
    payload = result.model_dump(mode="json", by_alias=True)
    payload["reasoning"] = result.reasoning
    click.echo(json.dumps(payload, indent=2, ensure_ascii=False))
    if not result.success:
        sys.exit(2)


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--config", default=DEFAULT_CONFIG_PATH, show_default=True, help="Config file.")
@click.option("--host", default=None, help="API host (overrides config).")
@click.option("--port", default=None, type=int, help="API port (overrides config).")
def serve(config: str, host: str | None, port: int | None) -> None:
    """Launches the FastAPI REST API."""
    import os

    import uvicorn

    cfg = _load(config)
    api_host = host or cfg.api.host
    api_port = port or cfg.api.port
    os.environ["NELSON_CONFIG"] = config

    click.echo(f"Starting API on http://{api_host}:{api_port}")
    uvicorn.run("apps.api.main:app", host=api_host, port=api_port, reload=cfg.api.reload)


if __name__ == "__main__":
    cli()
