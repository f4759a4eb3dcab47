"""Tests for the click command-line interface."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

import nelson.clients
from main import cli
from nelson.stages.prompts import TemplateId

_CONFIG = str(Path(__file__).resolve().parent.parent / "configs" / "app.yaml")


def _json_of(output: str) -> dict:
    # Log records may precede the pretty-printed payload
    return json.loads(output[output.index("{\n"):])


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def patch_clients(monkeypatch, scripted_llm, fake_index, llm_responses):
    def _patch(responses=None):
        llm = scripted_llm({**llm_responses, **(responses or {})})
        monkeypatch.setattr(nelson.clients, "create_llm", lambda config: llm)
        monkeypatch.setattr(nelson.clients, "create_literature_index", lambda config: fake_index())
        return llm

    return _patch


class TestAsk:
    def test_prints_diagnostic_json(self, runner: CliRunner, patch_clients) -> None:
        patch_clients()
        result = runner.invoke(cli, ["ask", "--query", "infant with fever", "--session-id", "cli-1", "--config", _CONFIG])

        assert result.exit_code == 0, result.output
        payload = _json_of(result.output)
        assert payload["success"] is True
        assert payload["session_id"] == "cli-1"
        assert payload["diagnosis"]["primaryDiagnosis"] == "Suspected serious bacterial infection"
        assert len(payload["reasoning"]) == 6

    def test_fallback_exit_status(self, runner: CliRunner, patch_clients) -> None:
        patch_clients({TemplateId.CLASSIFICATION: "unparseable"})
        result = runner.invoke(cli, ["ask", "--query", "infant with fever", "--config", _CONFIG])

        assert result.exit_code == 2
        assert _json_of(result.output)["success"] is False

    def test_missing_credentials(self, runner: CliRunner, monkeypatch) -> None:
        monkeypatch.delenv("MISTRAL_API_KEY", raising=False)
        result = runner.invoke(cli, ["ask", "--query", "fever", "--config", _CONFIG])
        assert result.exit_code == 1
        assert "MISTRAL_API_KEY" in result.output

    def test_bad_config_path(self, runner: CliRunner, tmp_path) -> None:
        result = runner.invoke(cli, ["ask", "--query", "fever", "--config", str(tmp_path / "nope.yaml")])
        assert result.exit_code == 1
        assert "Cannot read config file" in result.output
