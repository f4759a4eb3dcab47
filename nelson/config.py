"""Application configuration loaded from ``configs/app.yaml``.

Only environment-variable *names* live in the YAML file; the secrets
themselves are read from the environment when clients are built.
"""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

from nelson.errors import ConfigError

DEFAULT_CONFIG_PATH = "configs/app.yaml"


class LLMConfig(BaseModel):
    model: str = "mistral-large-latest"
    base_url: str = "https://api.mistral.ai"
    api_key_env: str = "MISTRAL_API_KEY"
    temperature: float = Field(0.2, ge=0.0, le=2.0)
    max_tokens: int = Field(2048, gt=0)
    top_p: float = Field(0.9, gt=0.0, le=1.0)
    max_retries: int = Field(1, ge=0)


class LiteratureConfig(BaseModel):
    url_env: str = "LITERATURE_SEARCH_URL"
    api_key_env: str = "LITERATURE_SEARCH_KEY"
    limit: int = Field(5, gt=0)
    threshold: float = Field(0.7, ge=0.0, le=1.0)
    timeout_s: float = Field(10.0, gt=0)


class StageTimeouts(BaseModel):
    classification: float = Field(30.0, gt=0)
    context: float = Field(30.0, gt=0)
    diagnosis: float = Field(30.0, gt=0)
    treatment: float = Field(30.0, gt=0)
    safety: float = Field(30.0, gt=0)


class PipelineSettings(BaseModel):
    deadline_s: float | None = Field(120.0, gt=0)


class APIConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False


class LoggingConfig(BaseModel):
    level: str = "INFO"


class AppConfig(BaseModel):
    llm: LLMConfig = Field(default_factory=LLMConfig)
    literature: LiteratureConfig = Field(default_factory=LiteratureConfig)
    stages: StageTimeouts = Field(default_factory=StageTimeouts)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    api: APIConfig = Field(default_factory=APIConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(config_path: str | Path = DEFAULT_CONFIG_PATH) -> AppConfig:
    """Reads and validates the YAML config file.

    Missing sections and keys fall back to defaults.

    Raises:
        ConfigError: if the file is missing, is not valid YAML, or holds
            values of the wrong type.
    """
    path = Path(config_path)
    try:
        with open(path) as fh:
            raw = yaml.safe_load(fh) or {}
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(f"Config file {path} must contain a mapping.")

    try:
        return AppConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration in {path}: {exc}") from exc
