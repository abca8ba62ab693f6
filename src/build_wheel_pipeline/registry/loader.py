from __future__ import annotations

import os
from pathlib import Path

import jsonschema
from pydantic import TypeAdapter, ValidationError

from build_wheel_pipeline.core import ConfigError, read_json

from .models import PipelineConfig

CONFIG_ENV = "BUILD_WHEEL_CONFIG_PATH"
CONFIG_FILENAME = "pipeline.json"


def resolve_config_path(explicit: Path | None = None) -> Path | None:
    """
    Resolve the pipeline config file.

    Priority:
      1) explicit argument
      2) env BUILD_WHEEL_CONFIG_PATH
      3) ./config/pipeline.json
      4) None: built-in defaults
    """
    if explicit is not None:
        p = Path(explicit).expanduser().resolve()
        if p.is_file():
            return p
        raise ConfigError(f"--config does not point to a file: {p}")

    env = os.environ.get(CONFIG_ENV)
    if env:
        p = Path(env).expanduser().resolve()
        if p.is_file():
            return p
        raise ConfigError(f"{CONFIG_ENV} does not point to a file: {p}")

    cand = Path.cwd() / "config" / CONFIG_FILENAME
    if cand.is_file():
        return cand.resolve()

    return None


def schema_for_pipeline_config() -> dict:
    return TypeAdapter(PipelineConfig).json_schema()


def load_pipeline_config(path: Path) -> PipelineConfig:
    try:
        raw = read_json(path)
    except (OSError, ValueError) as e:
        raise ConfigError(f"{path}: unreadable pipeline config: {e}") from e
    try:
        jsonschema.validate(instance=raw, schema=schema_for_pipeline_config())
    except jsonschema.ValidationError as e:
        raise ConfigError(f"{path}: {e.message}") from e
    try:
        return PipelineConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"{path}: {e}") from e


def get_pipeline_config(explicit: Path | None = None) -> PipelineConfig:
    path = resolve_config_path(explicit)
    if path is None:
        return PipelineConfig()
    return load_pipeline_config(path)
