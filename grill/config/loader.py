"""Load and save grill configuration records."""

from __future__ import annotations

import json
from pathlib import Path

from loguru import logger
from pydantic import ValidationError

from grill.config.schema import GrillConfig, TaskConfig
from grill.errors import ConfigError
from grill.utils.helpers import atomic_write_text

GRILL_DIRNAME = ".grill"
CONFIG_FILENAME = "config.json"
TASK_CONFIG_FILENAME = "task.json"

# Default inner-CLI invocation when neither the command line nor the task
# configuration names one.
CLI_ENV_VAR = "GRILL_CLI"


def get_grill_dir(project_dir: Path) -> Path:
    return project_dir / GRILL_DIRNAME


def get_config_path(project_dir: Path) -> Path:
    return get_grill_dir(project_dir) / CONFIG_FILENAME


def _read_json(path: Path) -> dict:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Failed to parse {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Failed to read {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a JSON object in {path}")
    return data


def load_config(path: Path) -> GrillConfig:
    """Load project config; a missing file yields defaults."""
    if not path.exists():
        return GrillConfig()
    data = _read_json(path)
    try:
        return GrillConfig(**data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config {path}: {exc}") from exc


def save_config(config: GrillConfig, path: Path) -> None:
    atomic_write_text(path, config.model_dump_json(indent=2) + "\n")
    logger.debug(f"[config] Saved {path}")


def load_task_config(path: Path) -> TaskConfig:
    """Load a task config; a missing file yields defaults."""
    if not path.exists():
        return TaskConfig()
    data = _read_json(path)
    try:
        return TaskConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid task config {path}: {exc}") from exc


def save_task_config(config: TaskConfig, path: Path) -> None:
    atomic_write_text(path, config.model_dump_json(indent=2) + "\n")
