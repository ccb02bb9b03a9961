"""Configuration module for grill."""

from grill.config.loader import (
    CLI_ENV_VAR,
    get_config_path,
    load_config,
    load_task_config,
    save_config,
    save_task_config,
)
from grill.config.schema import GrillConfig, TaskConfig

__all__ = [
    "CLI_ENV_VAR",
    "GrillConfig",
    "TaskConfig",
    "get_config_path",
    "load_config",
    "load_task_config",
    "save_config",
    "save_task_config",
]
