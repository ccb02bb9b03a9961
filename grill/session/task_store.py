"""Persistent task store - one directory per task under ``.grill/tasks``."""

from __future__ import annotations

import os
import secrets
import shutil
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from grill.config.loader import (
    TASK_CONFIG_FILENAME,
    get_config_path,
    get_grill_dir,
    load_config,
    load_task_config,
    save_config,
    save_task_config,
)
from grill.config.schema import GrillConfig, TaskConfig
from grill.errors import InvalidTaskName, TaskAlreadyExists, TaskNotFound
from grill.utils.helpers import atomic_write_text, ensure_dir, now_iso

_TASKS_DIR = "tasks"
_CURRENT_TASK_FILE = "current_task"
_STAGING_PREFIX = ".staging-"
_TRASH_PREFIX = ".trash-"

_INSTRUCTIONS_TEMPLATE = "# Task Instructions\n\nAdd your instructions here.\n"
_STATE_TEMPLATE = "# Task State\n\nTask state will be tracked here.\n"


@dataclass
class Task:
    """A named, isolated working context."""

    name: str
    path: Path
    config: TaskConfig

    @property
    def created_at(self) -> str:
        return self.config.created_at


class TaskStore:
    """Filesystem persistence for tasks and the active-task pointer.

    Directory layout::

        <project>/.grill/
            config.json
            current_task
            tasks/
                {name}/
                    task.json
                    instructions.md
                    state.md

    A task exists exactly when ``tasks/{name}/task.json`` exists. New tasks
    are assembled in a dot-prefixed staging directory and renamed into place,
    so a crash mid-create never leaves a half-built task visible.
    """

    def __init__(self, project_dir: Path) -> None:
        self.project_dir = Path(project_dir).resolve()
        self.grill_dir = get_grill_dir(self.project_dir)
        self.tasks_dir = self.grill_dir / _TASKS_DIR
        self.config_path = get_config_path(self.project_dir)
        self.current_task_path = self.grill_dir / _CURRENT_TASK_FILE

    # ------------------------------------------------------------------ #
    # Layout                                                               #
    # ------------------------------------------------------------------ #

    def exists(self) -> bool:
        return self.grill_dir.is_dir() and self.config_path.exists()

    def initialize(self) -> list[Path]:
        """Create any missing pieces of the layout; return what was created."""
        created: list[Path] = []
        if not self.tasks_dir.is_dir():
            ensure_dir(self.tasks_dir)
            created.append(self.tasks_dir)
        if not self.config_path.exists():
            save_config(GrillConfig(), self.config_path)
            created.append(self.config_path)
        self.purge_stale()
        return created

    def purge_stale(self) -> int:
        """Remove staging/trash leftovers from interrupted operations."""
        if not self.tasks_dir.is_dir():
            return 0
        purged = 0
        for entry in self.tasks_dir.iterdir():
            if entry.is_dir() and entry.name.startswith((_STAGING_PREFIX, _TRASH_PREFIX)):
                shutil.rmtree(entry, ignore_errors=True)
                purged += 1
        if purged:
            logger.info(f"[tasks] Purged {purged} stale staging/trash dir(s)")
        return purged

    def load_config(self) -> GrillConfig:
        return load_config(self.config_path)

    # ------------------------------------------------------------------ #
    # Tasks                                                                #
    # ------------------------------------------------------------------ #

    def task_dir(self, name: str) -> Path:
        """Directory of task ``name``; it must be a direct child of ``tasks/``."""
        if not name or name in (".", "..") or "/" in name:
            raise InvalidTaskName(name, "not a plain directory name")
        path = self.tasks_dir / name
        if path.resolve().parent != self.tasks_dir.resolve():
            raise InvalidTaskName(name, "resolves outside the tasks directory")
        return path

    def has_task(self, name: str) -> bool:
        try:
            return (self.task_dir(name) / TASK_CONFIG_FILENAME).is_file()
        except InvalidTaskName:
            return False

    def list_names(self) -> list[str]:
        """Return registered task names sorted by name."""
        if not self.tasks_dir.is_dir():
            return []
        names = [
            d.name
            for d in self.tasks_dir.iterdir()
            if d.is_dir() and not d.name.startswith(".") and (d / TASK_CONFIG_FILENAME).is_file()
        ]
        return sorted(names)

    def get_task(self, name: str) -> Task:
        if not self.has_task(name):
            raise TaskNotFound(name)
        d = self.task_dir(name)
        return Task(name=name, path=d, config=load_task_config(d / TASK_CONFIG_FILENAME))

    def create_task(self, name: str, config: TaskConfig | None = None) -> Task:
        """Build the task in a staging dir, then rename it into place."""
        target = self.task_dir(name)
        if target.exists():
            raise TaskAlreadyExists(name)

        config = config or TaskConfig()
        if not config.created_at:
            config.created_at = now_iso()

        ensure_dir(self.tasks_dir)
        staging = self.tasks_dir / f"{_STAGING_PREFIX}{name}-{secrets.token_hex(4)}"
        staging.mkdir()
        try:
            (staging / "instructions.md").write_text(_INSTRUCTIONS_TEMPLATE, encoding="utf-8")
            (staging / "state.md").write_text(_STATE_TEMPLATE, encoding="utf-8")
            save_task_config(config, staging / TASK_CONFIG_FILENAME)
            os.rename(staging, target)
        except BaseException:
            shutil.rmtree(staging, ignore_errors=True)
            raise
        logger.info(f"[tasks] Created task '{name}' at {target}")
        return Task(name=name, path=target, config=config)

    def update_task(self, task: Task) -> None:
        save_task_config(task.config, task.path / TASK_CONFIG_FILENAME)

    def delete_task(self, name: str) -> None:
        """Unregister the task atomically, then remove its files."""
        if not self.has_task(name):
            raise TaskNotFound(name)
        trash = self.tasks_dir / f"{_TRASH_PREFIX}{name}-{secrets.token_hex(4)}"
        os.rename(self.task_dir(name), trash)
        shutil.rmtree(trash, ignore_errors=True)
        logger.info(f"[tasks] Deleted task '{name}'")

    # ------------------------------------------------------------------ #
    # Active pointer                                                       #
    # ------------------------------------------------------------------ #

    def read_active(self) -> str | None:
        if not self.current_task_path.exists():
            return None
        value = self.current_task_path.read_text(encoding="utf-8").strip()
        return value or None

    def write_active(self, name: str) -> None:
        atomic_write_text(self.current_task_path, f"{name}\n")
