"""Task management: names, the active pointer and the launch overlay."""

from __future__ import annotations

import os
import re
import shlex
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from grill.config.loader import CLI_ENV_VAR
from grill.config.schema import GrillConfig
from grill.errors import (
    CannotDeleteActive,
    CannotDeleteDefault,
    InvalidTaskName,
    SpawnError,
    TaskNotFound,
)
from grill.session.task_store import Task, TaskStore

DEFAULT_TASK = "default"
RESERVED_NAMES = frozenset({"show", "list", "init", "delete"})
MAX_NAME_LENGTH = 64

_NAME_RE = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9._-]*$")


def validate_task_name(name: str) -> str:
    """Return ``name`` if it is a usable task name, else raise InvalidTaskName."""
    if not name:
        raise InvalidTaskName(name, "a name is required")
    if len(name) > MAX_NAME_LENGTH:
        raise InvalidTaskName(name, f"longer than {MAX_NAME_LENGTH} characters")
    if not _NAME_RE.match(name):
        raise InvalidTaskName(name, "use letters, digits, '.', '_' or '-'")
    if name.lower() in RESERVED_NAMES:
        raise InvalidTaskName(name, "reserved sub-command")
    return name


@dataclass(frozen=True)
class LaunchSpec:
    """Everything needed to (re)spawn the inner CLI for one task."""

    task: str
    command: str
    args: list[str]
    env: dict[str, str] = field(default_factory=dict)
    cwd: str = ""

    @property
    def display(self) -> str:
        return shlex.join([self.command, *self.args])


@dataclass(frozen=True)
class SwitchResult:
    task: Task
    changed: bool


class TaskManager:
    """Owns the task set and the single active task of a project."""

    def __init__(self, store: TaskStore, config: GrillConfig | None = None) -> None:
        self.store = store
        self.config = config or store.load_config()
        self._active = self._restore_active()

    def _restore_active(self) -> str:
        if not self.store.has_task(DEFAULT_TASK):
            self.store.create_task(DEFAULT_TASK)
        active = self.store.read_active()
        if active is None or not self.store.has_task(active):
            if active is not None:
                logger.warning(f"[tasks] Active task '{active}' is missing, falling back to '{DEFAULT_TASK}'")
            active = DEFAULT_TASK
            self.store.write_active(active)
        return active

    @property
    def active(self) -> str:
        return self._active

    def show(self) -> str:
        return self._active

    def list(self) -> list[str]:
        return self.store.list_names()

    def get(self, name: str) -> Task:
        return self.store.get_task(name)

    def init(self, name: str) -> Task:
        """Create a new task, then make it active."""
        validate_task_name(name)
        task = self.store.create_task(name)
        self.switch(name)
        return task

    def switch(self, name: str) -> SwitchResult:
        validate_task_name(name)
        if not self.store.has_task(name):
            raise TaskNotFound(name)
        task = self.store.get_task(name)
        if name == self._active:
            return SwitchResult(task=task, changed=False)
        self._active = name
        self.persist()
        logger.info(f"[tasks] Active task is now '{name}'")
        return SwitchResult(task=task, changed=True)

    def delete(self, name: str) -> None:
        validate_task_name(name)
        if not self.store.has_task(name):
            raise TaskNotFound(name)
        if name == DEFAULT_TASK:
            raise CannotDeleteDefault(name)
        if name == self._active:
            raise CannotDeleteActive(name)
        self.store.delete_task(name)

    def persist(self) -> None:
        self.store.write_active(self._active)

    # ------------------------------------------------------------------ #
    # Launch overlay                                                       #
    # ------------------------------------------------------------------ #

    def resolve_cli(self, task: Task, override: list[str] | None = None) -> list[str]:
        """Resolve the inner CLI argv for ``task``.

        Order: explicit override, task ``cli``, ``$GRILL_CLI``, ``default_cli``.
        """
        if override:
            return list(override)
        raw = (task.config.cli or "").strip()
        if not raw:
            raw = os.getenv(CLI_ENV_VAR, "").strip()
        if not raw:
            raw = self.config.default_cli
        argv = shlex.split(self.config.resolve_alias(raw))
        if not argv:
            raise SpawnError(raw or "<empty>", ValueError("empty inner CLI command"))
        return argv

    def launch_spec(self, name: str | None = None, override: list[str] | None = None) -> LaunchSpec:
        task = self.store.get_task(name or self._active)
        argv = self.resolve_cli(task, override)

        env = dict(os.environ)
        env.setdefault("TERM", "xterm-256color")
        env["GRILL_TASK"] = task.name
        env["GRILL_TASK_DIR"] = str(task.path)
        env["GRILL_PROJECT_DIR"] = str(self.store.project_dir)
        env.update(task.config.env)

        cwd = self.store.project_dir
        if task.config.working_dir:
            candidate = Path(task.config.working_dir).expanduser()
            cwd = candidate if candidate.is_absolute() else (self.store.project_dir / candidate)

        return LaunchSpec(
            task=task.name,
            command=argv[0],
            args=argv[1:],
            env=env,
            cwd=str(cwd),
        )
