# tests/conftest.py

from __future__ import annotations

from pathlib import Path

import pytest

from grill.config.schema import GrillConfig
from grill.session.orchestrator import Session
from grill.session.task_manager import TaskManager
from grill.session.task_store import TaskStore

from .fakes import FakeSpawner, FakeTerminal


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's GRILL_* settings out of the tests."""
    for var in ("GRILL_CLI", "GRILL_DEFAULT_CLI", "GRILL_GRACE_PERIOD_S", "GRILL_PROMPT_REFRESH", "GRILL_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture()
def project_dir(tmp_path: Path) -> Path:
    d = tmp_path / "project"
    d.mkdir()
    return d


@pytest.fixture()
def store(project_dir: Path) -> TaskStore:
    s = TaskStore(project_dir)
    s.initialize()
    return s


@pytest.fixture()
def config() -> GrillConfig:
    return GrillConfig(default_cli="inner-cli --flag", grace_period_s=0.1)


@pytest.fixture()
def tasks(store: TaskStore, config: GrillConfig) -> TaskManager:
    return TaskManager(store, config)


@pytest.fixture()
def spawner() -> FakeSpawner:
    return FakeSpawner()


@pytest.fixture()
def terminal() -> FakeTerminal:
    return FakeTerminal()


@pytest.fixture()
def session(tasks: TaskManager, terminal: FakeTerminal, spawner: FakeSpawner) -> Session:
    s = Session(tasks, terminal, spawn_fn=spawner)
    s.start_child()
    return s
