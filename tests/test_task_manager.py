# tests/test_task_manager.py

from __future__ import annotations

from pathlib import Path

import pytest

from grill.config.schema import GrillConfig, TaskConfig
from grill.errors import (
    CannotDeleteActive,
    CannotDeleteDefault,
    InvalidTaskName,
    SpawnError,
    TaskAlreadyExists,
    TaskNotFound,
)
from grill.session.task_manager import DEFAULT_TASK, TaskManager, validate_task_name
from grill.session.task_store import TaskStore


def test_fresh_project_starts_on_default(tasks: TaskManager, store: TaskStore) -> None:
    assert tasks.show() == DEFAULT_TASK
    assert tasks.list() == [DEFAULT_TASK]
    assert store.read_active() == DEFAULT_TASK
    assert (store.task_dir(DEFAULT_TASK) / "instructions.md").is_file()
    assert (store.task_dir(DEFAULT_TASK) / "state.md").is_file()


def test_init_switches_and_survives_restart(tasks: TaskManager, store: TaskStore, config: GrillConfig) -> None:
    task = tasks.init("foo")

    assert task.name == "foo"
    assert task.created_at
    assert tasks.show() == "foo"

    reopened = TaskManager(TaskStore(store.project_dir), config)
    assert reopened.show() == "foo"
    assert reopened.list() == [DEFAULT_TASK, "foo"]


def test_switch_to_missing_task_keeps_active(tasks: TaskManager) -> None:
    tasks.init("foo")

    with pytest.raises(TaskNotFound, match="bar"):
        tasks.switch("bar")

    assert tasks.show() == "foo"


def test_switch_to_active_is_not_a_change(tasks: TaskManager) -> None:
    result = tasks.switch(DEFAULT_TASK)

    assert result.changed is False
    assert result.task.name == DEFAULT_TASK


def test_switch_persists_pointer(tasks: TaskManager, store: TaskStore) -> None:
    tasks.init("foo")
    tasks.init("bar")

    result = tasks.switch("foo")

    assert result.changed is True
    assert store.read_active() == "foo"


def test_init_twice_fails(tasks: TaskManager) -> None:
    tasks.init("foo")
    tasks.switch(DEFAULT_TASK)

    with pytest.raises(TaskAlreadyExists):
        tasks.init("foo")

    assert tasks.show() == DEFAULT_TASK
    assert tasks.list() == [DEFAULT_TASK, "foo"]


def test_delete_active_task_is_rejected(tasks: TaskManager) -> None:
    tasks.init("foo")

    with pytest.raises(CannotDeleteActive):
        tasks.delete("foo")

    assert "foo" in tasks.list()


def test_delete_default_task_is_rejected(tasks: TaskManager) -> None:
    tasks.init("foo")

    with pytest.raises(CannotDeleteDefault):
        tasks.delete(DEFAULT_TASK)


def test_delete_other_task(tasks: TaskManager, store: TaskStore) -> None:
    tasks.init("foo")
    tasks.switch(DEFAULT_TASK)

    tasks.delete("foo")

    assert tasks.list() == [DEFAULT_TASK]
    assert not store.task_dir("foo").exists()
    assert not any(p.name.startswith(".trash-") for p in store.tasks_dir.iterdir())


def test_delete_missing_task(tasks: TaskManager) -> None:
    with pytest.raises(TaskNotFound):
        tasks.delete("ghost")


@pytest.mark.parametrize(
    "name",
    ["", ".hidden", "-dash", "a/b", "has space", "list", "INIT", "x" * 65],
)
def test_invalid_names_are_rejected(tasks: TaskManager, name: str) -> None:
    with pytest.raises(InvalidTaskName):
        tasks.init(name)

    assert tasks.list() == [DEFAULT_TASK]


@pytest.mark.parametrize("name", ["foo", "Foo_2", "release-1.4", "_scratch", "x" * 64])
def test_valid_names(name: str) -> None:
    assert validate_task_name(name) == name


def test_list_is_sorted_and_skips_leftovers(tasks: TaskManager, store: TaskStore) -> None:
    for name in ("zeta", "alpha", "mid"):
        tasks.init(name)
    (store.tasks_dir / ".staging-half-0000").mkdir()
    (store.tasks_dir / "no-config").mkdir()

    assert tasks.list() == ["alpha", DEFAULT_TASK, "mid", "zeta"]


def test_initialize_purges_staging_and_trash(store: TaskStore) -> None:
    staging = store.tasks_dir / ".staging-foo-abcd"
    trash = store.tasks_dir / ".trash-bar-abcd"
    staging.mkdir()
    trash.mkdir()
    (staging / "instructions.md").write_text("partial", encoding="utf-8")

    store.initialize()

    assert not staging.exists()
    assert not trash.exists()


def test_missing_pointer_target_falls_back_to_default(store: TaskStore, config: GrillConfig) -> None:
    store.write_active("vanished")

    manager = TaskManager(store, config)

    assert manager.show() == DEFAULT_TASK
    assert store.read_active() == DEFAULT_TASK


def test_default_is_recreated_when_missing(project_dir: Path, config: GrillConfig) -> None:
    store = TaskStore(project_dir)
    store.initialize()

    TaskManager(store, config)

    assert store.has_task(DEFAULT_TASK)


def test_launch_spec_environment(tasks: TaskManager, store: TaskStore) -> None:
    tasks.init("foo")
    task = tasks.get("foo")
    task.config.env = {"API_MODE": "staging"}
    store.update_task(task)

    spec = tasks.launch_spec()

    assert spec.task == "foo"
    assert spec.command == "inner-cli"
    assert spec.args == ["--flag"]
    assert spec.env["GRILL_TASK"] == "foo"
    assert spec.env["GRILL_TASK_DIR"] == str(store.task_dir("foo"))
    assert spec.env["GRILL_PROJECT_DIR"] == str(store.project_dir)
    assert spec.env["API_MODE"] == "staging"
    assert "TERM" in spec.env
    assert spec.cwd == str(store.project_dir)


def test_cli_resolution_order(tasks: TaskManager, store: TaskStore, monkeypatch: pytest.MonkeyPatch) -> None:
    assert tasks.launch_spec().display == "inner-cli --flag"

    monkeypatch.setenv("GRILL_CLI", "env-cli")
    assert tasks.launch_spec().display == "env-cli"

    task = tasks.get(DEFAULT_TASK)
    task.config.cli = "task-cli --model fast"
    store.update_task(task)
    assert tasks.launch_spec().display == "task-cli --model fast"

    spec = tasks.launch_spec(override=["override", "--x"])
    assert spec.command == "override"
    assert spec.args == ["--x"]


def test_cli_alias_is_resolved(store: TaskStore) -> None:
    config = GrillConfig(default_cli="q", clis={"q": "q chat --trust-all-tools"})
    manager = TaskManager(store, config)

    spec = manager.launch_spec()

    assert spec.command == "q"
    assert spec.args == ["chat", "--trust-all-tools"]


def test_working_dir_is_relative_to_project(tasks: TaskManager, store: TaskStore) -> None:
    store.create_task("web", TaskConfig(working_dir="frontend"))

    spec = tasks.launch_spec("web")

    assert spec.cwd == str(store.project_dir / "frontend")


def test_empty_cli_is_a_spawn_error(store: TaskStore) -> None:
    manager = TaskManager(store, GrillConfig(default_cli="   "))

    with pytest.raises(SpawnError):
        manager.launch_spec()


def test_delete_without_name_is_invalid(tasks: TaskManager) -> None:
    with pytest.raises(InvalidTaskName):
        tasks.delete("")


@pytest.mark.parametrize("spelling", ["foo/", "./foo", "../tasks/foo", "foo/."])
def test_switch_rejects_other_spellings_of_a_task(tasks: TaskManager, spelling: str) -> None:
    tasks.init("foo")
    tasks.switch(DEFAULT_TASK)

    with pytest.raises(InvalidTaskName):
        tasks.switch(spelling)

    assert tasks.show() == DEFAULT_TASK
    tasks.delete("foo")
    assert tasks.list() == [DEFAULT_TASK]


def test_switch_rejects_absolute_path(tasks: TaskManager, tmp_path: Path) -> None:
    outside = tmp_path / "elsewhere"
    outside.mkdir()
    (outside / "task.json").write_text("{}", encoding="utf-8")

    with pytest.raises(InvalidTaskName):
        tasks.switch(str(outside))

    assert tasks.show() == DEFAULT_TASK
    assert tasks.store.has_task(tasks.show())


@pytest.mark.parametrize("name", ["foo/", "./foo", "..", "/etc", ""])
def test_store_refuses_names_outside_tasks_dir(store: TaskStore, name: str) -> None:
    store.create_task("foo")

    assert store.has_task(name) is False
    with pytest.raises(InvalidTaskName):
        store.task_dir(name)


def test_corrupt_pointer_outside_tasks_dir_falls_back_to_default(store: TaskStore, config: GrillConfig) -> None:
    store.create_task("foo")
    store.write_active("../tasks/foo")

    manager = TaskManager(store, config)

    assert manager.show() == DEFAULT_TASK
