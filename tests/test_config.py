# tests/test_config.py

from __future__ import annotations

from pathlib import Path

import pytest

from grill.config.loader import load_config, load_task_config, save_config, save_task_config
from grill.config.schema import GrillConfig, TaskConfig
from grill.errors import ConfigError
from grill.session.task_store import TaskStore


def test_missing_config_yields_defaults(tmp_path: Path) -> None:
    config = load_config(tmp_path / "config.json")

    assert config.default_cli == "q chat"
    assert config.resolve_alias("q") == "q chat"
    assert config.prompt_refresh == ""


def test_config_round_trip(tmp_path: Path) -> None:
    path = tmp_path / ".grill" / "config.json"
    save_config(GrillConfig(default_cli="claude", clis={"c": "claude --continue"}, grace_period_s=1.5), path)

    loaded = load_config(path)

    assert loaded.default_cli == "claude"
    assert loaded.resolve_alias("c") == "claude --continue"
    assert loaded.grace_period_s == 1.5
    assert not list(path.parent.glob("*.tmp"))


def test_environment_overrides_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "config.json"
    save_config(GrillConfig(default_cli="from-file"), path)
    monkeypatch.setenv("GRILL_DEFAULT_CLI", "from-env")

    assert load_config(path).default_cli == "from-env"


def test_unknown_keys_are_ignored(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text('{"default_cli": "x", "future_option": true}', encoding="utf-8")

    assert load_config(path).default_cli == "x"


@pytest.mark.parametrize("content", ["{not json", "[1, 2]", '{"grace_period_s": "soon"}'])
def test_bad_config_raises_config_error(tmp_path: Path, content: str) -> None:
    path = tmp_path / "config.json"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(path)


def test_task_config_round_trip(tmp_path: Path) -> None:
    path = tmp_path / "task.json"
    save_task_config(TaskConfig(cli="q", env={"A": "1"}, working_dir="sub", hooks={"on_enter": "make"}), path)

    loaded = load_task_config(path)

    assert loaded.cli == "q"
    assert loaded.env == {"A": "1"}
    assert loaded.working_dir == "sub"
    assert loaded.hooks == {"on_enter": "make"}


def test_initialize_writes_config_once(project_dir: Path) -> None:
    store = TaskStore(project_dir)

    created = store.initialize()
    again = store.initialize()

    assert store.exists()
    assert store.config_path in created
    assert again == []
