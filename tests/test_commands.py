# tests/test_commands.py

from __future__ import annotations

import pytest

from grill.session.commands import (
    HELP_TEXT,
    CommandRouter,
    Help,
    Passthrough,
    Quit,
    TaskDelete,
    TaskInit,
    TaskList,
    TaskShow,
    TaskSwitch,
    format_message,
    parse_command,
)
from grill.session.task_manager import TaskManager


@pytest.mark.parametrize(
    "line, expected",
    [
        ("/help", Help()),
        ("/HELP", Help()),
        ("/quit", Quit()),
        ("/task", TaskShow()),
        ("/task   ", TaskShow()),
        ("/task show", TaskShow()),
        ("/task list", TaskList()),
        ("/task LIST", TaskList()),
        ("/task foo", TaskSwitch("foo")),
        ("/task Foo", TaskSwitch("Foo")),
        ("/task init foo", TaskInit("foo")),
        ("/task Init foo", TaskInit("foo")),
        ("/task init", TaskInit("")),
        ("/task delete foo", TaskDelete("foo")),
        ("/unknowncmd arg", Passthrough("/unknowncmd arg")),
        ("/tasks", Passthrough("/tasks")),
        ("/", Passthrough("/")),
    ],
)
def test_parse_command(line: str, expected) -> None:
    assert parse_command(line) == expected


@pytest.fixture()
def router(tasks: TaskManager) -> CommandRouter:
    return CommandRouter(tasks)


def test_init_then_show_reports_new_task(router: CommandRouter) -> None:
    created = router.route("/task init foo")
    shown = router.route("/task")

    assert created.restart is True
    assert not created.error
    assert "foo" in created.message
    assert shown.message == "Current task: foo"
    assert shown.restart is False


def test_passthrough_keeps_bytes_and_terminator(router: CommandRouter) -> None:
    outcome = router.route("/unknowncmd arg", b"\n")

    assert outcome.passthrough == b"/unknowncmd arg\n"
    assert outcome.message == ""


def test_switch_to_missing_task_reports_error(router: CommandRouter, tasks: TaskManager) -> None:
    outcome = router.route("/task bar")

    assert outcome.error is True
    assert outcome.restart is False
    assert "bar" in outcome.message
    assert outcome.message.startswith("error:")
    assert tasks.show() == "default"


def test_init_twice_reports_already_exists(router: CommandRouter) -> None:
    router.route("/task init foo")

    outcome = router.route("/task init foo")

    assert outcome.error is True
    assert "already exists" in outcome.message


def test_init_without_name_is_an_error(router: CommandRouter) -> None:
    outcome = router.route("/task init")

    assert outcome.error is True
    assert outcome.restart is False


def test_switch_to_active_task_does_not_restart(router: CommandRouter) -> None:
    outcome = router.route("/task default")

    assert outcome.restart is False
    assert outcome.message == "Already on task: default"


def test_switch_restarts(router: CommandRouter, tasks: TaskManager) -> None:
    router.route("/task init foo")

    outcome = router.route("/task default")

    assert outcome.restart is True
    assert tasks.show() == "default"


def test_list_marks_active(router: CommandRouter) -> None:
    router.route("/task init foo")

    outcome = router.route("/task list")

    assert outcome.message.splitlines() == ["Available tasks:", "    default", "  * foo"]


def test_delete_active_is_reported(router: CommandRouter) -> None:
    router.route("/task init foo")

    outcome = router.route("/task delete foo")

    assert outcome.error is True
    assert "active" in outcome.message


def test_delete_inactive(router: CommandRouter, tasks: TaskManager) -> None:
    router.route("/task init foo")
    router.route("/task default")

    outcome = router.route("/task delete foo")

    assert outcome.message == "Deleted task: foo"
    assert tasks.list() == ["default"]


def test_help_and_quit(router: CommandRouter) -> None:
    assert router.route("/help").message == HELP_TEXT
    quit_outcome = router.route("/quit")
    assert quit_outcome.quit is True
    assert quit_outcome.restart is False


def test_format_message_is_whole_lines() -> None:
    rendered = format_message("Available tasks:\n  * foo")

    assert rendered == b"\r\n[grill] Available tasks:\r\n  * foo\r\n"


def test_switch_by_path_spelling_is_refused_and_task_stays_protected(router: CommandRouter, tasks: TaskManager) -> None:
    router.route("/task init foo")

    outcome = router.route("/task foo/")

    assert outcome.error is True
    assert outcome.restart is False
    assert tasks.show() == "foo"
    assert router.route("/task delete foo").error is True
    assert tasks.list() == ["default", "foo"]
