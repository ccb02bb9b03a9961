"""In-session command grammar and dispatch.

Grammar (first token compared case-insensitively)::

    /help
    /quit
    /task                   show the active task
    /task list
    /task <name>            switch
    /task init <name>
    /task delete <name>

Any other ``/`` line is handed back untouched as Passthrough.
"""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from grill.errors import ConfigError, TaskError
from grill.session.task_manager import TaskManager

MESSAGE_PREFIX = "[grill]"


@dataclass(frozen=True)
class Help:
    pass


@dataclass(frozen=True)
class Quit:
    pass


@dataclass(frozen=True)
class TaskShow:
    pass


@dataclass(frozen=True)
class TaskList:
    pass


@dataclass(frozen=True)
class TaskSwitch:
    name: str


@dataclass(frozen=True)
class TaskInit:
    name: str


@dataclass(frozen=True)
class TaskDelete:
    name: str


@dataclass(frozen=True)
class Passthrough:
    raw_line: str


Command = Help | Quit | TaskShow | TaskList | TaskSwitch | TaskInit | TaskDelete | Passthrough


def parse_command(line: str) -> Command:
    """Parse one submitted line into a Command."""
    tokens = line.split()
    if not tokens or not tokens[0].startswith("/"):
        return Passthrough(line)

    name = tokens[0][1:].lower()
    if name == "help":
        return Help()
    if name == "quit":
        return Quit()
    if name != "task":
        return Passthrough(line)

    if len(tokens) == 1:
        return TaskShow()
    sub = tokens[1]
    arg = tokens[2] if len(tokens) > 2 else ""
    keyword = sub.lower()
    if keyword == "show":
        return TaskShow()
    if keyword == "list":
        return TaskList()
    if keyword == "init":
        return TaskInit(arg)
    if keyword == "delete":
        return TaskDelete(arg)
    return TaskSwitch(sub)


HELP_TEXT = """Grill Commands:
  /task                 Show the current task
  /task list            List all available tasks
  /task <name>          Switch to the specified task (restarts the CLI)
  /task init <name>     Create a new task and switch to it
  /task delete <name>   Delete a task
  /help                 Show this help message
  /quit                 Exit grill
Any other /command is sent to the inner CLI unchanged."""


@dataclass
class Outcome:
    """What the orchestrator must do after a command was dispatched."""

    message: str = ""
    error: bool = False
    restart: bool = False
    quit: bool = False
    passthrough: bytes | None = None


def format_message(text: str) -> bytes:
    """Render local output as whole lines for a raw-mode terminal."""
    lines = text.splitlines() or [""]
    body = "\r\n".join(f"{MESSAGE_PREFIX} {line}" if i == 0 else line for i, line in enumerate(lines))
    return f"\r\n{body}\r\n".encode("utf-8")


class CommandRouter:
    """Route parsed commands to built-ins or the TaskManager."""

    def __init__(self, tasks: TaskManager) -> None:
        self.tasks = tasks

    def route(self, line: str, terminator: bytes = b"\r") -> Outcome:
        return self.dispatch(parse_command(line), terminator)

    def dispatch(self, command: Command, terminator: bytes = b"\r") -> Outcome:
        if isinstance(command, Passthrough):
            raw = command.raw_line.encode("utf-8", "surrogateescape") + terminator
            return Outcome(passthrough=raw)

        logger.debug(f"[router] Dispatching {command!r}")
        try:
            return self._dispatch_local(command)
        except (TaskError, ConfigError) as exc:
            logger.warning(f"[router] {type(exc).__name__}: {exc}")
            return Outcome(message=f"error: {exc}", error=True)

    def _dispatch_local(self, command: Command) -> Outcome:
        if isinstance(command, Help):
            return Outcome(message=HELP_TEXT)
        if isinstance(command, Quit):
            return Outcome(message="Exiting grill...", quit=True)
        if isinstance(command, TaskShow):
            return Outcome(message=f"Current task: {self.tasks.show()}")
        if isinstance(command, TaskList):
            lines = ["Available tasks:"]
            for name in self.tasks.list():
                marker = "*" if name == self.tasks.active else " "
                lines.append(f"  {marker} {name}")
            return Outcome(message="\n".join(lines))
        if isinstance(command, TaskInit):
            task = self.tasks.init(command.name)
            return Outcome(message=f"Created task: {task.name}, switching", restart=True)
        if isinstance(command, TaskSwitch):
            result = self.tasks.switch(command.name)
            if not result.changed:
                return Outcome(message=f"Already on task: {result.task.name}")
            return Outcome(message=f"Switched to task: {result.task.name}", restart=True)
        if isinstance(command, TaskDelete):
            self.tasks.delete(command.name)
            return Outcome(message=f"Deleted task: {command.name}")
        raise TypeError(f"Unhandled command {command!r}")
