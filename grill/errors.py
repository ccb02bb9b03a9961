"""Error taxonomy for grill."""

from __future__ import annotations


class GrillError(Exception):
    """Base class for all grill errors."""


class ConfigError(GrillError):
    """A configuration record could not be read or validated."""


class SpawnError(GrillError):
    """The inner CLI could not be started (missing executable, no PTY)."""

    def __init__(self, command: str, cause: BaseException | None = None) -> None:
        self.command = command
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Failed to spawn '{command}'{detail}")


class TerminalModeError(GrillError):
    """The controlling terminal could not be switched into raw mode."""


class TaskError(GrillError):
    """Recoverable task-management failure, reported as one line."""

    def __init__(self, name: str, message: str) -> None:
        self.name = name
        super().__init__(message)


class TaskNotFound(TaskError):
    def __init__(self, name: str) -> None:
        super().__init__(name, f"Task '{name}' does not exist")


class TaskAlreadyExists(TaskError):
    def __init__(self, name: str) -> None:
        super().__init__(name, f"Task '{name}' already exists")


class InvalidTaskName(TaskError):
    def __init__(self, name: str, reason: str = "") -> None:
        shown = name or "<empty>"
        message = f"Invalid task name '{shown}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(name, message)


class CannotDeleteActive(TaskError):
    def __init__(self, name: str) -> None:
        super().__init__(name, f"Cannot delete the active task '{name}'")


class CannotDeleteDefault(TaskError):
    def __init__(self, name: str = "default") -> None:
        super().__init__(name, f"Task '{name}' is built in and cannot be deleted")
