"""Per-keystroke classification of terminal input.

Ordinary input is forwarded to the inner CLI the moment it is typed, so the
child's own line editor (history, completion, backspace) works unchanged.
Only a line whose first key is ``/`` is held back and buffered locally until
Enter, at which point it is submitted to the command router.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from grill.terminal.driver import KeyEvent

COMMAND_PREFIX = b"/"
# The cursor is saved where the leading "/" is echoed; restoring it and
# clearing to end of line wipes the local echo whatever its display width
# (tabs, wide characters).
SAVE_CURSOR = b"\x1b7"
ERASE_ECHO = b"\x1b8\x1b[K"


class ClassifierState(Enum):
    LINE_START = "line_start"
    COMPOSING_PASSTHROUGH = "composing_passthrough"
    COMPOSING_COMMAND = "composing_command"


@dataclass(frozen=True)
class Forward:
    """Bytes to write to the child unchanged."""

    data: bytes


@dataclass(frozen=True)
class Echo:
    """Bytes to show on the real terminal (local echo of a command line)."""

    data: bytes


@dataclass(frozen=True)
class Submit:
    """A completed candidate command line."""

    line: str
    terminator: bytes

    @property
    def raw(self) -> bytes:
        """The line exactly as typed, terminator included."""
        return self.line.encode("utf-8", "surrogateescape") + self.terminator


@dataclass(frozen=True)
class Cancel:
    """A command buffer discarded by the interrupt key."""

    discarded: str


Action = Forward | Echo | Submit | Cancel


def _ends_line(event: KeyEvent) -> bool:
    # Line editors drop the pending line on the interrupt key, so the next
    # key starts a fresh line.
    return event.is_line_terminator or event.is_interrupt


class InputClassifier:
    """Three-state machine: LINE_START, COMPOSING_PASSTHROUGH, COMPOSING_COMMAND.

    "Start of line" is tracked purely from the keys this classifier has seen,
    never from where the terminal cursor is, so editing keys in a passthrough
    line can not turn it into a command line after the fact.
    """

    def __init__(self) -> None:
        self.state = ClassifierState.LINE_START
        self._buffer: list[bytes] = []

    @property
    def buffer(self) -> str:
        return b"".join(self._buffer).decode("utf-8", "surrogateescape")

    def reset(self) -> None:
        self.state = ClassifierState.LINE_START
        self._buffer.clear()

    def feed(self, event: KeyEvent) -> list[Action]:
        if self.state is ClassifierState.COMPOSING_COMMAND:
            return self._feed_command(event)

        if self.state is ClassifierState.LINE_START:
            if event.data == COMMAND_PREFIX:
                self.state = ClassifierState.COMPOSING_COMMAND
                self._buffer = [event.data]
                return [Echo(SAVE_CURSOR + event.data)]
            if not _ends_line(event):
                self.state = ClassifierState.COMPOSING_PASSTHROUGH
            return [Forward(event.data)]

        if _ends_line(event):
            self.state = ClassifierState.LINE_START
        return [Forward(event.data)]

    def feed_all(self, events: list[KeyEvent]) -> list[Action]:
        actions: list[Action] = []
        for event in events:
            actions.extend(self.feed(event))
        return actions

    def _feed_command(self, event: KeyEvent) -> list[Action]:
        if event.is_line_terminator:
            line = self.buffer
            self.reset()
            return [Submit(line=line, terminator=event.data)]

        if event.is_interrupt:
            discarded = self.buffer
            self.reset()
            return [Echo(b"^C\r\n"), Cancel(discarded)]

        if event.is_backspace:
            self._buffer.pop()
            if not self._buffer:
                # Erased the leading '/': nothing was forwarded, start over.
                self.state = ClassifierState.LINE_START
                return [Echo(ERASE_ECHO)]
            return [Echo(ERASE_ECHO + b"".join(self._buffer))]

        if event.is_printable or event.data == b"\t":
            self._buffer.append(event.data)
            return [Echo(event.data)]

        # Arrow keys and other control input have no meaning in a local line.
        return []
