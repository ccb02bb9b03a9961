"""Terminal I/O driver for the controlling terminal."""

from __future__ import annotations

import fcntl
import os
import select
import struct
import termios
import tty
from collections import deque
from dataclasses import dataclass

from loguru import logger

from grill.errors import TerminalModeError

ESC = 0x1B
CTRL_C = b"\x03"
BACKSPACES = (b"\x7f", b"\x08")
LINE_TERMINATORS = (b"\r", b"\n")

# How long a lone ESC waits for the rest of an escape sequence.
ESCAPE_TIMEOUT_S = 0.05


@dataclass(frozen=True)
class KeyEvent:
    """One input unit: a byte, a UTF-8 character or an escape sequence."""

    data: bytes

    @property
    def is_escape(self) -> bool:
        return self.data[:1] == b"\x1b"

    @property
    def is_line_terminator(self) -> bool:
        return self.data in LINE_TERMINATORS

    @property
    def is_interrupt(self) -> bool:
        return self.data == CTRL_C

    @property
    def is_backspace(self) -> bool:
        return self.data in BACKSPACES

    @property
    def is_printable(self) -> bool:
        if self.is_escape or not self.data:
            return False
        first = self.data[0]
        return first >= 0x80 or 0x20 <= first < 0x7F


def _utf8_length(first: int) -> int:
    if first >= 0xF0:
        return 4
    if first >= 0xE0:
        return 3
    if first >= 0xC0:
        return 2
    return 1


class KeyDecoder:
    """Split a raw input byte stream into KeyEvents.

    Incomplete sequences stay pending until more bytes arrive or ``flush()``
    is called (the driver flushes after ESCAPE_TIMEOUT_S of silence, so a
    lone ESC key still gets through).
    """

    def __init__(self) -> None:
        self._pending = bytearray()

    @property
    def pending(self) -> bool:
        return bool(self._pending)

    def feed(self, data: bytes) -> list[KeyEvent]:
        self._pending.extend(data)
        events: list[KeyEvent] = []
        while self._pending:
            size = self._next_size(self._pending)
            if size == 0:
                break
            events.append(KeyEvent(bytes(self._pending[:size])))
            del self._pending[:size]
        return events

    def flush(self) -> list[KeyEvent]:
        if not self._pending:
            return []
        event = KeyEvent(bytes(self._pending))
        self._pending.clear()
        return [event]

    @staticmethod
    def _next_size(buf: bytearray) -> int:
        """Size of the first complete key in ``buf``, or 0 if incomplete."""
        first = buf[0]
        if first == ESC:
            if len(buf) < 2:
                return 0
            second = buf[1]
            if second == ord("["):
                # CSI: parameters/intermediates then a final byte in 0x40-0x7E.
                for i in range(2, len(buf)):
                    if 0x40 <= buf[i] <= 0x7E:
                        return i + 1
                return 0
            if second == ord("O"):
                return 3 if len(buf) >= 3 else 0
            # Alt+key.
            return 2
        if first >= 0xC0:
            size = _utf8_length(first)
            return size if len(buf) >= size else 0
        return 1


class RawModeGuard:
    """Scoped raw mode: restores the captured attributes exactly once."""

    def __init__(self, fd: int) -> None:
        self.fd = fd
        self.snapshot: list | None = None
        self._active = False

    def enter(self) -> "RawModeGuard":
        try:
            self.snapshot = termios.tcgetattr(self.fd)
            tty.setraw(self.fd, termios.TCSANOW)
        except (termios.error, OSError) as exc:
            raise TerminalModeError(f"Cannot switch terminal to raw mode: {exc}") from exc
        self._active = True
        logger.debug(f"[term] Raw mode on fd {self.fd}")
        return self

    def restore(self) -> None:
        if not self._active or self.snapshot is None:
            return
        self._active = False
        try:
            termios.tcsetattr(self.fd, termios.TCSAFLUSH, self.snapshot)
            logger.debug(f"[term] Restored terminal attributes on fd {self.fd}")
        except (termios.error, OSError) as exc:
            logger.warning(f"[term] Failed to restore terminal attributes: {exc}")

    def __enter__(self) -> "RawModeGuard":
        return self

    def __exit__(self, *exc_info) -> None:
        self.restore()


class _NullGuard(RawModeGuard):
    """Guard used when input is not a terminal (pipes, CI)."""

    def enter(self) -> "RawModeGuard":
        return self


class TerminalDriver:
    """Reads keys from and writes bytes to the real terminal."""

    def __init__(self, stdin_fd: int = 0, stdout_fd: int = 1) -> None:
        self.stdin_fd = stdin_fd
        self.stdout_fd = stdout_fd
        self.eof = False
        self._decoder = KeyDecoder()
        self._queue: deque[KeyEvent] = deque()

    @property
    def is_interactive(self) -> bool:
        return os.isatty(self.stdin_fd)

    def fileno(self) -> int:
        return self.stdin_fd

    @property
    def has_pending_escape(self) -> bool:
        return self._decoder.pending

    def enter_raw_mode(self) -> RawModeGuard:
        if not self.is_interactive:
            logger.info("[term] stdin is not a terminal, running without raw mode")
            return _NullGuard(self.stdin_fd).enter()
        return RawModeGuard(self.stdin_fd).enter()

    def read_available(self, size: int = 4096) -> list[KeyEvent]:
        """Read whatever is ready on stdin and decode it; sets ``eof`` on close."""
        try:
            data = os.read(self.stdin_fd, size)
        except OSError as exc:
            logger.warning(f"[term] Read from terminal failed: {exc}")
            data = b""
        if not data:
            self.eof = True
            return self._decoder.flush()
        return self._decoder.feed(data)

    def flush_pending(self) -> list[KeyEvent]:
        return self._decoder.flush()

    def read_key(self) -> KeyEvent | None:
        """Block until one key is available; None once stdin is closed."""
        while not self._queue:
            if self.eof:
                return None
            timeout = ESCAPE_TIMEOUT_S if self._decoder.pending else None
            readable, _, _ = select.select([self.stdin_fd], [], [], timeout)
            if readable:
                self._queue.extend(self.read_available())
            else:
                self._queue.extend(self._decoder.flush())
        return self._queue.popleft()

    def write_raw(self, data: bytes) -> None:
        view = memoryview(data)
        while view:
            written = os.write(self.stdout_fd, view)
            view = view[written:]

    def get_size(self) -> tuple[int, int]:
        """Return (rows, cols) of the real terminal, 24x80 when unknown."""
        try:
            packed = fcntl.ioctl(self.stdout_fd, termios.TIOCGWINSZ, b"\x00" * 8)
            rows, cols, _xp, _yp = struct.unpack("HHHH", packed)
            return rows or 24, cols or 80
        except OSError:
            return 24, 80
