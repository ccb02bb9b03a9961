"""Deliver SIGWINCH/SIGHUP/SIGTERM to the select loop through a wakeup pipe."""

from __future__ import annotations

import os
import signal

from loguru import logger

WATCHED_SIGNALS = (signal.SIGWINCH, signal.SIGHUP, signal.SIGTERM)


class SignalWatcher:
    """Turn asynchronous signals into readable bytes on ``fileno()``.

    Handlers only record the signal; ``signal.set_wakeup_fd`` writes the
    signal number into a pipe, which makes a blocked ``select`` return.
    """

    def __init__(self, signals: tuple[int, ...] = WATCHED_SIGNALS) -> None:
        self._signals = signals
        self._read_fd = -1
        self._write_fd = -1
        self._previous_handlers: dict[int, object] = {}
        self._previous_wakeup_fd = -1

    def fileno(self) -> int:
        return self._read_fd

    def _handle(self, signum: int, frame) -> None:
        del signum, frame

    def start(self) -> "SignalWatcher":
        self._read_fd, self._write_fd = os.pipe()
        os.set_blocking(self._read_fd, False)
        os.set_blocking(self._write_fd, False)
        self._previous_wakeup_fd = signal.set_wakeup_fd(self._write_fd)
        for signum in self._signals:
            self._previous_handlers[signum] = signal.signal(signum, self._handle)
        return self

    def drain(self) -> list[int]:
        """Return the signal numbers received since the last drain, in order."""
        received: list[int] = []
        while True:
            try:
                chunk = os.read(self._read_fd, 64)
            except BlockingIOError:
                break
            if not chunk:
                break
            received.extend(chunk)
        return received

    def stop(self) -> None:
        if self._read_fd < 0:
            return
        for signum, handler in self._previous_handlers.items():
            try:
                signal.signal(signum, handler)
            except (TypeError, ValueError) as exc:
                logger.warning(f"[term] Could not restore handler for signal {signum}: {exc}")
        self._previous_handlers.clear()
        signal.set_wakeup_fd(self._previous_wakeup_fd)
        os.close(self._read_fd)
        os.close(self._write_fd)
        self._read_fd = self._write_fd = -1

    def __enter__(self) -> "SignalWatcher":
        return self.start()

    def __exit__(self, *exc_info) -> None:
        self.stop()
