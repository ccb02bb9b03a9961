"""Pseudo-terminal session hosting the inner CLI (Unix, via pexpect)."""

from __future__ import annotations

import signal
import time
from dataclasses import dataclass

import pexpect
from loguru import logger

from grill.errors import SpawnError


@dataclass(frozen=True)
class ExitStatus:
    """How the child ended: an exit code or a terminating signal."""

    code: int | None = None
    signal: int | None = None

    @property
    def exit_code(self) -> int:
        """Shell-style code: the exit status, or 128+N for signal N."""
        if self.signal:
            return 128 + self.signal
        return self.code or 0

    def describe(self) -> str:
        if self.signal:
            return f"killed by signal {self.signal}"
        return f"status {self.code or 0}"


class PtySession:
    """Own one child process attached to the slave side of a PTY.

    The master descriptor is closed exactly once, by ``close()``, whichever
    path ends the session.
    """

    def __init__(self, proc: "pexpect.spawn", display: str) -> None:
        self._proc = proc
        self.display = display
        self._closed = False
        self._status: ExitStatus | None = None

    @property
    def pid(self) -> int:
        return self._proc.pid

    @property
    def closed(self) -> bool:
        return self._closed

    def fileno(self) -> int:
        return self._proc.child_fd

    def is_alive(self) -> bool:
        if self._closed:
            return False
        try:
            return self._proc.isalive()
        except pexpect.ExceptionPexpect:
            return False

    def read(self, size: int = 4096) -> bytes | None:
        """Read available output without blocking.

        Returns None when nothing is ready yet and b"" once the link to the
        child is gone (EOF or an I/O error on the master).
        """
        if self._closed:
            return b""
        try:
            return self._proc.read_nonblocking(size=size, timeout=0)
        except pexpect.TIMEOUT:
            return None
        except pexpect.EOF:
            return b""
        except OSError as exc:
            logger.debug(f"[pty] Read failed: {exc}")
            return b""

    def write(self, data: bytes) -> None:
        if self._closed:
            raise RuntimeError("PTY session is closed")
        self._proc.send(data)

    def resize(self, rows: int, cols: int) -> None:
        """Set the PTY window size; the kernel signals SIGWINCH to the child."""
        if self._closed:
            return
        try:
            self._proc.setwinsize(rows, cols)
        except OSError as exc:
            logger.debug(f"[pty] Resize failed: {exc}")

    def wait(self) -> ExitStatus:
        """Block until the child has exited and return its status."""
        if self._status is not None:
            return self._status
        try:
            self._proc.wait()
        except pexpect.ExceptionPexpect:
            # Already reaped by isalive(); its status is recorded on the proc.
            pass
        self._status = ExitStatus(code=self._proc.exitstatus, signal=self._proc.signalstatus)
        logger.info(f"[pty] Child {self.pid} exited ({self._status.describe()})")
        return self._status

    def terminate(self, grace_period_s: float = 3.0) -> ExitStatus:
        """SIGTERM the child, SIGKILL it after the grace period, reap it."""
        if self.is_alive():
            logger.info(f"[pty] Terminating child {self.pid}")
            self._signal(signal.SIGHUP)
            self._signal(signal.SIGTERM)
            deadline = time.monotonic() + max(0.0, grace_period_s)
            while self.is_alive() and time.monotonic() < deadline:
                time.sleep(0.05)
            if self.is_alive():
                logger.warning(f"[pty] Child {self.pid} ignored SIGTERM, sending SIGKILL")
                self._signal(signal.SIGKILL)
        return self.wait()

    def _signal(self, signum: int) -> None:
        try:
            self._proc.kill(signum)
        except OSError:
            pass

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._proc.close(force=True)
        except pexpect.ExceptionPexpect as exc:
            logger.warning(f"[pty] Close failed: {exc}")
        logger.debug(f"[pty] Closed PTY for child {self.pid}")

    def __enter__(self) -> "PtySession":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def spawn(
    command: str,
    args: list[str] | None = None,
    env: dict[str, str] | None = None,
    cwd: str | None = None,
    rows: int = 24,
    cols: int = 80,
) -> PtySession:
    """Start ``command`` on a fresh PTY; raise SpawnError on any failure."""
    args = list(args or [])
    display = " ".join([command, *args])
    try:
        proc = pexpect.spawn(
            command,
            args=args,
            env=env,
            cwd=cwd or None,
            dimensions=(rows, cols),
        )
    except (pexpect.ExceptionPexpect, OSError) as exc:
        logger.error(f"[pty] Failed to spawn {display[:60]}: {exc}")
        raise SpawnError(display, exc) from exc
    # No artificial latency on keystrokes.
    proc.delaybeforesend = None
    logger.info(f"[pty] Spawned pid {proc.pid}: {display[:60]}")
    return PtySession(proc, display)
