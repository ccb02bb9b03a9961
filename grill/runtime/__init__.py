"""PTY-level runtime for the inner CLI."""

from grill.runtime.pty_session import ExitStatus, PtySession, spawn

__all__ = ["ExitStatus", "PtySession", "spawn"]
