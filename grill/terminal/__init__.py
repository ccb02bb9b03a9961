"""Real-terminal side of the proxy: raw mode, key decoding, signals."""

from grill.terminal.driver import KeyDecoder, KeyEvent, RawModeGuard, TerminalDriver
from grill.terminal.signals import SignalWatcher

__all__ = [
    "KeyDecoder",
    "KeyEvent",
    "RawModeGuard",
    "SignalWatcher",
    "TerminalDriver",
]
