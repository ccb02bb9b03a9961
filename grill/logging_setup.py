"""Loguru configuration for grill.

While a session runs the real terminal belongs to the inner CLI, so logs go
to a file under ``.grill/`` and never to stdout/stderr.
"""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

LOG_FILENAME = "grill.log"
VALID_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")


def setup_logging(log_dir: Path | None, level: str = "INFO") -> Path | None:
    """Route loguru to ``<log_dir>/grill.log``; return the log file path.

    With ``log_dir=None`` only WARNING+ goes to stderr (used by the
    non-session subcommands before a project directory exists).
    """
    level = (level or "INFO").upper()
    if level not in VALID_LEVELS:
        print(f"Warning: Invalid log level '{level}'. Defaulting to INFO.", file=sys.stderr)
        level = "INFO"

    logger.remove()
    if log_dir is None:
        logger.add(sys.stderr, level="WARNING", format="{level: <7} | {message}")
        return None

    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILENAME
    logger.add(
        log_file,
        level=level,
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <7} | {name}:{line} | {message}",
        rotation="1 MB",
        retention=3,
        encoding="utf-8",
        backtrace=False,
        diagnose=False,
    )
    return log_file
