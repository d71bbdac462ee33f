"""Logging initialization utilities using loguru."""

from __future__ import annotations

import os
from pathlib import Path
import sys

from loguru import logger

APP_DIR_NAME = "PhotoStamp"
DEFAULT_LEVEL = "INFO"
_LEVEL_ALIASES = {
    "debug": "DEBUG",
    "info": "INFO",
    "warn": "WARNING",
    "warning": "WARNING",
    "error": "ERROR",
}


def resolve_log_level(level: str | None = None) -> str:
    """Explicit `level` first, then ``LOG_LEVEL`` from the environment, then INFO."""
    for candidate in (level, os.environ.get("LOG_LEVEL")):
        name = _LEVEL_ALIASES.get((candidate or "").strip().lower())
        if name:
            return name
    return DEFAULT_LEVEL


def get_log_directory() -> str:
    """Get the main log directory path."""
    if os.name == "nt":
        base = Path(os.environ.get("LOCALAPPDATA") or Path.home() / "AppData" / "Local")
        return str(base / APP_DIR_NAME / "logs")
    if sys.platform == "darwin":
        return str(Path.home() / "Library" / "Logs" / APP_DIR_NAME)
    state = os.environ.get("XDG_STATE_HOME") or str(Path.home() / ".local" / "state")
    return str(Path(state) / APP_DIR_NAME.lower() / "logs")


def init_logging(log_dir: str | None = None, level: str | None = None) -> None:
    """Initialize stderr logging plus rotating file logging under `log_dir`."""
    resolved = resolve_log_level(level)
    log_path = Path(log_dir or get_log_directory())
    log_path.mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.add(sys.stderr, level=resolved, backtrace=False, diagnose=False)
    logger.add(
        str(log_path / "app_{time:YYYYMMDD}.log"),
        rotation="10 MB",
        retention="10 days",
        compression="zip",
        enqueue=True,
        backtrace=False,
        diagnose=False,
        level=resolved,
    )


def find_latest_log_file(log_dir: str | None = None) -> Path | None:
    """Find the latest log file in the specified directory."""
    if log_dir is None:
        log_dir = get_log_directory()

    try:
        log_path = Path(log_dir)
        if not log_path.exists():
            return None

        log_files = list(log_path.glob("app_*.log"))
        if not log_files:
            return None

        return max(log_files, key=lambda p: p.stat().st_mtime)
    except (OSError, ValueError):
        return None
