"""Logging for the repo-shell server process.

Every module logs through a child of the `repo_shell` logger; configure()
attaches a stderr handler and a rotating per-process log file to that one
logger. Sessions log under their task name, so interleaved sessions stay
readable in the file.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOGGER_NAME = "repo_shell"

_CONSOLE_FORMAT = "[%(name)s] %(levelname)s %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(taskName)s] %(message)s"
_MAX_LOG_BYTES = 20 * 1024 * 1024
_LOG_BACKUPS = 5
# Loggers from dependencies that are noisy below WARNING.
_QUIET_LOGGERS = ("asyncssh",)


@dataclass(frozen=True)
class LogTarget:
    """Where the server is logging and at which level."""

    level_name: str
    level: int
    file_path: str


_active: LogTarget | None = None


def resolve_level(raw: str | None) -> int:
    """Map a level name to its number; unknown names mean INFO."""
    level = logging.getLevelName(str(raw or "INFO").strip().upper())
    return level if isinstance(level, int) else logging.INFO


def _log_file_path() -> str:
    explicit = os.environ.get("REPO_SHELL_LOG_FILE")
    if explicit:
        return explicit
    log_dir = Path(
        os.environ.get("REPO_SHELL_LOG_DIR", os.path.expanduser("~/.local/share/repo-shell/logs"))
    )
    started = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    return str(log_dir / f"server-{started}-{os.getpid()}.log")


class _TaskNameFilter(logging.Filter):
    """Provide %(taskName)s on interpreters whose LogRecord lacks it."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "taskName", None) is None:
            record.taskName = "-"
        return True


def _handlers(level: int, file_path: str) -> list[logging.Handler]:
    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(_CONSOLE_FORMAT))

    log_file = RotatingFileHandler(
        file_path, maxBytes=_MAX_LOG_BYTES, backupCount=_LOG_BACKUPS, encoding="utf-8"
    )
    log_file.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S"))
    log_file.addFilter(_TaskNameFilter())

    for handler in (console, log_file):
        handler.setLevel(level)
    return [console, log_file]


def configure(level: str | None = None) -> LogTarget:
    """Attach the server's handlers to the repo_shell logger.

    The level comes from the argument, then REPO_SHELL_LOG_LEVEL. The first
    call wins; later calls return the same target without touching handlers.
    """
    global _active
    if _active is not None:
        return _active

    level_value = resolve_level(level or os.environ.get("REPO_SHELL_LOG_LEVEL"))
    file_path = _log_file_path()
    Path(file_path).parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level_value)
    logger.propagate = False
    logger.handlers.clear()
    for handler in _handlers(level_value, file_path):
        logger.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    root = logging.getLogger()
    if root.level > logging.WARNING:
        root.setLevel(logging.WARNING)
    logging.captureWarnings(True)

    _active = LogTarget(
        level_name=logging.getLevelName(level_value),
        level=level_value,
        file_path=file_path,
    )
    return _active


def reset_for_tests() -> None:
    """Forget the configured target and detach handlers."""
    global _active
    _active = None
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    logger.propagate = True
