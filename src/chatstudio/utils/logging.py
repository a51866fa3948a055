"""Log files for the command line: a main application log and a stream trace.

The main log receives every record at the configured level. The stream trace
receives ``chatstudio.streaming`` records at debug level regardless of that
level, so dropped chunks can be inspected after a run without turning on
debug output everywhere.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

__all__ = ["LogFiles", "setup_logging", "setup_from_settings", "active_log_files"]

LOG_DIR_ENV = "CHATSTUDIO_LOG_DIR"
STREAM_LOGGER = "chatstudio.streaming"

_DEFAULT_LOG_DIR = Path.home() / ".chatstudio" / "logs"
_MAIN_FILE = "chatstudio.log"
_STREAM_FILE = "stream.log"
_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_STREAM_FORMAT = "%(asctime)s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Client libraries log every request at debug level.
_QUIET_LOGGERS = {
    "asyncio": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "openai": logging.WARNING,
    "pygit2": logging.WARNING,
}


@dataclass(frozen=True, slots=True)
class LogFiles:
    """Where the current process writes its logs."""

    directory: Path
    main: Path
    stream: Path


_ACTIVE: LogFiles | None = None
_stream_handler: logging.Handler | None = None


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> LogFiles:
    """Install the main log, the stream trace and an optional console handler.

    Calling this again is a no-op unless ``force`` is set, in which case the
    previous handlers are closed and replaced.
    """

    global _ACTIVE
    if _ACTIVE is not None and not force:
        return _ACTIVE

    directory = Path(log_dir or os.environ.get(LOG_DIR_ENV) or _DEFAULT_LOG_DIR).expanduser()
    directory.mkdir(parents=True, exist_ok=True)
    files = LogFiles(directory=directory, main=directory / _MAIN_FILE, stream=directory / _STREAM_FILE)

    root_handlers = [_rotating_handler(files.main, level, _FORMAT, max_bytes, backup_count)]
    if console:
        root_handlers.append(_console_handler(level))
    logging.basicConfig(level=level, handlers=root_handlers, force=True)
    logging.captureWarnings(True)

    _install_stream_trace(_rotating_handler(files.stream, logging.DEBUG, _STREAM_FORMAT, max_bytes, backup_count))
    for name, quiet_level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(max(quiet_level, level))

    _ACTIVE = files
    return files


def setup_from_settings(settings: Any, *, debug: bool = False, **kwargs: Any) -> LogFiles:
    """Configure logging at debug level when either flag asks for it."""

    verbose = debug or bool(getattr(settings, "debug_logging", False))
    return setup_logging(logging.DEBUG if verbose else logging.INFO, **kwargs)


def active_log_files() -> LogFiles | None:
    return _ACTIVE


def _rotating_handler(path: Path, level: int, fmt: str, max_bytes: int, backup_count: int) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=fmt, datefmt=_DATE_FORMAT))
    return handler


def _console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=_FORMAT, datefmt=_DATE_FORMAT))
    return handler


def _install_stream_trace(handler: logging.Handler) -> None:
    global _stream_handler
    stream_logger = logging.getLogger(STREAM_LOGGER)
    if _stream_handler is not None:
        stream_logger.removeHandler(_stream_handler)
        _stream_handler.close()
    stream_logger.addHandler(handler)
    stream_logger.setLevel(logging.DEBUG)
    _stream_handler = handler
