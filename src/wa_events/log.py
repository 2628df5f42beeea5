"""Logging configuration for the listener and the CLI.

Every record is written as one pipe-separated line::

    2025-12-18T10:00:00 | INFO     | wa_events.pipeline | Event saved: ...

Modules log through ``logging.getLogger(__name__)``; only the entry point
calls :func:`setup_logging`.
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

# Marks the handler we own on the root logger.
_HANDLER_ATTR = "_wa_events_log_handler"

# Chatty third-party loggers, held at WARNING unless DEBUG is requested.
NOISY_LOGGERS: tuple[str, ...] = ("google_genai", "httpx", "sqlalchemy.engine")


def _resolve_level(level: str) -> int:
    resolved = logging.getLevelName(level.strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Invalid log level: {level!r}")
    return resolved


def _own_handler(root: logging.Logger) -> logging.Handler | None:
    return next((h for h in root.handlers if getattr(h, _HANDLER_ATTR, False)), None)


def setup_logging(level: str = "INFO", stream: TextIO | None = None) -> None:
    """Configure the root logger for wa-events.

    Repeated calls reuse the handler attached by the first one and only
    change its level, so the CLI can call this again after reading
    ``LOG_LEVEL`` from the settings.

    Args:
        level: Logging level name, case-insensitive.
        stream: Destination for log lines.  Defaults to ``sys.stderr`` so
            stdout stays free for command output.

    Raises:
        ValueError: If *level* is not a known logging level.
    """
    numeric_level = _resolve_level(level)

    root = logging.getLogger()
    root.setLevel(numeric_level)

    third_party_level = logging.NOTSET if numeric_level <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)

    handler = _own_handler(root)
    if handler is None:
        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        setattr(handler, _HANDLER_ATTR, True)
        root.addHandler(handler)
    handler.setLevel(numeric_level)


def get_logger(name: str) -> logging.Logger:
    """Return the logger called *name* (usually the caller's ``__name__``)."""
    return logging.getLogger(name)
