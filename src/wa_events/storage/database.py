"""Engine construction for the event store."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import Engine, create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError, NoSuchModuleError

from wa_events.config import ConfigError, DatabaseSettings

logger = logging.getLogger(__name__)


def create_engine_from_settings(settings: DatabaseSettings, echo: bool = False) -> Engine:
    """Create a SQLAlchemy engine for *settings*.

    Any SQLAlchemy URL works.  Local development uses a SQLite file
    (``sqlite:///events.db``); a hosted libSQL database uses the
    ``sqlite+libsql://`` dialect, which receives the auth token through
    ``connect_args``.

    In-memory SQLite is not supported: store calls run on worker threads,
    and each thread would see its own empty database.

    Raises:
        ConfigError: If the URL cannot be parsed or its driver is missing.
    """
    try:
        url = make_url(settings.url)
    except ArgumentError as exc:
        raise ConfigError(f"Invalid DATABASE_URL {settings.url!r}: {exc}") from exc

    connect_args: dict[str, Any] = {}
    if settings.auth_token:
        connect_args["auth_token"] = settings.auth_token

    try:
        engine = create_engine(url, connect_args=connect_args, echo=echo)
    except (ImportError, NoSuchModuleError) as exc:
        raise ConfigError(
            f"Database driver for {url.drivername!r} is not installed: {exc}"
        ) from exc

    logger.debug("Database engine created for %s", url.render_as_string(hide_password=True))
    return engine
