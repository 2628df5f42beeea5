"""Shared fixtures for wa-events tests."""

from __future__ import annotations

import logging
from collections.abc import Generator
from pathlib import Path

import pytest

from wa_events.config import DatabaseSettings
from wa_events.log import NOISY_LOGGERS
from wa_events.storage import EventStore, create_engine_from_settings

_ENV_VARS = (
    "GEMINI_API_KEY",
    "GEMINI_MODEL",
    "DATABASE_URL",
    "DATABASE_AUTH_TOKEN",
    "WHATSAPP_TRANSPORT",
    "WHATSAPP_ALLOWED_GROUPS",
    "WHATSAPP_LIST_GROUPS_ON_START",
    "WHATSAPP_AUTH_DIR",
    "LOG_LEVEL",
    "TIMEZONE",
    "EVENT_LANGUAGE",
    "LLM_TIMEOUT_SECONDS",
    "LLM_MAX_RETRIES",
    "LLM_RETRY_BASE_DELAY",
    "RECONNECT_BASE_DELAY",
    "RECONNECT_MAX_RETRIES",
)


@pytest.fixture()
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove all wa-events environment variables.

    Patches ``load_dotenv`` so a real ``.env`` file cannot re-inject values
    that the test explicitly removed.
    """
    monkeypatch.setattr("wa_events.config.load_dotenv", lambda *_a, **_kw: None)
    for key in _ENV_VARS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture()
def monkeypatch_env(clean_env: None, monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set all required environment variables to valid defaults.

    Returns the dict of variables so tests can inspect or override values.
    """
    env_vars = {
        "GEMINI_API_KEY": "test-gemini-key-12345",
        "DATABASE_URL": "sqlite:///events-test.db",
        "WHATSAPP_TRANSPORT": "tests.fakes:make_session",
    }
    for key, value in env_vars.items():
        monkeypatch.setenv(key, value)
    return env_vars


@pytest.fixture(autouse=True)
def _reset_root_logger() -> Generator[None, None, None]:
    """Reset the root logger after each test to prevent handler leaks."""
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level
    noisy_levels = {name: logging.getLogger(name).level for name in NOISY_LOGGERS}
    yield
    root.handlers = original_handlers
    root.setLevel(original_level)
    for name, level in noisy_levels.items():
        logging.getLogger(name).setLevel(level)


# ---------------------------------------------------------------------------
# Storage fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def event_store(tmp_path: Path) -> Generator[EventStore, None, None]:
    """An :class:`EventStore` on a fresh SQLite file with its schema created."""
    engine = create_engine_from_settings(
        DatabaseSettings(url=f"sqlite:///{tmp_path / 'events.db'}")
    )
    store = EventStore(engine, clock=lambda: 1_734_000_000.0)
    store.create_schema()
    yield store
    engine.dispose()
