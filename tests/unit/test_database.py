"""Tests for engine construction."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from wa_events.config import ConfigError, DatabaseSettings
from wa_events.storage.database import create_engine_from_settings


class TestCreateEngineFromSettings:
    def test_sqlite_file(self, tmp_path) -> None:
        engine = create_engine_from_settings(
            DatabaseSettings(url=f"sqlite:///{tmp_path / 'x.db'}")
        )

        assert engine.dialect.name == "sqlite"
        engine.dispose()

    def test_auth_token_passed_as_connect_arg(self) -> None:
        with patch("wa_events.storage.database.create_engine") as create:
            create_engine_from_settings(
                DatabaseSettings(url="sqlite+libsql://db.turso.io?secure=true", auth_token="tok")
            )

        assert create.call_args.kwargs["connect_args"] == {"auth_token": "tok"}

    def test_no_token_no_connect_args(self) -> None:
        with patch("wa_events.storage.database.create_engine") as create:
            create_engine_from_settings(DatabaseSettings(url="sqlite:///x.db"))

        assert create.call_args.kwargs["connect_args"] == {}

    def test_invalid_url(self) -> None:
        with pytest.raises(ConfigError, match="Invalid DATABASE_URL"):
            create_engine_from_settings(DatabaseSettings(url="not a url"))

    def test_missing_driver(self) -> None:
        with pytest.raises(ConfigError, match="not installed"):
            create_engine_from_settings(
                DatabaseSettings(url="postgresql+nonexistentdriver://u@h/db")
            )
