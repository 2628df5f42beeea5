"""Unit tests for the CLI entrypoint.

Tests cover: default subcommand, configuration errors, fatal listener
outcomes, and the ``events list``/``show``/``delete`` inspection commands
against a real SQLite file.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from tests.helpers import make_event, make_event_to_save
from wa_events.__main__ import build_parser, format_event_line, main
from wa_events.config import DatabaseSettings
from wa_events.exceptions import ConnectionTerminalError, ReconnectExhaustedError
from wa_events.models.event import Location, StoredEvent
from wa_events.storage import EventStore, create_engine_from_settings


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _seed(db_path: Path, *items) -> None:
    """Store *items* in the SQLite file at *db_path*."""
    engine = create_engine_from_settings(DatabaseSettings(url=f"sqlite:///{db_path}"))
    store = EventStore(engine, clock=lambda: 1_734_000_000.0)
    try:
        store.create_schema()
        for item in items:
            store.save_event(item)
    finally:
        engine.dispose()


@pytest.fixture()
def db_env(tmp_path: Path, clean_env: None, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point ``DATABASE_URL`` at a fresh SQLite file and return its path."""
    db_path = tmp_path / "events.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_path}")
    return db_path


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class TestParser:
    def test_events_requires_subcommand(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["events"])

        assert exc_info.value.code == 2
        assert "usage" in capsys.readouterr().err.lower()

    def test_show_requires_slug(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(["events", "show"])

        assert exc_info.value.code == 2

    def test_verbose_flag(self) -> None:
        args = build_parser().parse_args(["run", "-v"])

        assert args.command == "run"
        assert args.verbose is True


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------


class TestRunCommand:
    def test_no_arguments_defaults_to_run(self, monkeypatch_env: dict[str, str]) -> None:
        with patch("wa_events.__main__.asyncio.run") as mock_run:
            exit_code = main([])

        assert exit_code == 0
        mock_run.assert_called_once()
        mock_run.call_args.args[0].close()

    def test_missing_config(
        self,
        clean_env: None,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        exit_code = main(["run"])

        assert exit_code == 1
        err = capsys.readouterr().err
        assert "GEMINI_API_KEY" in err
        assert "DATABASE_URL" in err
        assert "WHATSAPP_TRANSPORT" in err

    def test_logged_out(
        self,
        monkeypatch_env: dict[str, str],
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        def fail(coro):
            coro.close()
            raise ConnectionTerminalError(status_code=401)

        with patch("wa_events.__main__.asyncio.run", side_effect=fail):
            exit_code = main(["run"])

        assert exit_code == 1
        assert "pair the device again" in capsys.readouterr().err

    def test_reconnect_exhausted(self, monkeypatch_env: dict[str, str]) -> None:
        def fail(coro):
            coro.close()
            raise ReconnectExhaustedError(5)

        with patch("wa_events.__main__.asyncio.run", side_effect=fail):
            assert main(["run"]) == 1

    def test_ctrl_c_exits_cleanly(self, monkeypatch_env: dict[str, str]) -> None:
        def interrupt(coro):
            coro.close()
            raise KeyboardInterrupt

        with patch("wa_events.__main__.asyncio.run", side_effect=interrupt):
            assert main(["run"]) == 0


# ---------------------------------------------------------------------------
# events
# ---------------------------------------------------------------------------


class TestEventsCommand:
    def test_list_empty(self, db_env: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["events", "list"]) == 0
        assert "No events stored." in capsys.readouterr().out

    def test_list(self, db_env: Path, capsys: pytest.CaptureFixture[str]) -> None:
        later = make_event(title="Demo Day", startAt="2025-12-20T18:00:00-03:00", endAt=None)
        _seed(db_env, make_event_to_save("MSG-2", event=later), make_event_to_save("MSG-1"))

        assert main(["events", "list"]) == 0

        lines = capsys.readouterr().out.strip().splitlines()
        assert lines == [
            "2025-12-18T10:00:00-03:00 | hubconnect-innovacion-2025-12-18 | "
            "HubConnect Innovación (Hub Providencia, Santiago)",
            "2025-12-20T18:00:00-03:00 | demo-day-2025-12-20 | "
            "Demo Day (Hub Providencia, Santiago)",
        ]

    def test_show(self, db_env: Path, capsys: pytest.CaptureFixture[str]) -> None:
        _seed(db_env, make_event_to_save())

        assert main(["events", "show", "hubconnect-innovacion-2025-12-18"]) == 0

        out = capsys.readouterr().out
        assert "Organizer:   Departamento de Innovación" in out
        assert "Message id:  MSG-1" in out

    def test_show_missing(self, db_env: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["events", "show", "nope"]) == 1
        assert "nope" in capsys.readouterr().err

    def test_delete(self, db_env: Path, capsys: pytest.CaptureFixture[str]) -> None:
        _seed(db_env, make_event_to_save())

        assert main(["events", "delete", "hubconnect-innovacion-2025-12-18"]) == 0
        assert main(["events", "list"]) == 0

        out = capsys.readouterr().out
        assert "Deleted hubconnect-innovacion-2025-12-18" in out
        assert "No events stored." in out

    def test_events_without_database_url(
        self,
        clean_env: None,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        assert main(["events", "list"]) == 1
        assert "DATABASE_URL" in capsys.readouterr().err


class TestFormatEventLine:
    def test_online_event_shows_type(self) -> None:
        stored = StoredEvent(
            id=1,
            slug="charla-2025-12-20",
            title="Charla",
            description="d",
            organizer="o",
            start_at="2025-12-20T18:00:00-03:00",
            end_at=None,
            location=Location(type="ONLINE"),
            message_body="m",
            whatsapp_message_id="MSG-1",
            whatsapp_group_jid="g@g.us",
            whatsapp_sender_jid="s@s.whatsapp.net",
            created_at="2024-12-12T10:40:00+00:00",
            updated_at="2024-12-12T10:40:00+00:00",
        )

        assert format_event_line(stored) == (
            "2025-12-20T18:00:00-03:00 | charla-2025-12-20 | Charla (ONLINE)"
        )
