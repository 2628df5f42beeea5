"""Tests for wa-events logging setup."""

from __future__ import annotations

import io
import logging
import re

import pytest

from wa_events.log import NOISY_LOGGERS, get_logger, setup_logging


class TestSetupLogging:
    """Tests for the setup_logging function."""

    def test_sets_root_level(self) -> None:
        setup_logging("DEBUG")

        assert logging.getLogger().level == logging.DEBUG

    def test_default_level_is_info(self) -> None:
        setup_logging()

        assert logging.getLogger().level == logging.INFO

    def test_level_is_case_insensitive(self) -> None:
        setup_logging("warning")

        assert logging.getLogger().level == logging.WARNING

    def test_invalid_level_raises(self) -> None:
        with pytest.raises(ValueError, match="Invalid log level"):
            setup_logging("LOUD")

    def test_idempotent(self) -> None:
        """A second call must not attach a second handler."""
        setup_logging()
        count_after_first = len(logging.getLogger().handlers)

        setup_logging("DEBUG")

        assert len(logging.getLogger().handlers) == count_after_first

    def test_second_call_updates_handler_level(self) -> None:
        setup_logging("INFO")
        setup_logging("ERROR")

        ours = [h for h in logging.getLogger().handlers if getattr(h, "_wa_events_log_handler", False)]
        assert len(ours) == 1
        assert ours[0].level == logging.ERROR


class TestNoisyLoggers:
    """Third-party loggers are held back unless DEBUG is requested."""

    @pytest.mark.parametrize("name", NOISY_LOGGERS)
    def test_pinned_to_warning_at_info(self, name: str) -> None:
        setup_logging("INFO")

        assert logging.getLogger(name).level == logging.WARNING

    @pytest.mark.parametrize("name", NOISY_LOGGERS)
    def test_released_at_debug(self, name: str) -> None:
        setup_logging("DEBUG")

        assert logging.getLogger(name).level == logging.NOTSET


class TestGetLogger:
    def test_returns_named_logger(self) -> None:
        logger = get_logger("wa_events.test")

        assert isinstance(logger, logging.Logger)
        assert logger.name == "wa_events.test"


class TestLogOutput:
    """Tests for the actual log output format."""

    def test_line_format(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Timestamp, level, logger name and message, pipe separated."""
        setup_logging("INFO")
        get_logger("test.format").info("hello world")

        err = capsys.readouterr().err
        assert re.search(
            r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2} \| INFO +\| test\.format \| hello world",
            err,
        )

    def test_debug_hidden_at_info(self, capsys: pytest.CaptureFixture[str]) -> None:
        setup_logging("INFO")
        get_logger("test.filter").debug("should not appear")

        assert "should not appear" not in capsys.readouterr().err

    def test_debug_shown_at_debug(self, capsys: pytest.CaptureFixture[str]) -> None:
        setup_logging("DEBUG")
        get_logger("test.debug_show").debug("should appear")

        assert "should appear" in capsys.readouterr().err

    def test_custom_stream(self) -> None:
        stream = io.StringIO()
        setup_logging("INFO", stream=stream)
        get_logger("test.stream").warning("to the buffer")

        assert "| WARNING  | test.stream | to the buffer" in stream.getvalue()
