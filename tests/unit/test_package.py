"""Tests for wa-events package structure and imports."""

from __future__ import annotations

import re
import subprocess
import sys


def test_package_is_importable() -> None:
    """``import wa_events`` must succeed without errors."""
    import wa_events  # noqa: F401


def test_package_has_version() -> None:
    """``wa_events.__version__`` must be defined."""
    import wa_events

    assert wa_events.__version__ == "0.1.0"


def test_package_version_is_semver() -> None:
    """Version string must match semantic versioning format."""
    import wa_events

    assert re.match(r"^\d+\.\d+\.\d+$", wa_events.__version__)


def test_public_names_exported() -> None:
    """Everything in ``__all__`` must resolve."""
    import wa_events

    for name in wa_events.__all__:
        assert hasattr(wa_events, name), name


def test_main_module_help() -> None:
    """``python -m wa_events --help`` must run and exit cleanly."""
    result = subprocess.run(
        [sys.executable, "-m", "wa_events", "--help"],
        capture_output=True,
        text=True,
        timeout=30,
    )
    assert result.returncode == 0
    assert "events" in result.stdout
    assert "Traceback" not in result.stderr


def test_config_module_importable() -> None:
    """Core config exports must be importable."""
    from wa_events.config import ConfigError, load_settings  # noqa: F401


def test_logging_module_importable() -> None:
    """Core logging exports must be importable."""
    from wa_events.log import get_logger, setup_logging  # noqa: F401
