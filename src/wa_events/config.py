"""Configuration loading for wa-events.

Reads settings from environment variables (with .env support via python-dotenv)
and validates that all required values are present.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

from wa_events.normalizer import GROUP_JID_SUFFIX, is_group_jid

logger = logging.getLogger(__name__)

_TRUTHY = {"true", "1", "yes"}


class ConfigError(Exception):
    """Raised when required configuration is missing or invalid."""


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection settings for the event store.

    Attributes:
        url: SQLAlchemy database URL (e.g. ``"sqlite:///events.db"``).
        auth_token: Optional auth token for hosted libSQL databases.
    """

    url: str
    auth_token: str | None = None

    def __repr__(self) -> str:
        token = "'***'" if self.auth_token else "None"
        return f"DatabaseSettings(url={self.url!r}, auth_token={token})"


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables.

    Attributes:
        gemini_api_key: API key for Google Gemini.
        database: Event store connection settings.
        transport: Dotted ``module:factory`` path of the chat transport.
        gemini_model: Gemini model identifier.
        allowed_group_jids: Monitored group JIDs.  Empty means discovery
            mode.
        list_groups_on_start: Log every reachable group after connecting.
        auth_dir: Directory holding the persisted transport credentials.
        log_level: Logging level (default ``"INFO"``).
        timezone: IANA timezone used to resolve event dates
            (default ``"America/Santiago"``).
        event_language: Language the extracted text fields are written in.
        llm_timeout: Per-call LLM timeout in seconds.
        llm_max_retries: Retries after the first LLM attempt.
        llm_retry_base_delay: Initial LLM backoff delay in seconds.
        reconnect_base_delay: Initial reconnect delay in seconds.
        reconnect_max_retries: Reconnects allowed before giving up.
    """

    gemini_api_key: str
    database: DatabaseSettings
    transport: str = ""
    gemini_model: str = "gemini-2.0-flash"
    allowed_group_jids: tuple[str, ...] = ()
    list_groups_on_start: bool = False
    auth_dir: str = "auth_info"
    log_level: str = "INFO"
    timezone: str = "America/Santiago"
    event_language: str = "Spanish"
    llm_timeout: float = 30.0
    llm_max_retries: int = 3
    llm_retry_base_delay: float = 1.0
    reconnect_base_delay: float = 5.0
    reconnect_max_retries: int = 5

    @property
    def discovery_mode(self) -> bool:
        """Whether no group is configured for monitoring."""
        return not self.allowed_group_jids

    def __repr__(self) -> str:
        return (
            f"Settings(gemini_api_key='***', "
            f"database={self.database!r}, "
            f"transport={self.transport!r}, "
            f"gemini_model={self.gemini_model!r}, "
            f"allowed_group_jids={self.allowed_group_jids!r}, "
            f"log_level={self.log_level!r}, "
            f"timezone={self.timezone!r})"
        )


def parse_allowed_groups(raw: str) -> tuple[str, ...]:
    """Parse a comma-separated allow-list of group JIDs.

    Blank entries are skipped and entries that do not end with ``@g.us``
    are discarded with a warning.

    Args:
        raw: The raw ``WHATSAPP_ALLOWED_GROUPS`` value.

    Returns:
        The valid group JIDs in their original order, de-duplicated.
        Empty when *raw* is empty (discovery mode).

    Raises:
        ConfigError: If entries were given but none is a valid group JID.
    """
    jids = [jid.strip() for jid in raw.split(",") if jid.strip()]
    if not jids:
        return ()

    valid = [jid for jid in jids if is_group_jid(jid)]
    invalid = [jid for jid in jids if not is_group_jid(jid)]

    if not valid:
        raise ConfigError(
            f"No valid group JIDs in WHATSAPP_ALLOWED_GROUPS (got {raw!r}). "
            f"Group JIDs must end with '{GROUP_JID_SUFFIX}'. Leave the "
            "variable empty to start in discovery mode."
        )
    if invalid:
        logger.warning("Ignoring invalid group JIDs: %s", ", ".join(invalid))

    return tuple(dict.fromkeys(valid))


def parse_bool(raw: str) -> bool:
    """Return ``True`` for ``"true"``, ``"1"`` or ``"yes"`` (any case)."""
    return raw.strip().lower() in _TRUTHY


def load_database_settings() -> DatabaseSettings:
    """Load only the event store settings.

    Used by the store-inspection commands, which need neither the LLM nor
    the chat transport.

    Raises:
        ConfigError: If ``DATABASE_URL`` is missing or blank.
    """
    load_dotenv()

    url = os.environ.get("DATABASE_URL", "").strip()
    if not url:
        raise ConfigError("Missing required environment variables: DATABASE_URL")

    token = os.environ.get("DATABASE_AUTH_TOKEN", "").strip()
    return DatabaseSettings(url=url, auth_token=token or None)


def load_settings(require_transport: bool = True) -> Settings:
    """Load and validate settings from environment variables.

    Calls :func:`dotenv.load_dotenv` so a ``.env`` file in the project root
    is picked up automatically.

    Args:
        require_transport: Whether ``WHATSAPP_TRANSPORT`` must be set.

    Returns:
        A validated :class:`Settings` instance.

    Raises:
        ConfigError: If any required environment variable is missing,
            empty, or whitespace-only (the message names **all** missing
            variables), or if an optional value cannot be parsed.
    """
    load_dotenv()

    required = ["GEMINI_API_KEY", "DATABASE_URL"]
    if require_transport:
        required.append("WHATSAPP_TRANSPORT")

    missing = [name for name in required if not os.environ.get(name, "").strip()]
    if missing:
        names = ", ".join(missing)
        raise ConfigError(f"Missing required environment variables: {names}")

    values: dict[str, object] = {
        "gemini_api_key": os.environ["GEMINI_API_KEY"].strip(),
        "database": load_database_settings(),
        "transport": os.environ.get("WHATSAPP_TRANSPORT", "").strip(),
        "allowed_group_jids": parse_allowed_groups(
            os.environ.get("WHATSAPP_ALLOWED_GROUPS", "")
        ),
        "list_groups_on_start": parse_bool(
            os.environ.get("WHATSAPP_LIST_GROUPS_ON_START", "")
        ),
    }

    # Optional string settings with defaults handled by the dataclass.
    optional = {
        "GEMINI_MODEL": "gemini_model",
        "WHATSAPP_AUTH_DIR": "auth_dir",
        "LOG_LEVEL": "log_level",
        "TIMEZONE": "timezone",
        "EVENT_LANGUAGE": "event_language",
    }
    for env_var, field_name in optional.items():
        raw = os.environ.get(env_var, "").strip()
        if raw:
            values[field_name] = raw

    numeric = {
        "LLM_TIMEOUT_SECONDS": ("llm_timeout", float),
        "LLM_MAX_RETRIES": ("llm_max_retries", int),
        "LLM_RETRY_BASE_DELAY": ("llm_retry_base_delay", float),
        "RECONNECT_BASE_DELAY": ("reconnect_base_delay", float),
        "RECONNECT_MAX_RETRIES": ("reconnect_max_retries", int),
    }
    for env_var, (field_name, cast) in numeric.items():
        raw = os.environ.get(env_var, "").strip()
        if raw:
            values[field_name] = _parse_number(env_var, raw, cast)

    return Settings(**values)  # type: ignore[arg-type]


def _parse_number(name: str, raw: str, cast: type[int] | type[float]) -> int | float:
    """Parse a non-negative numeric setting or raise :class:`ConfigError`."""
    try:
        value = cast(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc
    if value < 0:
        raise ConfigError(f"{name} must not be negative, got {raw!r}")
    return value
