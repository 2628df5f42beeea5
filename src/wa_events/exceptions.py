"""Custom exceptions for the wa-events service.

Every failure the service distinguishes has its own class so callers can
tell an expected outcome (a duplicate row, a dropped message) apart from a
fatal one (a logged-out session).

Exception hierarchy::

    WaEventsError
    +-- ParseError                  (malformed inbound envelope)
    +-- ConnectionTerminalError     (session logged out)
    +-- ConnectionRetryableError    (any other disconnect)
    |   +-- ReconnectExhaustedError (retry bound exceeded)
    +-- ExternalApiError            (LLM endpoint failures)
    |   +-- ExternalApiTransientError
    |   +-- ExternalApiPermanentError
    |       +-- LLMTimeoutError
    +-- SchemaValidationError       (LLM body does not match the schema)
    +-- DuplicateRecordError        (unique key collision)
    +-- EventNotFoundError          (lookup/delete miss)
    +-- StorageError                (any other database failure)

``ConfigError`` lives in :mod:`wa_events.config` next to the loader.
"""

from __future__ import annotations


class WaEventsError(Exception):
    """Base class for all wa-events errors."""


class ParseError(WaEventsError):
    """Raised when an inbound envelope cannot be normalized.

    Attributes:
        reason: ``"MISSING_KEY"`` or ``"MISSING_MESSAGE"``.
    """

    def __init__(self, reason: str) -> None:
        super().__init__(f"Failed to parse message: {reason}")
        self.reason = reason


# ---------------------------------------------------------------------------
# Connection
# ---------------------------------------------------------------------------


class ConnectionTerminalError(WaEventsError):
    """Raised when the session was explicitly invalidated (logged out).

    The stored credentials are no longer usable; the operator has to pair
    the device again before the service can reconnect.
    """

    def __init__(
        self,
        message: str = "Session logged out, re-authentication required",
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code


class ConnectionRetryableError(WaEventsError):
    """Raised for a disconnect that may be recovered by reconnecting.

    Attributes:
        status_code: Disconnect reason reported by the transport, if any.
        is_conflict: Whether another device took over the session.
    """

    def __init__(
        self,
        message: str = "Connection closed",
        status_code: int | None = None,
        is_conflict: bool = False,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.is_conflict = is_conflict


class ReconnectExhaustedError(ConnectionRetryableError):
    """Raised when the reconnect retry bound has been exceeded."""

    def __init__(self, retries: int) -> None:
        super().__init__(f"Giving up after {retries} reconnect attempt(s)")
        self.retries = retries


# ---------------------------------------------------------------------------
# LLM endpoint
# ---------------------------------------------------------------------------


class ExternalApiError(WaEventsError):
    """Base exception for LLM endpoint failures.

    Attributes:
        status_code: HTTP status code from the API, or ``None`` if the
            error did not originate from an HTTP response.
        retry_after: Seconds the server asked us to wait, if it said so.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retry_after = retry_after


class ExternalApiTransientError(ExternalApiError):
    """A rate-limit or 5xx-class response; retried with backoff."""


class ExternalApiPermanentError(ExternalApiError):
    """Any other failing status or a network failure; never retried."""


class LLMTimeoutError(ExternalApiPermanentError):
    """Raised when a single LLM call exceeds its timeout."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"LLM call timed out after {timeout:.1f}s")
        self.timeout = timeout


class SchemaValidationError(WaEventsError):
    """Raised when the LLM response cannot be parsed or validated.

    Covers empty bodies, JSON parse failures, non-binary classification
    answers and Pydantic schema validation errors.  Never retried.

    Attributes:
        raw_response: The raw LLM output that failed to parse.
    """

    def __init__(self, message: str, raw_response: str = "") -> None:
        super().__init__(message)
        self.raw_response = raw_response


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


class DuplicateRecordError(WaEventsError):
    """Raised when a save collides with an existing row.

    This is an expected outcome when the same message (or the same event)
    arrives twice, not a storage failure.

    Attributes:
        key: The unique column that collided (``"slug"`` or
            ``"whatsapp_message_id"``).
        value: The colliding value.
    """

    def __init__(self, key: str, value: str) -> None:
        super().__init__(f"Event already exists ({key}={value!r})")
        self.key = key
        self.value = value


class EventNotFoundError(WaEventsError):
    """Raised when no stored event matches a lookup or delete."""

    def __init__(self, key: str, value: str) -> None:
        super().__init__(f"Event not found ({key}={value!r})")
        self.key = key
        self.value = value


class StorageError(WaEventsError):
    """Raised for database failures other than duplicates and misses."""
