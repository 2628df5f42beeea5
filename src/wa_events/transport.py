"""Chat transport interface.

The WhatsApp wire protocol is not implemented here.  A concrete transport
lives in its own package and is plugged in through a factory named by a
dotted path (``WHATSAPP_TRANSPORT=package.module:factory``).  The factory
is called with the persisted credentials (or ``None`` on first pairing)
and returns a :class:`TransportSession`.

Transport libraries are usually callback driven.  :class:`QueueTransport`
adapts them: callbacks call :meth:`QueueTransport.emit`, and the
connection manager consumes the same events from
:meth:`QueueTransport.events`.  The adapter only translates; it makes no
decisions.
"""

from __future__ import annotations

import asyncio
import importlib
import threading
from collections.abc import AsyncIterator, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from wa_events.config import ConfigError

# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ConnectionUpdate:
    """The session's connection status changed.

    Attributes:
        connection: ``"connecting"``, ``"open"`` or ``"close"``.
        status_code: Disconnect reason for ``"close"`` updates.
    """

    connection: str
    status_code: int | None = None


@dataclass(frozen=True)
class PairingCode:
    """An authentication challenge (pairing code or QR payload) to show."""

    code: str


@dataclass(frozen=True)
class CredentialsUpdate:
    """The session credentials rotated and must be persisted."""

    credentials: Mapping[str, Any]


@dataclass(frozen=True)
class MessagesUpsert:
    """A batch of raw inbound message envelopes."""

    messages: Sequence[Mapping[str, Any]] = field(default_factory=tuple)


TransportEvent = ConnectionUpdate | PairingCode | CredentialsUpdate | MessagesUpsert


# ---------------------------------------------------------------------------
# Session protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class TransportSession(Protocol):
    """One live connection to the chat platform."""

    def events(self) -> AsyncIterator[TransportEvent]:
        """Yield transport events until the session ends."""
        ...

    async def fetch_groups(self) -> Mapping[str, Mapping[str, Any]]:
        """Return metadata for every group the account participates in.

        Keys are group JIDs; values carry at least ``subject`` and
        ``participants``.
        """
        ...

    async def close(self) -> None:
        """Tear the connection down."""
        ...


TransportFactory = Callable[[Mapping[str, Any] | None], TransportSession]


class QueueTransport:
    """Base adapter that turns transport callbacks into an event stream.

    Subclasses wire their library's callbacks to :meth:`emit` and
    implement :meth:`fetch_groups`.  :meth:`emit` is safe to call from the
    library's own threads when the transport was created inside the event
    loop or once :meth:`events` has started.
    """

    _END = object()

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        try:
            self._loop: asyncio.AbstractEventLoop | None = asyncio.get_running_loop()
        except RuntimeError:
            self._loop = None
        self._owner_thread = threading.get_ident()
        self._closed = False

    def emit(self, event: TransportEvent) -> None:
        """Queue *event* for the consumer."""
        self._put(event)

    def end(self) -> None:
        """Signal that no more events will arrive."""
        self._put(self._END)

    def _put(self, item: Any) -> None:
        loop = self._loop
        if loop is None:
            if threading.get_ident() != self._owner_thread:
                raise RuntimeError(
                    "emit() called from another thread before the event loop is known; "
                    "create the transport inside the loop or start events() first"
                )
            self._queue.put_nowait(item)
            return

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is not loop and loop.is_running():
            loop.call_soon_threadsafe(self._queue.put_nowait, item)
        else:
            self._queue.put_nowait(item)

    async def events(self) -> AsyncIterator[TransportEvent]:
        self._loop = asyncio.get_running_loop()
        while True:
            item = await self._queue.get()
            if item is self._END:
                return
            yield item

    async def fetch_groups(self) -> Mapping[str, Mapping[str, Any]]:
        raise NotImplementedError

    async def close(self) -> None:
        if not self._closed:
            self._closed = True
            self.end()


def load_transport_factory(path: str) -> TransportFactory:
    """Import the transport factory named by *path*.

    Args:
        path: ``"package.module:attribute"``.

    Returns:
        The callable found at that location.

    Raises:
        ConfigError: If the path is malformed, the module cannot be
            imported, or the attribute is missing or not callable.
    """
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigError(
            f"WHATSAPP_TRANSPORT must look like 'package.module:factory', got {path!r}"
        )

    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigError(f"Cannot import transport module {module_name!r}: {exc}") from exc

    factory = getattr(module, attr, None)
    if not callable(factory):
        raise ConfigError(f"Transport factory {path!r} is missing or not callable")
    return factory
