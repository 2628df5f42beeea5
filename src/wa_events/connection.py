"""Connection manager: keeps one transport session alive across disconnects.

:class:`ConnectionManager` opens a session from the transport factory,
consumes its event stream and drives the connection state machine from
:mod:`wa_events.models.connection`:

- ``open`` moves to :class:`Connected` and resets the retry counter;
- a close caused by a logout is terminal and ends :meth:`ConnectionManager.run`
  with :class:`ConnectionTerminalError`;
- any other close, the stream simply ending, or the session failing to
  open or read is raised as :class:`ConnectionRetryableError`: the session
  is closed, the manager waits ``base * 2.5**n`` seconds and opens a fresh
  session, until the retry bound is exceeded.

Inbound envelopes are handed to the :class:`MessageDispatcher` without
waiting, credential rotations are persisted before the next event is
read, and pairing codes are shown to the operator.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, TextIO

from wa_events.config import ConfigError
from wa_events.credentials import CredentialStore
from wa_events.dispatcher import MessageDispatcher
from wa_events.exceptions import (
    ConnectionRetryableError,
    ConnectionTerminalError,
    ReconnectExhaustedError,
    WaEventsError,
)
from wa_events.models.connection import (
    Connected,
    Connecting,
    ConnectionState,
    DisconnectedRetryable,
    DisconnectedTerminal,
    InvalidTransitionError,
    state_from_update,
    transition,
)
from wa_events.retry import RetryPolicy, exponential_backoff
from wa_events.transport import (
    ConnectionUpdate,
    CredentialsUpdate,
    MessagesUpsert,
    PairingCode,
    TransportFactory,
    TransportSession,
)

logger = logging.getLogger(__name__)

RECONNECT_BACKOFF_FACTOR = 2.5

OnConnected = Callable[[TransportSession], Awaitable[None]]

# Raised as-is from a session; anything else becomes a retryable disconnect.
_PASS_THROUGH = (WaEventsError, ConfigError)


def reconnect_policy(max_retries: int = 5, base_delay: float = 5.0) -> RetryPolicy:
    """Build the reconnect policy: ``base * 2.5**n`` before reconnect *n + 1*."""
    return RetryPolicy(
        max_attempts=max_retries + 1,
        delay=exponential_backoff(base_delay, factor=RECONNECT_BACKOFF_FACTOR),
        is_retryable=lambda exc: isinstance(exc, ConnectionRetryableError),
    )


class ConnectionManager:
    """Supervise the transport session.

    Args:
        transport_factory: Called with the saved credentials (or ``None``)
            to open each session.
        credential_store: Where credentials are loaded from and rotated
            credentials are saved to.
        dispatcher: Receives every inbound envelope.
        retry_policy: Reconnect bound and delays.  Defaults to
            :func:`reconnect_policy`.
        on_connected: Optional coroutine run in the background after each
            successful connect.
        pairing_output: Stream pairing codes are printed to.  Defaults to
            ``sys.stdout``.
    """

    def __init__(
        self,
        transport_factory: TransportFactory,
        credential_store: CredentialStore,
        dispatcher: MessageDispatcher,
        retry_policy: RetryPolicy | None = None,
        on_connected: OnConnected | None = None,
        pairing_output: TextIO | None = None,
    ) -> None:
        self._factory = transport_factory
        self._credentials = credential_store
        self._dispatcher = dispatcher
        self._retry = retry_policy or reconnect_policy()
        self._on_connected = on_connected
        self._pairing_output = pairing_output
        self._state: ConnectionState = Connecting()
        self._retries = 0
        self._session: TransportSession | None = None
        self._hook_tasks: set[asyncio.Task[None]] = set()

    @property
    def state(self) -> ConnectionState:
        """The current connection state."""
        return self._state

    @property
    def retries(self) -> int:
        """Reconnects attempted since the last successful connect."""
        return self._retries

    @property
    def session(self) -> TransportSession | None:
        """The live session, if any."""
        return self._session

    async def run(self) -> None:
        """Connect and keep reconnecting until a fatal condition.

        Never returns normally.  Each session ends with an exception; the
        retry policy's ``is_retryable`` decides whether it leads to a
        reconnect or propagates.

        Raises:
            ConnectionTerminalError: The session was logged out.
            ReconnectExhaustedError: The reconnect bound was exceeded.
        """
        while True:
            try:
                await self._run_session()
            except Exception as exc:
                if not self._retry.is_retryable(exc):
                    raise
                if not self._retry.can_retry(self._retries):
                    logger.error(
                        "Reconnect limit reached (%d retries), giving up", self._retries
                    )
                    raise ReconnectExhaustedError(self._retries) from exc

                delay = self._retry.delay_for(self._retries, exc)
                self._retries += 1
                logger.info(
                    "Reconnecting in %.1fs (attempt %d/%d, status=%s)",
                    delay,
                    self._retries,
                    self._retry.max_retries,
                    getattr(exc, "status_code", None),
                )
                await self._retry.sleep(delay)
                self._set_state(Connecting())

    # ------------------------------------------------------------------
    # Session loop
    # ------------------------------------------------------------------

    async def _run_session(self) -> None:
        """Run one session until it disconnects.

        Raises:
            ConnectionRetryableError: The session closed, its event stream
                ended, or opening or reading it failed unexpectedly.
            ConnectionTerminalError: The session was logged out.
        """
        credentials = await asyncio.to_thread(self._credentials.load)
        logger.info("Connecting to WhatsApp...")
        try:
            session = self._factory(credentials)
        except _PASS_THROUGH:
            raise
        except Exception as exc:
            raise self._session_failed("Could not open transport session", exc) from exc

        self._session = session
        try:
            async for event in session.events():
                if isinstance(event, ConnectionUpdate):
                    self._handle_connection_update(event, session)
                elif isinstance(event, PairingCode):
                    self._show_pairing_code(event.code)
                elif isinstance(event, CredentialsUpdate):
                    await self._persist_credentials(event.credentials)
                elif isinstance(event, MessagesUpsert):
                    for envelope in event.messages:
                        self._dispatcher.submit(envelope)
                else:
                    logger.debug("Ignoring unknown transport event %r", event)
        except _PASS_THROUGH:
            raise
        except Exception as exc:
            raise self._session_failed("Transport session failed", exc) from exc
        finally:
            self._session = None
            await self._close_session(session)

        logger.warning("Transport event stream ended without a close update")
        self._set_state(DisconnectedRetryable())
        raise ConnectionRetryableError("Transport event stream ended")

    def _session_failed(self, message: str, exc: Exception) -> ConnectionRetryableError:
        logger.warning("%s: %s", message, exc)
        self._set_state(DisconnectedRetryable())
        return ConnectionRetryableError(f"{message}: {exc}")

    def _handle_connection_update(
        self,
        update: ConnectionUpdate,
        session: TransportSession,
    ) -> None:
        new_state = state_from_update(update.connection, update.status_code)
        try:
            self._set_state(new_state)
        except InvalidTransitionError as exc:
            logger.warning("Ignoring connection update: %s", exc)
            return

        if isinstance(new_state, Connected):
            self._retries = 0
            logger.info("Connected to WhatsApp")
            self._spawn_on_connected(session)
        elif isinstance(new_state, Connecting):
            logger.debug("Connecting to WhatsApp...")
        elif isinstance(new_state, DisconnectedTerminal):
            logger.error("Logged out of WhatsApp; pair the device again to continue")
            raise ConnectionTerminalError(status_code=new_state.status_code)
        elif isinstance(new_state, DisconnectedRetryable):
            if new_state.is_conflict:
                logger.warning(
                    "Disconnected: session taken over by another device (status=%s)",
                    new_state.status_code,
                )
            else:
                logger.error(
                    "Disconnected from WhatsApp (status=%s)", new_state.status_code
                )
            raise ConnectionRetryableError(
                status_code=new_state.status_code,
                is_conflict=new_state.is_conflict,
            )

    def _set_state(self, new_state: ConnectionState) -> None:
        self._state = transition(self._state, new_state)

    # ------------------------------------------------------------------
    # Side effects
    # ------------------------------------------------------------------

    async def _persist_credentials(self, credentials: Mapping[str, Any]) -> None:
        try:
            await asyncio.to_thread(self._credentials.save, credentials)
        except (OSError, TypeError, ValueError) as exc:
            logger.error("Failed to save credentials: %s", exc)

    def _show_pairing_code(self, code: str) -> None:
        out = self._pairing_output or sys.stdout
        print(
            "\nLink this device: open WhatsApp > Linked devices and scan or enter:",
            file=out,
        )
        print(code, file=out, flush=True)

    def _spawn_on_connected(self, session: TransportSession) -> None:
        if self._on_connected is None:
            return
        task = asyncio.create_task(self._run_on_connected(self._on_connected, session))
        self._hook_tasks.add(task)
        task.add_done_callback(self._hook_tasks.discard)

    @staticmethod
    async def _run_on_connected(hook: OnConnected, session: TransportSession) -> None:
        try:
            await hook(session)
        except Exception:
            logger.exception("Post-connect hook failed")

    @staticmethod
    async def _close_session(session: TransportSession) -> None:
        try:
            await session.close()
        except Exception as exc:
            logger.warning("Error while closing transport session: %s", exc)
