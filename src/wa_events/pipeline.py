"""Message pipeline and listener orchestration.

:class:`MessageProcessor` takes one raw envelope through every stage:

1. **Normalize** -- build a :class:`CanonicalMessage` (malformed envelopes
   are dropped).
2. **Filter** -- drop anything not posted in a monitored group.
3. **Classify** -- ask the LLM whether the text describes an event.
4. **Extract** -- ask the LLM for the structured event.
5. **Store** -- persist it; duplicates are an expected outcome.

Each stage failure ends that message's handling with a
:class:`ProcessingOutcome` and a log line; nothing propagates to the
connection.  :func:`run_listener` wires the processor, dispatcher,
connection manager and event store together for the ``run`` command.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import sys
import threading
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any, TextIO, TypeVar
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from wa_events.config import ConfigError, Settings
from wa_events.connection import ConnectionManager, reconnect_policy
from wa_events.credentials import CredentialStore
from wa_events.dispatcher import MessageDispatcher
from wa_events.exceptions import (
    DuplicateRecordError,
    ExternalApiError,
    ParseError,
    SchemaValidationError,
    StorageError,
)
from wa_events.groups import (
    GroupFilter,
    format_groups_for_discovery,
    list_all_groups,
    select_group_interactively,
)
from wa_events.llm import GeminiClient
from wa_events.models.event import EventToSave
from wa_events.normalizer import format_message_for_log, normalize_message
from wa_events.storage import EventStore, chat_to_markdown, create_engine_from_settings
from wa_events.transport import TransportFactory, TransportSession, load_transport_factory

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ProcessingOutcome(enum.Enum):
    """How the handling of one envelope ended."""

    PARSE_FAILED = "parse_failed"
    FILTERED = "filtered"
    NOT_AN_EVENT = "not_an_event"
    EXTRACTION_FAILED = "extraction_failed"
    DUPLICATE = "duplicate"
    STORAGE_FAILED = "storage_failed"
    STORED = "stored"


class MessageProcessor:
    """Run the normalize/filter/classify/extract/store stages.

    Args:
        group_filter: Allow-list shared with the discovery hook.
        llm: Client for the classify and extract calls.
        store: Event store; called on a worker thread.
        timezone: IANA name used to compute "today" for extraction.
        language: Language for extracted free-text fields.
        clock: Returns the current time (timezone-aware).

    Raises:
        ConfigError: If *timezone* is not a known IANA zone.
    """

    def __init__(
        self,
        group_filter: GroupFilter,
        llm: GeminiClient,
        store: EventStore,
        timezone: str = "America/Santiago",
        language: str = "Spanish",
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        try:
            self._tz = ZoneInfo(timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ConfigError(f"Unknown TIMEZONE {timezone!r}") from exc
        self._timezone = timezone
        self._filter = group_filter
        self._llm = llm
        self._store = store
        self._language = language
        self._clock = clock

    async def handle(self, envelope: Mapping[str, Any]) -> ProcessingOutcome:
        """Process one raw envelope and report how it ended."""
        try:
            message = normalize_message(envelope)
        except ParseError as exc:
            logger.warning("Dropping malformed message: %s", exc)
            return ProcessingOutcome.PARSE_FAILED

        if not self._filter.admits(message):
            logger.debug("Ignoring message %s from %s", message.id, message.origin_jid)
            return ProcessingOutcome.FILTERED

        logger.info(format_message_for_log(message))
        text = message.text_content or ""

        try:
            is_event = await self._llm.classify_message(text)
        except (ExternalApiError, SchemaValidationError) as exc:
            logger.warning("Classification failed for message %s: %s", message.id, exc)
            return ProcessingOutcome.EXTRACTION_FAILED

        if not is_event:
            return ProcessingOutcome.NOT_AN_EVENT

        current_date = self._clock().astimezone(self._tz).date().isoformat()
        try:
            event = await self._llm.extract_event(
                text, current_date, self._timezone, self._language
            )
        except (ExternalApiError, SchemaValidationError) as exc:
            logger.warning("Extraction failed for message %s: %s", message.id, exc)
            return ProcessingOutcome.EXTRACTION_FAILED

        # Direct-message origins never pass the filter, so group_jid is set.
        item = EventToSave(
            event=event,
            message_body=chat_to_markdown(text),
            whatsapp_message_id=message.id,
            whatsapp_group_jid=message.group_jid or message.origin_jid,
            whatsapp_sender_jid=message.author or message.origin_jid,
        )

        try:
            await asyncio.to_thread(self._store.save_event, item)
        except DuplicateRecordError as exc:
            logger.debug("Skipping duplicate event: %s", exc)
            return ProcessingOutcome.DUPLICATE
        except StorageError as exc:
            logger.error("Failed to store event from message %s: %s", message.id, exc)
            return ProcessingOutcome.STORAGE_FAILED

        return ProcessingOutcome.STORED


# ---------------------------------------------------------------------------
# Listener
# ---------------------------------------------------------------------------


async def _run_in_daemon_thread(func: Callable[..., T], *args: Any) -> T:
    """Run a blocking *func* on a daemon thread and await its result.

    The thread is a daemon: a call still blocked in ``input()`` does not
    keep the interpreter alive once the listener exits.
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future[T] = loop.create_future()

    def resolve(result: Any, error: Exception | None) -> None:
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(result)

    def target() -> None:
        result: Any = None
        error: Exception | None = None
        try:
            result = func(*args)
        except Exception as exc:
            error = exc
        try:
            loop.call_soon_threadsafe(resolve, result, error)
        except RuntimeError:
            logger.debug("Event loop closed before %r returned", func)

    threading.Thread(target=target, name="group-selector", daemon=True).start()
    return await future


class ConnectedHook:
    """Post-connect work: the listening banner and group discovery.

    In discovery mode every reachable group is listed and the operator may
    pick one to monitor; the choice is applied to *group_filter*.
    Otherwise the monitored groups are logged, and all groups are listed
    too when *list_groups_on_start* is set.
    """

    def __init__(
        self,
        group_filter: GroupFilter,
        list_groups_on_start: bool = False,
        input_func: Callable[[str], str] = input,
        output: TextIO | None = None,
    ) -> None:
        self._filter = group_filter
        self._list_groups = list_groups_on_start
        self._input = input_func
        self._output = output
        self._selecting = asyncio.Lock()

    async def __call__(self, session: TransportSession) -> None:
        out = self._output or sys.stdout
        if not self._filter.discovery_mode:
            monitored = sorted(self._filter.snapshot)
            noun = "group" if len(monitored) == 1 else "groups"
            logger.info("Listening to %d %s", len(monitored), noun)
            for jid in monitored:
                logger.info("   - %s", jid)
            if self._list_groups:
                groups = await list_all_groups(session)
                print(format_groups_for_discovery(groups), file=out)
            return

        logger.info("Discovery mode: no groups configured, listing all groups")
        if self._selecting.locked():
            return
        async with self._selecting:
            groups = await list_all_groups(session)
            print(format_groups_for_discovery(groups), file=out)
            chosen = await _run_in_daemon_thread(
                select_group_interactively, groups, self._input, out
            )
            if chosen is not None and self._filter.discovery_mode:
                self._filter.select(chosen.id)


async def run_listener(
    settings: Settings,
    transport_factory: TransportFactory | None = None,
    input_func: Callable[[str], str] = input,
    output: TextIO | None = None,
) -> None:
    """Run the listener service until a fatal condition.

    Args:
        settings: Loaded application settings.
        transport_factory: Session factory; loaded from
            ``settings.transport`` when omitted.
        input_func: Reads the operator's group choice in discovery mode.
        output: Stream for discovery listings.  Defaults to stdout.

    Raises:
        ConfigError: If the transport, database or timezone settings are
            unusable.
        ConnectionTerminalError: The session was logged out.
        ReconnectExhaustedError: The reconnect bound was exceeded.
    """
    logger.info("Starting WhatsApp group event listener")
    factory = transport_factory or load_transport_factory(settings.transport)

    engine = create_engine_from_settings(settings.database)
    store = EventStore(engine)
    await asyncio.to_thread(store.create_schema)

    group_filter = GroupFilter(settings.allowed_group_jids)
    processor = MessageProcessor(
        group_filter,
        GeminiClient.from_settings(settings),
        store,
        timezone=settings.timezone,
        language=settings.event_language,
    )
    dispatcher = MessageDispatcher(processor.handle)
    manager = ConnectionManager(
        factory,
        CredentialStore(settings.auth_dir),
        dispatcher,
        retry_policy=reconnect_policy(
            settings.reconnect_max_retries, settings.reconnect_base_delay
        ),
        on_connected=ConnectedHook(
            group_filter,
            list_groups_on_start=settings.list_groups_on_start,
            input_func=input_func,
            output=output,
        ),
    )

    dispatcher.start()
    try:
        await manager.run()
    finally:
        logger.info("Waiting for %d in-flight message(s)", dispatcher.pending)
        await dispatcher.close()
        engine.dispose()
