"""Non-blocking per-message dispatch.

The connection manager hands every inbound envelope to
:meth:`MessageDispatcher.submit`, which only enqueues.  A pump task pulls
envelopes off the queue and starts one independent task per envelope, so
a slow LLM call never holds up the connection or other messages.  A
failing handler is logged and forgotten; it never reaches the caller.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

logger = logging.getLogger(__name__)

Envelope = Mapping[str, Any]
MessageHandler = Callable[[Envelope], Awaitable[Any]]


class MessageDispatcher:
    """Run *handler* concurrently for each submitted envelope.

    Args:
        handler: Coroutine function called once per envelope.
    """

    def __init__(self, handler: MessageHandler) -> None:
        self._handler = handler
        self._queue: asyncio.Queue[Envelope] = asyncio.Queue()
        self._pump: asyncio.Task[None] | None = None
        # Held so running handlers are not garbage collected.
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> int:
        """Envelopes queued or being handled."""
        return self._queue.qsize() + len(self._tasks)

    def start(self) -> None:
        """Start the pump task.  Safe to call more than once."""
        if self._pump is None or self._pump.done():
            self._pump = asyncio.create_task(self._run_pump(), name="message-dispatcher")

    def submit(self, envelope: Envelope) -> None:
        """Queue *envelope* for handling without waiting for it."""
        self._queue.put_nowait(envelope)

    async def _run_pump(self) -> None:
        while True:
            envelope = await self._queue.get()
            task = asyncio.create_task(self._run_handler(envelope))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            self._queue.task_done()

    async def _run_handler(self, envelope: Envelope) -> None:
        try:
            await self._handler(envelope)
        except Exception:
            message_id = (envelope.get("key") or {}).get("id", "?")
            logger.exception("Unhandled error while handling message %s", message_id)

    async def drain(self) -> None:
        """Wait until every queued and running handler has finished."""
        if self._pump is not None and not self._pump.done():
            await self._queue.join()
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def close(self) -> None:
        """Let in-flight handlers finish, then stop the pump."""
        await self.drain()
        if self._pump is not None:
            self._pump.cancel()
            try:
                await self._pump
            except asyncio.CancelledError:
                pass
            self._pump = None
