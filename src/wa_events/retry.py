"""Retry policy shared by the LLM call sites and the reconnect loop.

A :class:`RetryPolicy` bundles the three things that decide whether and
when to try again:

- a **retryability predicate** that classifies an exception,
- a **maximum attempt count** (first attempt included),
- a **delay function** mapping the zero-based retry index to seconds.

The LLM client runs calls through :meth:`RetryPolicy.call`; the connection
manager drives its own loop but asks the same policy
(:meth:`RetryPolicy.can_retry`, :meth:`RetryPolicy.delay_for`) so both
layers count and wait the same way.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DelayFunction = Callable[[int], float]


def exponential_backoff(base_delay: float, factor: float = 2.0) -> DelayFunction:
    """Return ``n -> base_delay * factor ** n``.

    Args:
        base_delay: Delay before the first retry, in seconds.
        factor: Growth factor per retry.  Defaults to 2.0 (doubling).
    """

    def delay(retry_index: int) -> float:
        return base_delay * factor**retry_index

    return delay


def _never(_exc: BaseException) -> bool:
    return False


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry with a pluggable predicate and delay function.

    Args:
        max_attempts: Total attempts allowed, including the first.  Must be
            at least 1.
        delay: Maps the zero-based retry index to a delay in seconds.
        is_retryable: Returns ``True`` for exceptions worth retrying.
            Defaults to never retrying.
        sleep: Awaitable sleep function.  Swapped out in tests.
    """

    max_attempts: int
    delay: DelayFunction
    is_retryable: Callable[[BaseException], bool] = _never
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")

    @property
    def max_retries(self) -> int:
        """Number of retries after the first attempt."""
        return self.max_attempts - 1

    def can_retry(self, retry_index: int) -> bool:
        """Whether another attempt is allowed after *retry_index* retries."""
        return retry_index < self.max_retries

    def delay_for(self, retry_index: int, error: BaseException | None = None) -> float:
        """Return the wait before retry number ``retry_index + 1``.

        A ``retry_after`` hint carried by *error* replaces the computed
        delay when it is longer.
        """
        delay = self.delay(retry_index)
        hint = getattr(error, "retry_after", None)
        if hint is not None and hint > delay:
            return float(hint)
        return delay

    async def call(
        self,
        func: Callable[[], Awaitable[T]],
        description: str = "call",
    ) -> T:
        """Await ``func()`` and retry it according to this policy.

        Args:
            func: Zero-argument coroutine factory; called once per attempt.
            description: Short label used in log messages.

        Returns:
            Whatever the first successful attempt returns.

        Raises:
            Exception: The last error, unchanged, once it is not retryable
                or the attempt bound is reached.
        """
        retry_index = 0
        while True:
            try:
                return await func()
            except Exception as exc:
                if not self.is_retryable(exc):
                    raise
                if not self.can_retry(retry_index):
                    logger.error(
                        "%s failed after %d attempt(s): %s",
                        description,
                        retry_index + 1,
                        exc,
                    )
                    raise
                delay = self.delay_for(retry_index, exc)
                retry_index += 1
                logger.warning(
                    "%s failed, retrying in %.1fs (retry %d/%d): %s",
                    description,
                    delay,
                    retry_index,
                    self.max_retries,
                    exc,
                )
                await self.sleep(delay)
