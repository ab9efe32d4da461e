"""Bounded exponential backoff for a single polling tick.

Retry a failing fetch a fixed number of times inside one tick, doubling the
wait after each failure up to a cap. Retries never span ticks: once the
budget is spent the tick fails and the next tick starts fresh on the normal
cadence.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from shibplay_odds.engine.exceptions import RetryExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_DEFAULT_MAX_ATTEMPTS = 3
_DEFAULT_BASE_DELAY = 1.0
_DEFAULT_MAX_DELAY = 30.0


def backoff_delay(attempt_index: int, base_delay: float, max_delay: float) -> float:
    """Return the wait after failed attempt ``attempt_index`` (0-based).

    Args:
        attempt_index: Index of the attempt that just failed.
        base_delay: Delay after the first failure, in seconds.
        max_delay: Upper bound on any single delay, in seconds.

    Returns:
        ``min(base_delay * 2**attempt_index, max_delay)``.

    """
    return min(base_delay * (2**attempt_index), max_delay)


class RetryScheduler:
    """Run an attempt with bounded exponential backoff.

    After every failed attempt the scheduler waits the backoff delay (1 s,
    2 s, 4 s with the defaults). When the last attempt has failed and its
    backoff has elapsed, ``RetryExhaustedError`` is raised, chained to the
    final failure. Cancellation is never retried.

    Because the last backoff is waited too, a tick whose attempts all fail
    surfaces its error 7 s (1 + 2 + 4) after the first failure with the
    defaults, and the caller stays refreshing for that long.

    Args:
        max_attempts: Attempts per tick.
        base_delay: Delay after the first failure, in seconds.
        max_delay: Upper bound on any single delay, in seconds.
        sleep: Coroutine used to wait; injectable for tests.

    """

    def __init__(
        self,
        *,
        max_attempts: int = _DEFAULT_MAX_ATTEMPTS,
        base_delay: float = _DEFAULT_BASE_DELAY,
        max_delay: float = _DEFAULT_MAX_DELAY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the scheduler.

        Args:
            max_attempts: Attempts per tick.
            base_delay: Delay after the first failure, in seconds.
            max_delay: Upper bound on any single delay, in seconds.
            sleep: Coroutine used to wait between attempts.

        """
        if max_attempts < 1:
            msg = f"max_attempts must be at least 1, got {max_attempts}"
            raise ValueError(msg)
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._sleep = sleep

    async def run(self, attempt: Callable[[], Awaitable[T]]) -> T:
        """Call ``attempt`` until it succeeds or the budget is spent.

        Args:
            attempt: Coroutine function performing one fetch.

        Returns:
            The first successful result.

        Raises:
            RetryExhaustedError: When every attempt failed.

        """
        delays: list[float] = []
        last_error: Exception | None = None
        for index in range(self.max_attempts):
            try:
                return await attempt()
            except Exception as exc:
                last_error = exc
                delay = backoff_delay(index, self.base_delay, self.max_delay)
                delays.append(delay)
                logger.warning(
                    "Fetch attempt %d/%d failed: %s; backing off %.1fs",
                    index + 1,
                    self.max_attempts,
                    exc,
                    delay,
                )
                await self._sleep(delay)

        raise RetryExhaustedError(self.max_attempts, tuple(delays)) from last_error
