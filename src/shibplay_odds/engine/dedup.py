"""Per-key fetch deduplication shared across engine instances.

Keep at most one in-flight load per round key. Concurrent callers for the
same key await one shared task, so two views of the same round cost one
network round-trip. Each caller waits through ``asyncio.shield``: a caller
that is cancelled (its engine was suspended or disposed) detaches without
aborting the load other callers still need.

The last successful result per key is kept with its fetch time so that a
passive read inside the staleness window needs no network call.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class CachedResult(Generic[T]):
    """Last successful load for a key and when it completed (monotonic seconds)."""

    value: T
    fetched_at: float


class FetchDeduplicator(Generic[T]):
    """Share one in-flight load per key between concurrent callers.

    Example::

        dedup = FetchDeduplicator(load_round)
        a, b = await asyncio.gather(dedup.fetch("42"), dedup.fetch("42"))
        # load_round("42") ran once; a is b

    Args:
        loader: Coroutine function producing the value for a key.
        clock: Monotonic clock used to age cached results.
        retention: Seconds a result is kept. Older results are dropped on
            the next load or lookup, so the cache holds only recently
            fetched keys. ``None`` keeps results until invalidated.

    """

    def __init__(
        self,
        loader: Callable[[str], Awaitable[T]],
        *,
        clock: Callable[[], float] = time.monotonic,
        retention: float | None = None,
    ) -> None:
        """Initialize an empty in-flight map and result cache.

        Args:
            loader: Coroutine function producing the value for a key.
            clock: Monotonic clock used to age cached results.
            retention: Seconds a result is kept, or ``None`` for no limit.

        """
        self._loader = loader
        self._clock = clock
        self._retention = retention
        self._in_flight: dict[str, asyncio.Task[T]] = {}
        self._subscribers: dict[str, int] = {}
        self._results: dict[str, CachedResult[T]] = {}

    async def fetch(self, key: str) -> T:
        """Return the value for ``key``, joining an outstanding load if any.

        Args:
            key: Round key.

        Returns:
            The loaded value, identical for every caller of the same load.

        Raises:
            Exception: Whatever the shared load raised.

        """
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.create_task(self._load(key), name=f"fetch:{key}")
            self._in_flight[key] = task
            task.add_done_callback(lambda t, k=key: self._settle(k, t))
        else:
            logger.debug("Joining in-flight fetch for %s", key)

        self._subscribers[key] = self._subscribers.get(key, 0) + 1
        try:
            return await asyncio.shield(task)
        finally:
            self._detach(key)

    def cached(self, key: str, max_age: float) -> T | None:
        """Return the last result for ``key`` if younger than ``max_age`` seconds.

        Args:
            key: Round key.
            max_age: Staleness window in seconds.

        Returns:
            The cached value, or ``None`` when absent or stale.

        """
        self._prune()
        entry = self._results.get(key)
        if entry is None or self._clock() - entry.fetched_at >= max_age:
            return None
        return entry.value

    def in_flight(self, key: str) -> bool:
        """Return True while a load for ``key`` is outstanding."""
        return key in self._in_flight

    def subscribers(self, key: str) -> int:
        """Return how many callers are currently awaiting ``key``."""
        return self._subscribers.get(key, 0)

    def cached_keys(self) -> list[str]:
        """Return the keys that currently hold a cached result."""
        return list(self._results)

    def invalidate(self, key: str) -> None:
        """Forget the cached result for ``key``."""
        self._results.pop(key, None)

    async def _load(self, key: str) -> T:
        value = await self._loader(key)
        self._results[key] = CachedResult(value=value, fetched_at=self._clock())
        self._prune()
        return value

    def _prune(self) -> None:
        """Drop results older than the retention window."""
        if self._retention is None:
            return
        cutoff = self._clock() - self._retention
        expired = [k for k, entry in self._results.items() if entry.fetched_at < cutoff]
        for k in expired:
            del self._results[k]

    def _settle(self, key: str, task: asyncio.Task[T]) -> None:
        """Clear the in-flight entry once its own task finishes."""
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        # Retrieve the exception so an unobserved failure is not reported
        # as "never retrieved" when every subscriber detached first.
        if not task.cancelled():
            task.exception()

    def _detach(self, key: str) -> None:
        remaining = self._subscribers.get(key, 0) - 1
        if remaining > 0:
            self._subscribers[key] = remaining
        else:
            self._subscribers.pop(key, None)
