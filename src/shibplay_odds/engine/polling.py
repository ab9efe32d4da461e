"""Polling state machine driving periodic odds refreshes.

Decide whether to poll at all and at what cadence, from two external
signals (``enabled`` and ``visible``) plus an explicit suspend/resume hold.
All waiting happens on the running asyncio loop; nothing blocks.

States::

    DISABLED   enabled is False; no timers
    SUSPENDED  enabled, but hidden or held; no network, last snapshot kept
    ACTIVE     enabled and visible; ticks on a fixed cadence
    DISPOSED   terminal; entered on teardown

The cadence is anchored at the first activation. Resuming after a
suspension waits for the next tick of that same cadence, so rapid
visibility churn costs no extra fetches. The first activation fetches
immediately only when no snapshot has ever been obtained.
"""

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable

from shibplay_odds.core.models import PollingState

logger = logging.getLogger(__name__)


class PollingController:
    """Own the suspend/resume transitions and the tick timer.

    ``start()`` must be called from a running event loop; until then the
    controller reports ``DISABLED`` and schedules nothing.

    Args:
        on_tick: Coroutine function run on every tick. Exceptions it raises
            are logged and never stop the cadence.
        interval: Seconds between ticks while active.
        needs_initial: Returns True while no snapshot has been obtained;
            consulted on each activation.
        enabled: Initial enabled flag.
        visible: Initial visibility.
        fetch_on_resume: Also fetch immediately when resuming after the
            first activation.
        name: Label used in log lines (usually the round key).

    """

    def __init__(
        self,
        on_tick: Callable[[], Awaitable[None]],
        *,
        interval: float,
        needs_initial: Callable[[], bool],
        enabled: bool = True,
        visible: bool = True,
        fetch_on_resume: bool = False,
        name: str = "",
    ) -> None:
        """Initialize the controller without scheduling anything.

        Args:
            on_tick: Coroutine function run on every tick.
            interval: Seconds between ticks while active.
            needs_initial: Returns True while no snapshot has been obtained.
            enabled: Initial enabled flag.
            visible: Initial visibility.
            fetch_on_resume: Fetch immediately on every resume.
            name: Label used in log lines.

        """
        if interval <= 0:
            msg = f"interval must be positive, got {interval}"
            raise ValueError(msg)
        self._on_tick = on_tick
        self._interval = interval
        self._needs_initial = needs_initial
        self._enabled = enabled
        self._visible = visible
        self._held = False
        self._fetch_on_resume = fetch_on_resume
        self._name = name
        self._started = False
        self._state = PollingState.DISABLED
        self._anchor: float | None = None
        self._task: asyncio.Task[None] | None = None
        self.ticks = 0

    @property
    def state(self) -> PollingState:
        """Return the current polling state."""
        return self._state

    @property
    def enabled(self) -> bool:
        """Return the external enabled flag."""
        return self._enabled

    @property
    def visible(self) -> bool:
        """Return the last visibility signal."""
        return self._visible

    def start(self) -> None:
        """Begin reacting to signals and enter the state they call for."""
        if self._state is PollingState.DISPOSED or self._started:
            return
        self._started = True
        self._apply()

    def set_enabled(self, enabled: bool) -> None:
        """Update the enabled flag; False cancels any pending timer."""
        self._enabled = enabled
        self._apply()

    def set_visible(self, visible: bool) -> None:
        """Update the visibility signal."""
        self._visible = visible
        self._apply()

    def suspend(self) -> None:
        """Hold polling regardless of visibility until ``resume()``."""
        self._held = True
        self._apply()

    def resume(self) -> None:
        """Release a hold placed by ``suspend()``."""
        self._held = False
        self._apply()

    def dispose(self) -> None:
        """Cancel the timer and enter the terminal state. Idempotent."""
        if self._state is PollingState.DISPOSED:
            return
        self._cancel_task()
        logger.debug("Polling %s: %s -> disposed", self._name, self._state.value)
        self._state = PollingState.DISPOSED

    def next_tick_delay(self, now: float) -> float:
        """Return seconds from ``now`` until the next tick of the cadence.

        Deadlines already missed (for example during a slow tick) are
        skipped rather than fired back to back.

        Args:
            now: Current loop time.

        Returns:
            Positive delay in seconds.

        """
        anchor = now if self._anchor is None else self._anchor
        elapsed = max(now - anchor, 0.0)
        ticks_done = math.floor(elapsed / self._interval) + 1
        return anchor + ticks_done * self._interval - now

    def _target_state(self) -> PollingState:
        if not self._started or not self._enabled:
            return PollingState.DISABLED
        if self._held or not self._visible:
            return PollingState.SUSPENDED
        return PollingState.ACTIVE

    def _apply(self) -> None:
        """Move to the state the current signals call for."""
        if self._state is PollingState.DISPOSED:
            return
        target = self._target_state()
        if target is self._state:
            return
        logger.debug("Polling %s: %s -> %s", self._name, self._state.value, target.value)
        self._state = target
        if target is PollingState.ACTIVE:
            self._activate()
        else:
            self._cancel_task()

    def _activate(self) -> None:
        loop = asyncio.get_running_loop()
        first = self._anchor is None
        if first:
            self._anchor = loop.time()
        immediate = self._needs_initial() or (self._fetch_on_resume and not first)
        self._task = loop.create_task(self._run(immediate=immediate), name=f"poll:{self._name}")

    def _cancel_task(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self, *, immediate: bool) -> None:
        """Tick on the anchored cadence until cancelled."""
        loop = asyncio.get_running_loop()
        if immediate:
            await self._safe_tick()
        while True:
            await asyncio.sleep(self.next_tick_delay(loop.time()))
            await self._safe_tick()

    async def _safe_tick(self) -> None:
        self.ticks += 1
        try:
            await self._on_tick()
        except Exception:
            logger.exception("Polling tick for %s failed", self._name)
