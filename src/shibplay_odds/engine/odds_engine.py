"""Public odds engine consumed by a round view.

Wire a ``PollingController`` (gated by a ``VisibilityGate`` and the caller's
enabled flag) to a shared ``FetchDeduplicator`` whose loader retries the
data source with ``RetryScheduler`` and derives odds. New snapshots pass
through ``ChangeNotifier`` before reaching the caller's ``on_change``.

Every failure ends in a valid snapshot: a tick that exhausts its retries
records ``error`` and keeps the last good snapshot (or the static fallback).
Disposal is synchronous and final: no callback registered by a disposed
engine fires afterwards.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from shibplay_odds.core.models import Direction, OddsSnapshot, PollingState, RoundRecord
from shibplay_odds.core.odds import derive_odds, now_ms_epoch, static_odds
from shibplay_odds.core.protocols import RoundsSource, VisibilityGate, VisibilityHost
from shibplay_odds.engine.dedup import FetchDeduplicator
from shibplay_odds.engine.exceptions import EngineDisposedError, RetryExhaustedError
from shibplay_odds.engine.movement import snapshot_movement
from shibplay_odds.engine.notifier import ChangeNotifier, OddsChangeCallback
from shibplay_odds.engine.polling import PollingController
from shibplay_odds.engine.retry import RetryScheduler
from shibplay_odds.engine.settings import OddsEngineSettings
from shibplay_odds.engine.visibility import AlwaysVisibleGate, ObservedVisibilityGate

logger = logging.getLogger(__name__)

RoundLoader = Callable[[str], Awaitable[OddsSnapshot]]


def select_round(rounds: list[RoundRecord], round_id: str) -> RoundRecord | None:
    """Return the round whose ``round_id`` equals ``round_id``, if any."""
    for record in rounds:
        if record.round_id == round_id:
            return record
    return None


def make_round_loader(source: RoundsSource, retry: RetryScheduler) -> RoundLoader:
    """Build the loader a ``FetchDeduplicator`` runs once per in-flight key.

    The loader fetches every round through ``retry``, picks the requested
    one, and derives its odds. A round absent from the source resolves to
    the static fallback rather than an error.

    Args:
        source: Data source returning all known rounds.
        retry: Backoff policy applied to the source call.

    Returns:
        Coroutine function mapping a round key to its derived snapshot.

    """

    async def _load(round_id: str) -> OddsSnapshot:
        rounds = await retry.run(source.fetch_all_rounds)
        record = select_round(rounds, round_id)
        if record is None:
            logger.debug(
                "Round %s not in %d fetched rounds; using static odds", round_id, len(rounds)
            )
            return static_odds()
        return derive_odds(record.bear_amount, record.bull_amount, last_updated=now_ms_epoch())

    return _load


@dataclass
class PollState:
    """Mutable per-engine polling state.

    Attributes:
        enabled: Caller's enabled flag.
        visible: Last visibility signal.
        last_attempt_at: Epoch milliseconds of the last fetch attempt.
        retry_count: Retries spent by the last failed tick (0 after success).
        current_snapshot: Latest obtained snapshot.
        previous_snapshot: Snapshot replaced by ``current_snapshot``.
        error: Failure of the last tick, cleared by the next success.

    """

    enabled: bool
    visible: bool = True
    last_attempt_at: int | None = None
    retry_count: int = 0
    current_snapshot: OddsSnapshot | None = None
    previous_snapshot: OddsSnapshot | None = None
    error: Exception | None = None


class VisibilityHandle:
    """Handle a view attaches to its element to drive visibility gating."""

    def __init__(self, gate: VisibilityGate) -> None:
        """Wrap ``gate``."""
        self._gate = gate

    def attach(self, target: Any) -> None:
        """Start observing ``target`` (host-specific element reference)."""
        self._gate.observe(target)

    def detach(self) -> None:
        """Stop observing the attached element; polling proceeds as if visible."""
        self._gate.unobserve()


class OddsEngine:
    """Keep one round's odds fresh for a consuming view.

    Example::

        async with OddsEngine("42", source=client, on_change=show) as engine:
            engine.visibility_handle().attach(card)
            ...
            odds = engine.current()

    An engine built from a bare ``source`` owns a private deduplicator, so
    two such engines for the same round fetch independently. Engines that
    must share fetches and the staleness cache come from one
    ``RoundOddsService`` (or are handed the same ``deduplicator``).

    Args:
        round_id: Round key to poll.
        source: Data source; required unless ``deduplicator`` is given.
        enabled: Whether polling is wanted at all (e.g. upcoming rounds only).
        on_change: Called as ``on_change(new, old)`` when the odds change.
        visibility_optimization_enabled: Gate polling on visibility.
        visibility_threshold: Fraction of the element that must be visible.
            Defaults to ``settings.visibility_threshold``.
        settings: Timing and retry policy.
        deduplicator: Shared deduplicator for engines of the same source.
        visibility_host: Presentation surface able to observe elements.
        gate: Pre-built visibility gate, overriding host-based selection.

    """

    def __init__(
        self,
        round_id: str,
        source: RoundsSource | None = None,
        *,
        enabled: bool = True,
        on_change: OddsChangeCallback | None = None,
        visibility_optimization_enabled: bool = True,
        visibility_threshold: float | None = None,
        settings: OddsEngineSettings | None = None,
        deduplicator: FetchDeduplicator[OddsSnapshot] | None = None,
        visibility_host: VisibilityHost | None = None,
        gate: VisibilityGate | None = None,
    ) -> None:
        """Initialize the engine; nothing is scheduled until ``start()``."""
        self.round_id = round_id
        self._settings = settings or OddsEngineSettings()
        if deduplicator is None:
            if source is None:
                msg = "OddsEngine needs a source or a deduplicator"
                raise ValueError(msg)
            deduplicator = _deduplicator_for(source, self._settings)
        self._dedup = deduplicator
        self._on_change = on_change
        self._notifier = ChangeNotifier()
        self._gate = gate or _select_gate(
            visibility_host,
            enabled=visibility_optimization_enabled,
            threshold=(
                visibility_threshold
                if visibility_threshold is not None
                else self._settings.visibility_threshold
            ),
            margin=self._settings.visibility_margin,
        )
        self._poll = PollState(enabled=enabled, visible=self._gate.is_visible())
        self._controller = PollingController(
            self._scheduled_tick,
            interval=self._settings.poll_interval_seconds,
            needs_initial=lambda: self._poll.current_snapshot is None,
            enabled=enabled,
            visible=self._poll.visible,
            fetch_on_resume=self._settings.fetch_on_resume,
            name=round_id,
        )
        self._unsubscribe_gate = self._gate.subscribe(self._on_visibility)
        self._pending_initial = 0
        self._pending_refresh = 0
        self._animating = False
        self._animation_timer: asyncio.TimerHandle | None = None
        self._movement = (Direction.NONE, Direction.NONE)
        self._disposed = False

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    def current(self) -> OddsSnapshot:
        """Return the latest snapshot, or the static fallback if none yet."""
        return self._poll.current_snapshot or static_odds()

    def is_loading(self) -> bool:
        """Return True while the first fetch is outstanding and polling is active."""
        return self._pending_initial > 0 and self._controller.state is PollingState.ACTIVE

    def is_refreshing(self) -> bool:
        """Return True while a non-initial fetch is outstanding."""
        return self._pending_refresh > 0

    def is_animating(self) -> bool:
        """Return True briefly after the odds changed."""
        return self._animating

    def is_visible(self) -> bool:
        """Return the current visibility signal."""
        return self._gate.is_visible()

    def movement(self) -> tuple[Direction, Direction]:
        """Return ``(bull, bear)`` directions of the last change."""
        return self._movement

    @property
    def error(self) -> Exception | None:
        """Return the failure of the last tick, if it failed."""
        return self._poll.error

    @property
    def state(self) -> PollingState:
        """Return the polling state."""
        return self._controller.state

    @property
    def poll_state(self) -> PollState:
        """Return the engine's polling state record (treat as read-only)."""
        return self._poll

    def visibility_handle(self) -> VisibilityHandle:
        """Return the handle the view attaches to its element."""
        return VisibilityHandle(self._gate)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start reacting to signals. Must be called inside a running loop."""
        self._ensure_alive()
        self._controller.start()

    def set_enabled(self, enabled: bool) -> None:
        """Enable or disable polling."""
        if self._disposed:
            return
        self._poll.enabled = enabled
        self._controller.set_enabled(enabled)

    def suspend(self) -> None:
        """Pause polling regardless of visibility."""
        if not self._disposed:
            self._controller.suspend()

    def resume(self) -> None:
        """Release a ``suspend()``."""
        if not self._disposed:
            self._controller.resume()

    async def refresh(self, *, force: bool = False) -> OddsSnapshot:
        """Read the odds now, fetching only if needed.

        A passive read (``force=False``) is served from the shared result of
        the last fetch for this round while it is within the staleness
        window.

        Args:
            force: Always go to the network (joining an in-flight fetch).

        Returns:
            The current snapshot after the read.

        Raises:
            EngineDisposedError: If the engine has been disposed.

        """
        self._ensure_alive()
        await self._tick(force=force)
        return self.current()

    def dispose(self) -> None:
        """Release timers, visibility tracking, and fetch subscriptions.

        Synchronous and idempotent. In-flight shared fetches keep running
        for other consumers of the same round.
        """
        if self._disposed:
            return
        self._disposed = True
        self._controller.dispose()
        self._unsubscribe_gate()
        self._gate.dispose()
        if self._animation_timer is not None:
            self._animation_timer.cancel()
            self._animation_timer = None
        self._animating = False
        logger.debug("Odds engine for round %s disposed", self.round_id)

    async def __aenter__(self) -> "OddsEngine":
        """Start the engine."""
        self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Dispose the engine."""
        self.dispose()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _ensure_alive(self) -> None:
        if self._disposed:
            msg = f"Odds engine for round {self.round_id} has been disposed"
            raise EngineDisposedError(msg)

    def _on_visibility(self, visible: bool) -> None:
        if self._disposed:
            return
        self._poll.visible = visible
        self._controller.set_visible(visible)

    async def _scheduled_tick(self) -> None:
        """Run one cadence tick; the first one may reuse a fresh shared result."""
        await self._tick(force=self._poll.current_snapshot is not None)

    async def _tick(self, *, force: bool) -> None:
        """Fetch (or reuse) a snapshot and apply it."""
        if self._disposed:
            return
        initial = self._poll.current_snapshot is None
        snapshot: OddsSnapshot | None = None
        if not force:
            snapshot = self._dedup.cached(self.round_id, self._settings.stale_seconds)
        if snapshot is None:
            snapshot = await self._fetch(initial=initial)
            if snapshot is None:
                return
        if not self._disposed:
            self._apply(snapshot)

    async def _fetch(self, *, initial: bool) -> OddsSnapshot | None:
        """Fetch through the deduplicator, capturing failures on ``error``."""
        self._poll.last_attempt_at = now_ms_epoch()
        if initial:
            self._pending_initial += 1
        else:
            self._pending_refresh += 1
        started = time.monotonic()
        try:
            return await self._dedup.fetch(self.round_id)
        except Exception as exc:
            if self._disposed:
                return None
            self._poll.error = exc
            if isinstance(exc, RetryExhaustedError):
                self._poll.retry_count = exc.attempts - 1
            logger.error(
                "Odds fetch for round %s failed after %.1fs: %s; keeping last snapshot",
                self.round_id,
                time.monotonic() - started,
                exc,
            )
            return None
        finally:
            if initial:
                self._pending_initial -= 1
            else:
                self._pending_refresh -= 1

    def _apply(self, snapshot: OddsSnapshot) -> None:
        """Publish ``snapshot`` and notify on genuine change."""
        previous = self._poll.current_snapshot
        self._poll.previous_snapshot = previous
        self._poll.current_snapshot = snapshot
        self._poll.error = None
        self._poll.retry_count = 0
        # Movement and animation are visible to on_change.
        if previous is not None and not previous.same_odds(snapshot):
            self._movement = snapshot_movement(
                previous, snapshot, self._settings.movement_threshold
            )
            self._start_animation()
        self._notifier.notify_if_changed(previous, snapshot, self._on_change)

    def _start_animation(self) -> None:
        if self._disposed:
            return
        if self._animation_timer is not None:
            self._animation_timer.cancel()
        self._animating = True
        loop = asyncio.get_running_loop()
        self._animation_timer = loop.call_later(
            self._settings.animation_seconds, self._stop_animation
        )

    def _stop_animation(self) -> None:
        self._animating = False
        self._animation_timer = None


class RoundOddsService:
    """Hand out odds engines that share one source and one deduplicator.

    Every engine created here for the same round key shares in-flight fetches
    and the staleness cache, so several views of one round cost a single
    network round-trip per refresh.

    Args:
        source: Data source returning all rounds.
        settings: Timing and retry policy for every engine.
        visibility_host: Presentation surface, or ``None`` for headless use.

    """

    def __init__(
        self,
        source: RoundsSource,
        *,
        settings: OddsEngineSettings | None = None,
        visibility_host: VisibilityHost | None = None,
    ) -> None:
        """Initialize the shared deduplicator."""
        self.settings = settings or OddsEngineSettings()
        self._visibility_host = visibility_host
        self.deduplicator = _deduplicator_for(source, self.settings)

    def engine(
        self,
        round_id: str,
        *,
        enabled: bool = True,
        on_change: OddsChangeCallback | None = None,
        visibility_optimization_enabled: bool = True,
        visibility_threshold: float | None = None,
    ) -> OddsEngine:
        """Create an engine for ``round_id`` bound to the shared deduplicator."""
        return OddsEngine(
            round_id,
            enabled=enabled,
            on_change=on_change,
            visibility_optimization_enabled=visibility_optimization_enabled,
            visibility_threshold=visibility_threshold,
            settings=self.settings,
            deduplicator=self.deduplicator,
            visibility_host=self._visibility_host,
        )


def _retry_from_settings(settings: OddsEngineSettings) -> RetryScheduler:
    return RetryScheduler(
        max_attempts=settings.max_attempts,
        base_delay=settings.retry_base_delay,
        max_delay=settings.retry_max_delay,
    )


def _deduplicator_for(
    source: RoundsSource, settings: OddsEngineSettings
) -> FetchDeduplicator[OddsSnapshot]:
    """Build a deduplicator whose results live no longer than the staleness window."""
    return FetchDeduplicator(
        make_round_loader(source, _retry_from_settings(settings)),
        retention=settings.stale_seconds,
    )


def _select_gate(
    host: VisibilityHost | None,
    *,
    enabled: bool,
    threshold: float,
    margin: float,
) -> VisibilityGate:
    """Choose the gate implementation from configuration, not runtime probing."""
    if host is None or not enabled:
        return AlwaysVisibleGate()
    return ObservedVisibilityGate(host, threshold=threshold, margin=margin)
