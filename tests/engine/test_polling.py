"""Tests for the polling state machine."""

import asyncio
from collections.abc import Callable

import pytest

from shibplay_odds.core.models import PollingState
from shibplay_odds.engine.polling import PollingController

_INTERVAL = 0.05
_ANCHOR = 100.0
_CADENCE = 15.0


class TickCounter:
    """Tick callback that counts calls and can be told to fail."""

    def __init__(self) -> None:
        self.calls = 0
        self.fail = False

    async def __call__(self) -> None:
        self.calls += 1
        if self.fail:
            msg = "tick exploded"
            raise RuntimeError(msg)


async def wait_for(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Poll ``predicate`` on the loop until it holds or ``timeout`` passes."""
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.001)


def _controller(
    on_tick: TickCounter,
    *,
    needs_initial: bool = True,
    **kwargs: bool,
) -> PollingController:
    return PollingController(
        on_tick,
        interval=_INTERVAL,
        needs_initial=lambda: needs_initial,
        name="42",
        **kwargs,
    )


class TestNextTickDelay:
    """Test suite for cadence arithmetic."""

    def test_first_tick_is_one_interval_away(self) -> None:
        """Test an unanchored controller waits a full interval."""
        controller = PollingController(
            TickCounter(), interval=_CADENCE, needs_initial=lambda: False
        )
        assert controller.next_tick_delay(_ANCHOR) == _CADENCE

    def test_delay_to_next_deadline(self) -> None:
        """Test the delay runs to the next multiple of the interval."""
        controller = PollingController(
            TickCounter(), interval=_CADENCE, needs_initial=lambda: False
        )
        controller._anchor = _ANCHOR

        assert controller.next_tick_delay(112.0) == 3.0  # noqa: PLR2004

    def test_missed_deadlines_are_skipped(self) -> None:
        """Test a late wake-up waits for the next future deadline."""
        controller = PollingController(
            TickCounter(), interval=_CADENCE, needs_initial=lambda: False
        )
        controller._anchor = _ANCHOR

        assert controller.next_tick_delay(131.0) == 14.0  # noqa: PLR2004

    def test_exactly_on_deadline(self) -> None:
        """Test a wake-up on a deadline waits a full interval for the next."""
        controller = PollingController(
            TickCounter(), interval=_CADENCE, needs_initial=lambda: False
        )
        controller._anchor = _ANCHOR

        assert controller.next_tick_delay(115.0) == _CADENCE

    def test_rejects_non_positive_interval(self) -> None:
        """Test the interval must be positive."""
        with pytest.raises(ValueError, match="interval"):
            PollingController(TickCounter(), interval=0, needs_initial=lambda: False)


class TestPollingController:
    """Test suite for PollingController transitions."""

    @pytest.mark.asyncio
    async def test_disabled_until_started(self) -> None:
        """Test nothing is scheduled before start()."""
        ticks = TickCounter()
        controller = _controller(ticks)

        controller.set_visible(True)
        await asyncio.sleep(_INTERVAL * 2)

        assert controller.state is PollingState.DISABLED
        assert ticks.calls == 0

    @pytest.mark.asyncio
    async def test_start_fetches_immediately_without_snapshot(self) -> None:
        """Test the first activation ticks at once when nothing is loaded."""
        ticks = TickCounter()
        controller = _controller(ticks)

        controller.start()
        await wait_for(lambda: ticks.calls == 1)

        assert controller.state is PollingState.ACTIVE
        controller.dispose()

    @pytest.mark.asyncio
    async def test_start_waits_when_snapshot_exists(self) -> None:
        """Test no immediate tick once a snapshot exists."""
        ticks = TickCounter()
        controller = _controller(ticks, needs_initial=False)

        controller.start()
        await asyncio.sleep(_INTERVAL / 2)
        assert ticks.calls == 0

        await wait_for(lambda: ticks.calls == 1)
        controller.dispose()

    @pytest.mark.asyncio
    async def test_ticks_on_cadence(self) -> None:
        """Test repeated ticks while active."""
        ticks = TickCounter()
        controller = _controller(ticks)

        controller.start()
        await wait_for(lambda: ticks.calls >= 3)  # noqa: PLR2004

        assert controller.ticks == ticks.calls
        controller.dispose()

    @pytest.mark.asyncio
    async def test_hidden_is_suspended(self) -> None:
        """Test a hidden consumer never ticks."""
        ticks = TickCounter()
        controller = _controller(ticks, visible=False)

        controller.start()
        await asyncio.sleep(_INTERVAL * 2)

        assert controller.state is PollingState.SUSPENDED
        assert ticks.calls == 0

        controller.set_visible(True)
        await wait_for(lambda: ticks.calls == 1)
        assert controller.state is PollingState.ACTIVE
        controller.dispose()

    @pytest.mark.asyncio
    async def test_resume_waits_for_next_cadence_tick(self) -> None:
        """Test resuming after a hold does not fetch immediately."""
        loaded = False
        ticks = TickCounter()
        controller = PollingController(
            ticks, interval=_INTERVAL, needs_initial=lambda: not loaded
        )

        controller.start()
        await wait_for(lambda: ticks.calls == 1)
        loaded = True

        controller.suspend()
        assert controller.state is PollingState.SUSPENDED
        controller.resume()
        assert controller.state is PollingState.ACTIVE
        await asyncio.sleep(0)
        assert ticks.calls == 1

        await wait_for(lambda: ticks.calls == 2)  # noqa: PLR2004
        controller.dispose()

    @pytest.mark.asyncio
    async def test_fetch_on_resume(self) -> None:
        """Test the opt-in policy fetches as soon as polling resumes."""
        loaded = False
        ticks = TickCounter()
        controller = PollingController(
            ticks,
            interval=_INTERVAL * 10,
            needs_initial=lambda: not loaded,
            fetch_on_resume=True,
        )

        controller.start()
        await wait_for(lambda: ticks.calls == 1)
        loaded = True

        controller.set_visible(False)
        controller.set_visible(True)
        await wait_for(lambda: ticks.calls == 2)  # noqa: PLR2004
        controller.dispose()

    @pytest.mark.asyncio
    async def test_hold_survives_visibility(self) -> None:
        """Test becoming visible does not override an explicit suspend."""
        ticks = TickCounter()
        controller = _controller(ticks)
        controller.start()
        controller.suspend()

        controller.set_visible(False)
        controller.set_visible(True)

        assert controller.state is PollingState.SUSPENDED
        controller.dispose()

    @pytest.mark.asyncio
    async def test_disable_cancels_timer(self) -> None:
        """Test disabling stops ticking."""
        ticks = TickCounter()
        controller = _controller(ticks, needs_initial=False)
        controller.start()

        controller.set_enabled(False)
        await asyncio.sleep(_INTERVAL * 2)

        assert controller.state is PollingState.DISABLED
        assert not controller.enabled
        assert ticks.calls == 0

    @pytest.mark.asyncio
    async def test_disabled_takes_precedence_over_visibility(self) -> None:
        """Test a disabled controller stays disabled when hidden or shown."""
        controller = _controller(TickCounter(), enabled=False)
        controller.start()

        controller.set_visible(False)
        assert controller.state is PollingState.DISABLED
        controller.set_visible(True)
        assert controller.state is PollingState.DISABLED

    @pytest.mark.asyncio
    async def test_tick_errors_do_not_stop_cadence(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test a failing tick is logged and the next one still runs."""
        ticks = TickCounter()
        ticks.fail = True
        controller = _controller(ticks)

        with caplog.at_level("ERROR"):
            controller.start()
            await wait_for(lambda: ticks.calls >= 2)  # noqa: PLR2004

        assert "Polling tick for 42 failed" in caplog.text
        controller.dispose()

    @pytest.mark.asyncio
    async def test_dispose_is_terminal(self) -> None:
        """Test dispose is idempotent and ignores later signals."""
        ticks = TickCounter()
        controller = _controller(ticks, needs_initial=False)
        controller.start()

        controller.dispose()
        controller.dispose()
        controller.set_enabled(True)
        controller.resume()
        controller.start()
        await asyncio.sleep(_INTERVAL * 2)

        assert controller.state is PollingState.DISPOSED
        assert ticks.calls == 0
