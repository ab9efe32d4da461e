"""Tests for visibility gates."""

from collections.abc import Callable
from typing import Any

import pytest

from shibplay_odds.core.protocols import VisibilityChange, VisibilityGate
from shibplay_odds.engine.visibility import AlwaysVisibleGate, GateState, ObservedVisibilityGate

_THRESHOLD = 0.1


class FakeHost:
    """In-memory visibility host that lets tests drive intersection events."""

    def __init__(self, *, supported: bool = True) -> None:
        self.supported = supported
        self.callback: Callable[[VisibilityChange], None] | None = None
        self.targets: list[Any] = []
        self.options: dict[str, float] = {}
        self.unobserved = 0

    def observe(
        self,
        target: Any,
        callback: Callable[[VisibilityChange], None],
        *,
        threshold: float,
        margin: float,
    ) -> Callable[[], None]:
        if not self.supported:
            raise NotImplementedError
        self.targets.append(target)
        self.callback = callback
        self.options = {"threshold": threshold, "margin": margin}

        def _unobserve() -> None:
            self.unobserved += 1

        return _unobserve

    def emit(self, ratio: float) -> None:
        assert self.callback is not None
        self.callback(VisibilityChange(intersection_ratio=ratio))


class TestAlwaysVisibleGate:
    """Test suite for the headless gate."""

    def test_is_always_visible(self) -> None:
        """Test the gate reports visible in every state."""
        gate = AlwaysVisibleGate()
        assert gate.is_visible()
        gate.observe(None)
        assert gate.state is GateState.OBSERVING
        gate.dispose()
        assert gate.is_visible()
        assert gate.state is GateState.DISPOSED

    def test_satisfies_protocol(self) -> None:
        """Test both gates structurally match VisibilityGate."""
        assert isinstance(AlwaysVisibleGate(), VisibilityGate)
        assert isinstance(ObservedVisibilityGate(None), VisibilityGate)


class TestObservedVisibilityGate:
    """Test suite for the host-backed gate."""

    @pytest.fixture
    def host(self) -> FakeHost:
        """Create a fake host."""
        return FakeHost()

    @pytest.fixture
    def gate(self, host: FakeHost) -> ObservedVisibilityGate:
        """Create a gate bound to the fake host."""
        return ObservedVisibilityGate(host, threshold=_THRESHOLD, margin=50.0)

    def test_visible_before_first_event(self, gate: ObservedVisibilityGate) -> None:
        """Test the gate starts visible and unobserved."""
        assert gate.state is GateState.UNOBSERVED
        assert gate.is_visible()

    def test_observe_passes_options(self, gate: ObservedVisibilityGate, host: FakeHost) -> None:
        """Test threshold and margin reach the host."""
        gate.observe("card")

        assert gate.state is GateState.OBSERVING
        assert host.targets == ["card"]
        assert host.options == {"threshold": _THRESHOLD, "margin": 50.0}
        assert not gate.fail_open

    def test_transitions_notify_listeners(
        self, gate: ObservedVisibilityGate, host: FakeHost
    ) -> None:
        """Test listeners receive only genuine transitions."""
        seen: list[bool] = []
        gate.subscribe(seen.append)
        gate.observe("card")

        host.emit(0.0)
        host.emit(0.0)
        host.emit(0.5)
        host.emit(0.9)

        assert seen == [False, True]
        assert gate.is_visible()

    @pytest.mark.parametrize(
        ("ratio", "expected"),
        [(0.0, False), (0.05, False), (_THRESHOLD, True), (1.0, True)],
    )
    def test_threshold_boundary(
        self, gate: ObservedVisibilityGate, host: FakeHost, ratio: float, expected: bool
    ) -> None:
        """Test visible means a positive ratio at or above the threshold."""
        gate.observe("card")
        host.emit(ratio)
        assert gate.is_visible() is expected

    def test_zero_threshold_still_requires_intersection(self) -> None:
        """Test a zero ratio is hidden even with a zero threshold."""
        host = FakeHost()
        gate = ObservedVisibilityGate(host, threshold=0.0)
        gate.observe("card")

        host.emit(0.0)

        assert not gate.is_visible()

    def test_unsubscribe(self, gate: ObservedVisibilityGate, host: FakeHost) -> None:
        """Test a removed listener is no longer called."""
        seen: list[bool] = []
        remove = gate.subscribe(seen.append)
        gate.observe("card")
        remove()

        host.emit(0.0)

        assert seen == []

    def test_reobserve_releases_previous(
        self, gate: ObservedVisibilityGate, host: FakeHost
    ) -> None:
        """Test observing a new target detaches from the old one."""
        gate.observe("first")
        gate.observe("second")

        assert host.unobserved == 1
        assert host.targets == ["first", "second"]

    def test_dispose_is_idempotent(self, gate: ObservedVisibilityGate, host: FakeHost) -> None:
        """Test dispose detaches once and ignores later events."""
        seen: list[bool] = []
        gate.subscribe(seen.append)
        gate.observe("card")

        gate.dispose()
        gate.dispose()
        host.emit(0.0)

        assert gate.state is GateState.DISPOSED
        assert host.unobserved == 1
        assert seen == []

    def test_observe_after_dispose_ignored(
        self, gate: ObservedVisibilityGate, host: FakeHost
    ) -> None:
        """Test observe is a no-op once disposed."""
        gate.dispose()
        gate.observe("card")

        assert gate.state is GateState.DISPOSED
        assert host.targets == []

    def test_no_host_fails_open(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test a missing host degrades to visible with an info log."""
        gate = ObservedVisibilityGate(None)

        with caplog.at_level("INFO"):
            gate.observe("card")

        assert gate.fail_open
        assert gate.is_visible()
        assert "polling as if visible" in caplog.text

    def test_missing_target_fails_open(self, gate: ObservedVisibilityGate, host: FakeHost) -> None:
        """Test observing None degrades without touching the host."""
        gate.observe(None)

        assert gate.fail_open
        assert host.targets == []

    def test_unsupported_host_fails_open(self) -> None:
        """Test NotImplementedError from the host degrades to visible."""
        gate = ObservedVisibilityGate(FakeHost(supported=False))
        gate.observe("card")

        assert gate.fail_open
        assert gate.is_visible()

    def test_disabled_fails_open(self, host: FakeHost) -> None:
        """Test disabled tracking never subscribes to the host."""
        gate = ObservedVisibilityGate(host, enabled=False)
        gate.observe("card")

        assert gate.fail_open
        assert host.targets == []

    def test_degrade_after_hidden_emits_visible(self, host: FakeHost) -> None:
        """Test re-observing with no target restores visibility for listeners."""
        gate = ObservedVisibilityGate(host)
        seen: list[bool] = []
        gate.subscribe(seen.append)
        gate.observe("card")
        host.emit(0.0)

        gate.observe(None)

        assert seen == [False, True]
        assert gate.is_visible()

    def test_unobserve_releases_host_and_restores_visible(self, host: FakeHost) -> None:
        """Test unobserve drops the host subscription and reports visible again."""
        gate = ObservedVisibilityGate(host)
        seen: list[bool] = []
        gate.subscribe(seen.append)
        gate.observe("card")
        host.emit(0.0)

        gate.unobserve()

        assert host.unobserved == 1
        assert gate.state is GateState.UNOBSERVED
        assert gate.is_visible()
        assert seen == [False, True]

    def test_unobserve_keeps_gate_usable(self, host: FakeHost) -> None:
        """Test a detached gate can observe a new target."""
        gate = ObservedVisibilityGate(host)
        gate.observe("card")
        gate.unobserve()

        gate.observe("other-card")
        host.emit(0.0)

        assert host.targets == ["card", "other-card"]
        assert gate.state is GateState.OBSERVING
        assert not gate.is_visible()

    def test_unobserve_when_idle_is_noop(self, host: FakeHost) -> None:
        """Test unobserve before observe or after dispose changes nothing."""
        gate = ObservedVisibilityGate(host)
        gate.unobserve()
        assert gate.state is GateState.UNOBSERVED

        gate.observe("card")
        gate.dispose()
        gate.unobserve()

        assert gate.state is GateState.DISPOSED
        assert host.unobserved == 1

    def test_always_visible_unobserve(self) -> None:
        """Test the headless gate returns to unobserved but stays visible."""
        gate = AlwaysVisibleGate()
        gate.observe(None)

        gate.unobserve()

        assert gate.state is GateState.UNOBSERVED
        assert gate.is_visible()
