"""Visibility gating for polling consumers.

Decide whether the consuming view is currently worth polling for. Two
implementations share the ``VisibilityGate`` shape: ``ObservedVisibilityGate``
subscribes through a presentation host, ``AlwaysVisibleGate`` serves headless
contexts. Both fail open: an unknown visibility state counts as visible, so a
missing capability can never silently stop polling.
"""

import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

from shibplay_odds.core.protocols import VisibilityChange, VisibilityHost

logger = logging.getLogger(__name__)


class GateState(Enum):
    """Lifecycle of a visibility gate."""

    UNOBSERVED = "unobserved"
    OBSERVING = "observing"
    DISPOSED = "disposed"


class _ListenerSet:
    """Ordered set of boolean listeners with detachable registrations."""

    def __init__(self) -> None:
        self._listeners: list[Callable[[bool], None]] = []

    def add(self, listener: Callable[[bool], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def emit(self, value: bool) -> None:
        for listener in list(self._listeners):
            listener(value)

    def clear(self) -> None:
        self._listeners.clear()


class AlwaysVisibleGate:
    """Visibility gate for headless contexts: permanently visible."""

    def __init__(self) -> None:
        """Initialize the gate in the unobserved state."""
        self.state = GateState.UNOBSERVED

    def observe(self, target: Any) -> None:  # noqa: ARG002
        """Mark the gate as observing; the target is ignored."""
        if self.state is GateState.UNOBSERVED:
            self.state = GateState.OBSERVING

    def unobserve(self) -> None:
        """Return to the unobserved state."""
        if self.state is GateState.OBSERVING:
            self.state = GateState.UNOBSERVED

    def is_visible(self) -> bool:
        """Return True."""
        return True

    def subscribe(self, listener: Callable[[bool], None]) -> Callable[[], None]:  # noqa: ARG002
        """Accept a listener that will never be called."""
        return lambda: None

    def dispose(self) -> None:
        """Enter the terminal state."""
        self.state = GateState.DISPOSED


class ObservedVisibilityGate:
    """Visibility gate backed by a host's intersection observation.

    The host reports ``VisibilityChange`` events for the observed target;
    the target counts as visible when any part of it intersects the
    viewport (expanded by ``margin``) and at least ``threshold`` of it does.

    State machine::

        UNOBSERVED --observe()--> OBSERVING --dispose()--> DISPOSED
        OBSERVING --change event--> OBSERVING
        OBSERVING --unobserve()--> UNOBSERVED

    Args:
        host: Presentation surface providing observation. ``None`` means the
            runtime has no such capability and the gate fails open.
        threshold: Minimum intersection ratio to count as visible.
        margin: Pre-fetch margin passed to the host.
        enabled: When False, tracking is disabled by configuration and the
            gate stays visible permanently.

    """

    def __init__(
        self,
        host: VisibilityHost | None,
        *,
        threshold: float = 0.1,
        margin: float = 50.0,
        enabled: bool = True,
    ) -> None:
        """Initialize the gate.

        Args:
            host: Presentation surface providing observation, or ``None``.
            threshold: Minimum intersection ratio to count as visible.
            margin: Pre-fetch margin passed to the host.
            enabled: Whether visibility tracking is enabled at all.

        """
        self._host = host
        self._threshold = threshold
        self._margin = margin
        self._enabled = enabled
        self._visible = True
        self._fail_open = False
        self._unobserve: Callable[[], None] | None = None
        self._listeners = _ListenerSet()
        self.state = GateState.UNOBSERVED

    @property
    def fail_open(self) -> bool:
        """Return True when the gate degraded to always-visible."""
        return self._fail_open

    def observe(self, target: Any) -> None:
        """Begin tracking ``target`` through the host.

        Fall back to permanently visible when tracking is disabled, no host
        or target is available, or the host does not support observation.
        Calls after ``dispose()`` are ignored; a second call while observing
        replaces the previous target.

        Args:
            target: Host-specific reference to the consumer's element.

        """
        if self.state is GateState.DISPOSED:
            logger.debug("Ignoring observe() on a disposed visibility gate")
            return

        self._release()
        self.state = GateState.OBSERVING

        if not self._enabled:
            self._degrade("visibility optimization disabled by configuration")
            return
        if self._host is None or target is None:
            self._degrade("no visibility host or target supplied")
            return

        try:
            self._unobserve = self._host.observe(
                target,
                self._on_change,
                threshold=self._threshold,
                margin=self._margin,
            )
        except NotImplementedError:
            self._degrade("visibility host does not support observation")

    def unobserve(self) -> None:
        """Stop tracking the current target without disposing the gate.

        The gate returns to ``UNOBSERVED`` and reports visible until the next
        ``observe()``. Ignored when not observing.
        """
        if self.state is not GateState.OBSERVING:
            return
        self._release()
        self.state = GateState.UNOBSERVED
        if not self._visible:
            self._visible = True
            self._listeners.emit(True)

    def is_visible(self) -> bool:
        """Return the current signal; True until the first event resolves."""
        return self._visible

    def subscribe(self, listener: Callable[[bool], None]) -> Callable[[], None]:
        """Register a listener called with the new value on each transition.

        Args:
            listener: Callback receiving the new visibility.

        Returns:
            Function that removes the listener.

        """
        return self._listeners.add(listener)

    def dispose(self) -> None:
        """Stop tracking and drop listeners. Idempotent."""
        if self.state is GateState.DISPOSED:
            return
        self._release()
        self._listeners.clear()
        self.state = GateState.DISPOSED

    def _on_change(self, change: VisibilityChange) -> None:
        """Apply a host visibility event."""
        if self.state is not GateState.OBSERVING or self._fail_open:
            return
        ratio = change.intersection_ratio
        visible = ratio > 0 and ratio >= self._threshold
        if visible == self._visible:
            return
        self._visible = visible
        logger.debug("Visibility changed: %s (ratio=%.2f)", visible, ratio)
        self._listeners.emit(visible)

    def _degrade(self, reason: str) -> None:
        """Switch to permanently visible and notify listeners if needed."""
        self._fail_open = True
        logger.info("Visibility tracking unavailable (%s); polling as if visible", reason)
        if not self._visible:
            self._visible = True
            self._listeners.emit(True)

    def _release(self) -> None:
        """Detach from the host if currently subscribed."""
        if self._unobserve is not None:
            unobserve = self._unobserve
            self._unobserve = None
            unobserve()
        self._fail_open = False
