"""Structural protocols for the engine's external collaborators.

Define the ``RoundsSource`` data source, the ``VisibilityHost`` that a
presentation surface provides, and the ``VisibilityGate`` capability the
engine polls through. Any class whose shape matches these protocols can be
used without explicit inheritance (structural subtyping).
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from shibplay_odds.core.models import RoundRecord


@dataclass(frozen=True)
class VisibilityChange:
    """Visibility event reported by a host for an observed target.

    Args:
        intersection_ratio: Fraction of the target inside the viewport
            expanded by the requested margin, between 0 and 1.

    """

    intersection_ratio: float


@runtime_checkable
class RoundsSource(Protocol):
    """Async provider of the current set of prediction rounds.

    Implementors query the indexer (GraphQL, fixtures, etc.) and return
    every known round. The engine selects the row whose ``round_id`` equals
    its key.
    """

    async def fetch_all_rounds(self) -> list[RoundRecord]:
        """Return all rounds currently known to the source."""
        ...


@runtime_checkable
class VisibilityHost(Protocol):
    """Presentation surface able to report when a target scrolls in or out.

    ``observe`` registers ``callback`` for ``target`` and returns a function
    that stops the observation. Hosts lacking the capability raise
    ``NotImplementedError``.
    """

    def observe(
        self,
        target: Any,
        callback: Callable[[VisibilityChange], None],
        *,
        threshold: float,
        margin: float,
    ) -> Callable[[], None]:
        """Start reporting visibility changes of ``target`` to ``callback``."""
        ...


@runtime_checkable
class VisibilityGate(Protocol):
    """Boolean signal telling the engine whether polling is worthwhile."""

    def observe(self, target: Any) -> None:
        """Begin tracking ``target``."""
        ...

    def unobserve(self) -> None:
        """Stop tracking the current target; the gate stays usable."""
        ...

    def is_visible(self) -> bool:
        """Return the current visibility signal."""
        ...

    def subscribe(self, listener: Callable[[bool], None]) -> Callable[[], None]:
        """Register a listener for visibility transitions."""
        ...

    def dispose(self) -> None:
        """Stop tracking. Safe to call more than once."""
        ...
