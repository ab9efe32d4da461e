"""Core data models shared across the odds engine.

Define the immutable value objects (OddsSnapshot, RawPoolAmounts,
RoundRecord) that flow from the data source through odds derivation to
the consuming view, plus the enums describing polling and movement state.
"""

from dataclasses import dataclass
from enum import Enum


class PollingState(Enum):
    """Lifecycle state of a ``PollingController``."""

    DISABLED = "disabled"
    SUSPENDED = "suspended"
    ACTIVE = "active"
    DISPOSED = "disposed"


class Direction(Enum):
    """Direction of the last odds movement for one side of a round."""

    UP = "up"
    DOWN = "down"
    NONE = "none"


@dataclass(frozen=True)
class OddsSnapshot:
    """Immutable odds for one round at a point in time.

    Odds are multipliers applied to a winning stake: the total pool divided
    by that side's pool. Both odds are always at least 1.0 and collapse to
    exactly 1.0 when the pool is empty.

    Args:
        bull_odds: Payout multiplier for the bull (up) side.
        bear_odds: Payout multiplier for the bear (down) side.
        total_pool: Combined stake of both sides in BONE.
        last_updated: Epoch milliseconds when the snapshot was produced.

    """

    bull_odds: float
    bear_odds: float
    total_pool: float
    last_updated: int = 0

    def same_odds(self, other: "OddsSnapshot") -> bool:
        """Return True when odds and pool match exactly, ignoring ``last_updated``."""
        return (
            self.bull_odds == other.bull_odds
            and self.bear_odds == other.bear_odds
            and self.total_pool == other.total_pool
        )


@dataclass(frozen=True)
class RawPoolAmounts:
    """Raw per-side stakes for a round as reported by the indexer.

    Amounts are wei-scaled integer strings (18 decimals). The engine only
    reads and converts them.
    """

    bear_amount: str | None
    bull_amount: str | None


@dataclass(frozen=True)
class RoundRecord:
    """One row of the indexer's ``rounds`` query.

    Args:
        id: Indexer entity identifier.
        round_id: Round key used for polling and deduplication.
        bear_amount: Wei-scaled stake on the bear side.
        bull_amount: Wei-scaled stake on the bull side.
        price_pool: Wei-scaled prize pool reported by the contract.
        status: Round status label (e.g. ``"OPEN"``, ``"LOCKED"``).
        start_timestamp: Unix seconds when the round started.
        exit_timestamp: Unix seconds when the round ends.
        update_timestamp: Unix seconds of the last pool update.
        users: Number of participants.

    """

    id: str
    round_id: str
    bear_amount: str | None = None
    bull_amount: str | None = None
    price_pool: str | None = None
    status: str | None = None
    start_timestamp: str | None = None
    exit_timestamp: str | None = None
    update_timestamp: str | None = None
    users: str | None = None

    @property
    def pools(self) -> RawPoolAmounts:
        """Return the raw bear/bull stakes of this round."""
        return RawPoolAmounts(bear_amount=self.bear_amount, bull_amount=self.bull_amount)
