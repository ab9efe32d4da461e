"""Pure odds derivation from raw pool amounts.

Convert the indexer's wei-scaled stake strings into BONE amounts and derive
the payout multiplier for each side. Nothing here performs I/O or raises:
missing or malformed amounts count as zero so every path yields a valid
``OddsSnapshot``.
"""

import time

from shibplay_odds.core.models import OddsSnapshot

WEI_PER_BONE = 10**18
NEUTRAL_ODDS = 1.0
_MS_PER_SECOND = 1000


def from_wei(value: str | int | None) -> float:
    """Convert a wei-scaled integer amount to BONE.

    Accept plain non-negative integer strings (surrounding whitespace is
    ignored) or ints. Anything else, including ``None``, blank strings,
    decimals, and negative numbers, is treated as zero.

    Args:
        value: Raw amount from the data source.

    Returns:
        Amount in BONE as a float.

    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, int):
        return value / WEI_PER_BONE if value > 0 else 0.0
    text = str(value).strip()
    if not text.isdigit() or not text.isascii():
        return 0.0
    return int(text) / WEI_PER_BONE


def derive_odds(
    bear_raw: str | int | None,
    bull_raw: str | int | None,
    last_updated: int = 0,
) -> OddsSnapshot:
    """Derive bull and bear odds from the raw stakes of a round.

    Each side's odds are the total pool divided by that side's stake. A side
    with no stake, or an empty pool, gets neutral odds of 1.0.

    Args:
        bear_raw: Wei-scaled bear stake.
        bull_raw: Wei-scaled bull stake.
        last_updated: Epoch milliseconds to stamp on the snapshot.

    Returns:
        The derived ``OddsSnapshot``.

    """
    bear = from_wei(bear_raw)
    bull = from_wei(bull_raw)
    total = bear + bull

    if total == 0:
        return OddsSnapshot(
            bull_odds=NEUTRAL_ODDS,
            bear_odds=NEUTRAL_ODDS,
            total_pool=0.0,
            last_updated=last_updated,
        )

    return OddsSnapshot(
        bull_odds=NEUTRAL_ODDS if bull == 0 else total / bull,
        bear_odds=NEUTRAL_ODDS if bear == 0 else total / bear,
        total_pool=total,
        last_updated=last_updated,
    )


def static_odds(now_ms: int | None = None) -> OddsSnapshot:
    """Return the neutral snapshot shown when no pool data is available.

    Args:
        now_ms: Timestamp to stamp on the snapshot. Defaults to the current
            wall clock.

    Returns:
        Snapshot with both odds at 1.0 and an empty pool.

    """
    return OddsSnapshot(
        bull_odds=NEUTRAL_ODDS,
        bear_odds=NEUTRAL_ODDS,
        total_pool=0.0,
        last_updated=now_ms if now_ms is not None else now_ms_epoch(),
    )


def now_ms_epoch() -> int:
    """Return the current time as epoch milliseconds."""
    return int(time.time() * _MS_PER_SECOND)
