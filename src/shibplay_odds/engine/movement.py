"""Per-side movement direction of changing odds.

Odds displays highlight a side whose multiplier moved up or down. Changes
smaller than a threshold are treated as noise and reported as no movement.
"""

from shibplay_odds.core.models import Direction, OddsSnapshot

DEFAULT_MOVEMENT_THRESHOLD = 0.01


def classify_move(
    previous: float,
    current: float,
    threshold: float = DEFAULT_MOVEMENT_THRESHOLD,
) -> Direction:
    """Return the direction of a single odds value change.

    Args:
        previous: Value before the change.
        current: Value after the change.
        threshold: Minimum absolute change that counts as movement.

    Returns:
        ``Direction.UP``, ``Direction.DOWN`` or ``Direction.NONE``.

    """
    difference = current - previous
    if abs(difference) < threshold:
        return Direction.NONE
    return Direction.UP if difference > 0 else Direction.DOWN


def snapshot_movement(
    previous: OddsSnapshot,
    current: OddsSnapshot,
    threshold: float = DEFAULT_MOVEMENT_THRESHOLD,
) -> tuple[Direction, Direction]:
    """Return ``(bull_direction, bear_direction)`` between two snapshots."""
    return (
        classify_move(previous.bull_odds, current.bull_odds, threshold),
        classify_move(previous.bear_odds, current.bear_odds, threshold),
    )
