"""Shared helpers for odds CLI commands.

Centralise logging setup, client construction, and snapshot formatting
reused across the command modules.
"""

import logging

from shibplay_odds.clients.squid.client import SquidClient
from shibplay_odds.core.models import Direction, OddsSnapshot

_ARROWS = {Direction.UP: "↑", Direction.DOWN: "↓", Direction.NONE: " "}


def configure_verbose_logging() -> None:
    """Enable INFO-level logging for tick-by-tick engine output."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(message)s",
        datefmt="%H:%M:%S",
    )


def build_client() -> SquidClient:
    """Build a squid client from the loaded configuration."""
    return SquidClient.from_config()


def format_snapshot(
    snapshot: OddsSnapshot,
    movement: tuple[Direction, Direction] = (Direction.NONE, Direction.NONE),
) -> str:
    """Render a snapshot as a single line.

    Args:
        snapshot: Odds to render.
        movement: ``(bull, bear)`` directions to mark with arrows.

    Returns:
        Line such as ``Bull 1.33x↑  Bear 4.00x↓  Pool 2.0000 BONE``.

    """
    bull_arrow = _ARROWS[movement[0]]
    bear_arrow = _ARROWS[movement[1]]
    return (
        f"Bull {snapshot.bull_odds:.2f}x{bull_arrow}  "
        f"Bear {snapshot.bear_odds:.2f}x{bear_arrow}  "
        f"Pool {snapshot.total_pool:.4f} BONE"
    )
