"""CLI command for displaying the current odds of one round."""

import asyncio

import typer

from shibplay_odds.apps.odds.cli._helpers import build_client, format_snapshot
from shibplay_odds.engine.odds_engine import OddsEngine
from shibplay_odds.engine.settings import OddsEngineSettings


def odds(round_id: str) -> None:
    """Display the current odds for a round.

    Args:
        round_id: Round key to look up.

    """
    asyncio.run(_odds(round_id=round_id))


async def _odds(*, round_id: str) -> None:
    """Run a one-shot engine read and print the result.

    A round missing from the indexer shows neutral odds. A fetch that fails
    after all retries exits with status 1.

    Args:
        round_id: Round key to look up.

    """
    async with build_client() as client:
        engine = OddsEngine(round_id, source=client, settings=OddsEngineSettings.from_config())
        try:
            snapshot = await engine.refresh(force=True)
        finally:
            engine.dispose()

    if engine.error is not None:
        typer.echo(f"Error: {engine.error}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"\nRound {round_id}")
    typer.echo("=" * (len(round_id) + 6))
    typer.echo(format_snapshot(snapshot))
