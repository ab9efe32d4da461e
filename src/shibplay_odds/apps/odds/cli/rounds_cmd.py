"""CLI command listing recent rounds with their derived odds."""

import asyncio

import typer

from shibplay_odds.apps.odds.cli._helpers import build_client
from shibplay_odds.clients.squid.exceptions import SquidAPIError
from shibplay_odds.core.odds import derive_odds


def rounds(
    limit: int = typer.Option(10, help="Number of rounds to show"),
) -> None:
    """List the most recent rounds with pools and odds.

    Args:
        limit: Number of rounds to show.

    """
    asyncio.run(_rounds(limit=limit))


async def _rounds(*, limit: int) -> None:
    """Fetch rounds and print a table of derived odds.

    Args:
        limit: Number of rounds to show.

    """
    try:
        async with build_client() as client:
            records = await client.fetch_all_rounds()
    except SquidAPIError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    if not records:
        typer.echo("No rounds found.")
        return

    typer.echo(f"{'Round':<10} {'Status':<10} {'Pool (BONE)':>14} {'Bull':>8} {'Bear':>8}")
    typer.echo("-" * 54)
    for record in records[:limit]:
        snapshot = derive_odds(record.bear_amount, record.bull_amount)
        typer.echo(
            f"{record.round_id:<10} {record.status or '-':<10} "
            f"{snapshot.total_pool:>14.4f} {snapshot.bull_odds:>7.2f}x {snapshot.bear_odds:>7.2f}x"
        )
