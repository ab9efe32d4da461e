"""CLI command that polls a round headless and prints every odds change.

Run an ``OddsEngine`` with an always-visible gate (there is no presentation
surface in a terminal) and echo each genuine change with movement arrows.
"""

import asyncio
from dataclasses import replace

import typer

from shibplay_odds.apps.odds.cli._helpers import (
    build_client,
    configure_verbose_logging,
    format_snapshot,
)
from shibplay_odds.core.models import OddsSnapshot
from shibplay_odds.engine.odds_engine import OddsEngine
from shibplay_odds.engine.settings import OddsEngineSettings


def watch(
    round_id: str,
    duration: float = typer.Option(60.0, help="Seconds to watch before exiting"),
    interval: float | None = typer.Option(
        None, help="Polling interval in seconds (defaults to configuration)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable INFO-level logging"),
) -> None:
    """Watch a round's odds, printing each change.

    Args:
        round_id: Round key to watch.
        duration: Seconds to watch before exiting.
        interval: Polling interval override in seconds.
        verbose: Enable INFO-level logging.

    """
    if verbose:
        configure_verbose_logging()
    asyncio.run(_watch(round_id=round_id, duration=duration, interval=interval))


async def _watch(*, round_id: str, duration: float, interval: float | None) -> None:
    """Poll ``round_id`` for ``duration`` seconds.

    Args:
        round_id: Round key to watch.
        duration: Seconds to watch before exiting.
        interval: Polling interval override in seconds.

    """
    settings = OddsEngineSettings.from_config()
    if interval is not None:
        settings = _with_interval(settings, interval)

    async with build_client() as client:
        engine: OddsEngine

        def _on_change(new: OddsSnapshot, _old: OddsSnapshot) -> None:
            typer.echo(format_snapshot(new, engine.movement()))

        engine = OddsEngine(round_id, source=client, settings=settings, on_change=_on_change)
        typer.echo(f"Watching round {round_id} every {settings.poll_interval_seconds:.0f}s...")
        async with engine:
            first = await engine.refresh()
            typer.echo(format_snapshot(first))
            await asyncio.sleep(duration)
        if engine.error is not None:
            typer.echo(f"Last fetch failed: {engine.error}", err=True)


def _with_interval(settings: OddsEngineSettings, interval: float) -> OddsEngineSettings:
    """Return ``settings`` with a different polling interval."""
    return replace(
        settings,
        poll_interval_seconds=interval,
        stale_seconds=min(settings.stale_seconds, interval),
    )
