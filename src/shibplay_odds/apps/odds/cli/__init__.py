"""CLI subpackage for the odds tools.

Create the Typer application and register all command modules.
"""

import typer

from shibplay_odds.apps.odds.cli.odds_cmd import odds
from shibplay_odds.apps.odds.cli.rounds_cmd import rounds
from shibplay_odds.apps.odds.cli.watch_cmd import watch

app = typer.Typer(help="ShibPlay round odds tools")

app.command()(rounds)
app.command()(odds)
app.command()(watch)

__all__ = ["app"]
