"""CLI entry point for the odds tools."""

from shibplay_odds.apps.odds.cli import app

__all__ = ["app", "main"]


def main() -> None:
    """Run the odds CLI application."""
    app()


if __name__ == "__main__":
    main()
