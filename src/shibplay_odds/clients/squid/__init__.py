"""GraphQL client for the ShibPlay prediction indexer (Subsquid)."""

from shibplay_odds.clients.squid.client import SquidClient
from shibplay_odds.clients.squid.exceptions import SquidAPIError, SquidError

__all__ = [
    "SquidAPIError",
    "SquidClient",
    "SquidError",
]
