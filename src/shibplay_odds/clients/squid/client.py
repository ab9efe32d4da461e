"""Async GraphQL client for the ShibPlay prediction indexer.

The indexer is a Subsquid deployment exposing the prediction contract's
rounds and bets over GraphQL. This client posts queries with ``httpx``,
maps rows onto ``RoundRecord`` values, and converts transport failures,
HTTP errors, and GraphQL ``errors`` payloads into ``SquidAPIError``.

Note:
    Pool amounts (``bearAmount``, ``bullAmount``, ``pricePool``) are BigInt
    scalars serialised as wei integer strings. They are passed through
    untouched; conversion happens in ``shibplay_odds.core.odds``.

"""

import logging
from typing import Any, cast

import httpx

from shibplay_odds.clients.squid._constants import HTTP_BAD_GATEWAY, HTTP_BAD_REQUEST
from shibplay_odds.clients.squid.exceptions import SquidAPIError
from shibplay_odds.core.config import ConfigLoader, get_config
from shibplay_odds.core.models import RoundRecord

logger = logging.getLogger(__name__)

_ROUND_FIELDS = """
      id
      roundId
      bearAmount
      bullAmount
      pricePool
      status
      startTimeStamp
      exitTimeStamp
      updateTimeStamp
      users
"""

GET_ALL_ROUNDS = f"""
  query GetAllRounds($limit: Int!) {{
    rounds(orderBy: roundId_DESC, limit: $limit) {{{_ROUND_FIELDS}    }}
  }}
"""

GET_ROUND = f"""
  query GetRound($id: BigInt!) {{
    rounds(where: {{ roundId_eq: $id }}, limit: 1) {{{_ROUND_FIELDS}    }}
  }}
"""


class SquidClient:
    """Async GraphQL client for prediction round data.

    Satisfies the ``RoundsSource`` protocol via ``fetch_all_rounds`` so it
    can be handed straight to an ``OddsEngine``.

    Args:
        endpoint: GraphQL HTTP endpoint of the indexer.
        timeout: Request timeout in seconds.
        rounds_limit: Maximum rounds returned by ``fetch_all_rounds``.

    """

    DEFAULT_ENDPOINT = (
        "https://23019154-5b6e-4edb-a020-f889c237c21c.squids.live"
        "/puppynet-prediction-squid@v2/api/graphql"
    )

    def __init__(
        self,
        endpoint: str = DEFAULT_ENDPOINT,
        timeout: float = 30.0,
        rounds_limit: int = 100,
    ) -> None:
        """Initialize the squid client.

        Args:
            endpoint: GraphQL HTTP endpoint of the indexer.
            timeout: Request timeout in seconds.
            rounds_limit: Maximum rounds returned by ``fetch_all_rounds``.

        """
        self.endpoint = endpoint.rstrip("/")
        self.rounds_limit = rounds_limit
        self._http_client = httpx.AsyncClient(
            timeout=timeout,
            headers={"Content-Type": "application/json"},
        )

    @classmethod
    def from_config(cls, loader: ConfigLoader | None = None) -> "SquidClient":
        """Build a client from the ``squid`` configuration section.

        Args:
            loader: Configuration to read. Defaults to the global loader.

        Returns:
            A configured ``SquidClient``.

        """
        config = loader or get_config()
        return cls(
            endpoint=config.get_str("squid.endpoint", cls.DEFAULT_ENDPOINT),
            timeout=config.get_float("squid.timeout", 30.0),
            rounds_limit=config.get_int("squid.rounds_limit", 100),
        )

    async def fetch_all_rounds(self) -> list[RoundRecord]:
        """Fetch the most recent rounds, newest first.

        Returns:
            Up to ``rounds_limit`` rounds.

        Raises:
            SquidAPIError: When the request fails or the indexer reports errors.

        """
        data = await self._query(GET_ALL_ROUNDS, {"limit": self.rounds_limit})
        rows = cast("list[dict[str, Any]]", data.get("rounds") or [])
        logger.debug("Fetched %d rounds from %s", len(rows), self.endpoint)
        return [_parse_round(row) for row in rows]

    async def fetch_round(self, round_id: str) -> RoundRecord | None:
        """Fetch a single round by its round id.

        Args:
            round_id: Round key to look up.

        Returns:
            The matching round, or ``None`` if the indexer has no such round.

        Raises:
            SquidAPIError: When the request fails or the indexer reports errors.

        """
        data = await self._query(GET_ROUND, {"id": round_id})
        rows = cast("list[dict[str, Any]]", data.get("rounds") or [])
        if not rows:
            return None
        return _parse_round(rows[0])

    async def _query(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        """Post a GraphQL query and return its ``data`` object.

        Args:
            query: GraphQL document.
            variables: Query variables.

        Returns:
            The ``data`` member of the GraphQL response.

        Raises:
            SquidAPIError: On transport failure, HTTP error status, a body
                that is not JSON, or a non-empty ``errors`` list.

        """
        payload = {"query": query, "variables": variables or {}}
        try:
            response = await self._http_client.request("POST", self.endpoint, json=payload)
        except httpx.HTTPError as exc:
            raise SquidAPIError(
                msg=f"HTTP request failed: {exc}",
                status_code=HTTP_BAD_REQUEST,
            ) from exc

        if response.status_code >= HTTP_BAD_REQUEST:
            self._handle_error(response)

        try:
            body: Any = response.json()
        except ValueError as exc:
            raise SquidAPIError(
                msg="Indexer returned a non-JSON body",
                status_code=HTTP_BAD_GATEWAY,
            ) from exc

        if not isinstance(body, dict):
            raise SquidAPIError(
                msg="Unexpected GraphQL response shape", status_code=HTTP_BAD_GATEWAY
            )
        result = cast("dict[str, Any]", body)

        errors = result.get("errors")
        if errors:
            first = cast("list[dict[str, Any]]", errors)[0]
            raise SquidAPIError(
                msg=str(first.get("message", "GraphQL error")),
                status_code=response.status_code,
            )

        return cast("dict[str, Any]", result.get("data") or {})

    @staticmethod
    def _handle_error(response: httpx.Response) -> None:
        """Raise a SquidAPIError from an error response.

        Args:
            response: HTTP response with a non-2xx status code.

        Raises:
            SquidAPIError: Always raised with status code and message.

        """
        try:
            data = response.json()
            msg: str = data.get("message", f"HTTP {response.status_code}")
        except Exception:
            msg = f"HTTP {response.status_code}"
        raise SquidAPIError(msg=msg, status_code=response.status_code)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._http_client.aclose()

    async def __aenter__(self) -> "SquidClient":
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context manager."""
        await self.close()


def _parse_round(row: dict[str, Any]) -> RoundRecord:
    """Map a GraphQL round row onto a ``RoundRecord``.

    Args:
        row: One element of the ``rounds`` list.

    Returns:
        Typed round record. Missing fields become ``None``.

    """

    def _opt(key: str) -> str | None:
        value = row.get(key)
        return None if value is None else str(value)

    return RoundRecord(
        id=str(row.get("id", "")),
        round_id=str(row.get("roundId", "")),
        bear_amount=_opt("bearAmount"),
        bull_amount=_opt("bullAmount"),
        price_pool=_opt("pricePool"),
        status=_opt("status"),
        start_timestamp=_opt("startTimeStamp"),
        exit_timestamp=_opt("exitTimeStamp"),
        update_timestamp=_opt("updateTimeStamp"),
        users=_opt("users"),
    )
