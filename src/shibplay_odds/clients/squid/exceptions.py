"""Exception hierarchy for squid indexer client errors.

A base exception class with a specialised API error that carries status
code and message attributes.
"""


class SquidError(Exception):
    """Base exception for all squid client errors."""


class SquidAPIError(SquidError):
    """Error returned by a squid GraphQL call.

    Carry a human-readable message and an HTTP status code so callers
    can distinguish transient failures from client errors. GraphQL-level
    errors arrive with a 200 status and keep it.

    Args:
        msg: Human-readable description of the error.
        status_code: HTTP status code from the API response.

    """

    def __init__(self, msg: str, status_code: int) -> None:
        """Initialize squid API error.

        Args:
            msg: Human-readable description of the error.
            status_code: HTTP status code from the API response.

        """
        super().__init__(f"[{status_code}] {msg}")
        self.msg = msg
        self.status_code = status_code
