"""Exception hierarchy for the odds engine.

None of these escape to a consuming view through the polling path: tick
failures are captured on ``OddsEngine.error``. They surface only from the
imperative calls a caller makes directly.
"""


class OddsEngineError(Exception):
    """Base exception for all odds engine errors."""


class RetryExhaustedError(OddsEngineError):
    """Every attempt of a polling tick failed.

    Args:
        attempts: Number of attempts made before giving up.
        delays: Backoff delays, in seconds, waited after each failure.

    """

    def __init__(self, attempts: int, delays: tuple[float, ...]) -> None:
        """Initialize the error.

        Args:
            attempts: Number of attempts made before giving up.
            delays: Backoff delays, in seconds, waited after each failure.

        """
        super().__init__(f"Fetch failed after {attempts} attempts")
        self.attempts = attempts
        self.delays = delays


class EngineDisposedError(OddsEngineError):
    """An operation was requested on an engine that has been disposed."""
