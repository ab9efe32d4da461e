"""Tuneable timing and policy parameters for the odds engine.

Immutable after construction so that a running engine never sees its
cadence or retry budget change underneath it.
"""

from dataclasses import dataclass

from shibplay_odds.core.config import ConfigLoader, get_config

_DEFAULT_POLL_INTERVAL = 15.0
_DEFAULT_STALE_SECONDS = 10.0
_DEFAULT_MAX_ATTEMPTS = 3
_DEFAULT_RETRY_BASE_DELAY = 1.0
_DEFAULT_RETRY_MAX_DELAY = 30.0
_DEFAULT_ANIMATION_SECONDS = 0.4
_DEFAULT_MOVEMENT_THRESHOLD = 0.01
_DEFAULT_VISIBILITY_THRESHOLD = 0.1
_DEFAULT_VISIBILITY_MARGIN = 50.0


@dataclass(frozen=True)
class OddsEngineSettings:
    """Immutable configuration shared by engines of one service.

    Attributes:
        poll_interval_seconds: Cadence of proactive refreshes while active.
        stale_seconds: How long a fetched result may serve passive reads
            without a new network call.
        max_attempts: Attempts per polling tick before it is abandoned.
        retry_base_delay: First backoff delay in seconds; doubled after
            each failure.
        retry_max_delay: Upper bound on a single backoff delay.
        animation_seconds: How long ``is_animating`` stays true after a
            change.
        movement_threshold: Minimum odds change reported as a movement.
        fetch_on_resume: Fetch immediately on every resume instead of only
            on the first activation.
        visibility_threshold: Fraction of the target that must intersect
            the viewport to count as visible.
        visibility_margin: Pre-fetch margin around the viewport, in the
            host's units.

    """

    poll_interval_seconds: float = _DEFAULT_POLL_INTERVAL
    stale_seconds: float = _DEFAULT_STALE_SECONDS
    max_attempts: int = _DEFAULT_MAX_ATTEMPTS
    retry_base_delay: float = _DEFAULT_RETRY_BASE_DELAY
    retry_max_delay: float = _DEFAULT_RETRY_MAX_DELAY
    animation_seconds: float = _DEFAULT_ANIMATION_SECONDS
    movement_threshold: float = _DEFAULT_MOVEMENT_THRESHOLD
    fetch_on_resume: bool = False
    visibility_threshold: float = _DEFAULT_VISIBILITY_THRESHOLD
    visibility_margin: float = _DEFAULT_VISIBILITY_MARGIN

    def __post_init__(self) -> None:
        """Validate intervals and the retry budget."""
        if self.poll_interval_seconds <= 0:
            msg = f"poll_interval_seconds must be positive, got {self.poll_interval_seconds}"
            raise ValueError(msg)
        if self.max_attempts < 1:
            msg = f"max_attempts must be at least 1, got {self.max_attempts}"
            raise ValueError(msg)
        if not (0.0 <= self.visibility_threshold <= 1.0):
            msg = f"visibility_threshold must be between 0 and 1, got {self.visibility_threshold}"
            raise ValueError(msg)

    @classmethod
    def from_config(cls, loader: ConfigLoader | None = None) -> "OddsEngineSettings":
        """Build settings from the ``odds`` configuration section.

        Args:
            loader: Configuration to read. Defaults to the global loader.

        Returns:
            Settings with configured values, defaults for missing keys.

        Raises:
            ConfigError: If a configured value has the wrong type.

        """
        config = loader or get_config()
        return cls(
            poll_interval_seconds=config.get_float(
                "odds.poll_interval_seconds", _DEFAULT_POLL_INTERVAL
            ),
            stale_seconds=config.get_float("odds.stale_seconds", _DEFAULT_STALE_SECONDS),
            max_attempts=config.get_int("odds.max_attempts", _DEFAULT_MAX_ATTEMPTS),
            retry_base_delay=config.get_float("odds.retry_base_delay", _DEFAULT_RETRY_BASE_DELAY),
            retry_max_delay=config.get_float("odds.retry_max_delay", _DEFAULT_RETRY_MAX_DELAY),
            animation_seconds=config.get_float(
                "odds.animation_seconds", _DEFAULT_ANIMATION_SECONDS
            ),
            movement_threshold=config.get_float(
                "odds.movement_threshold", _DEFAULT_MOVEMENT_THRESHOLD
            ),
            fetch_on_resume=config.get_bool("odds.fetch_on_resume", False),
            visibility_threshold=config.get_float(
                "odds.visibility_threshold", _DEFAULT_VISIBILITY_THRESHOLD
            ),
            visibility_margin=config.get_float(
                "odds.visibility_margin", _DEFAULT_VISIBILITY_MARGIN
            ),
        )
