"""Polling engine that keeps a round's odds fresh for a consuming view.

Compose visibility gating, per-round fetch deduplication, bounded retry,
and change notification into the ``OddsEngine`` public contract.
"""

from shibplay_odds.engine.dedup import FetchDeduplicator
from shibplay_odds.engine.exceptions import (
    EngineDisposedError,
    OddsEngineError,
    RetryExhaustedError,
)
from shibplay_odds.engine.notifier import ChangeNotifier
from shibplay_odds.engine.odds_engine import OddsEngine, RoundOddsService
from shibplay_odds.engine.polling import PollingController
from shibplay_odds.engine.retry import RetryScheduler
from shibplay_odds.engine.visibility import AlwaysVisibleGate, ObservedVisibilityGate

__all__ = [
    "AlwaysVisibleGate",
    "ChangeNotifier",
    "EngineDisposedError",
    "FetchDeduplicator",
    "ObservedVisibilityGate",
    "OddsEngine",
    "OddsEngineError",
    "PollingController",
    "RetryExhaustedError",
    "RetryScheduler",
    "RoundOddsService",
]
