"""Change notification for derived odds snapshots."""

import logging
from collections.abc import Callable

from shibplay_odds.core.models import OddsSnapshot

logger = logging.getLogger(__name__)

OddsChangeCallback = Callable[[OddsSnapshot, OddsSnapshot], None]


class ChangeNotifier:
    """Invoke an observer only when derived odds genuinely change.

    Compare ``bull_odds``, ``bear_odds`` and ``total_pool`` with exact
    equality; ``last_updated`` is ignored. The first population (no previous
    snapshot) is not a change.
    """

    def notify_if_changed(
        self,
        previous: OddsSnapshot | None,
        current: OddsSnapshot,
        callback: OddsChangeCallback | None,
    ) -> bool:
        """Call ``callback(current, previous)`` if the odds differ.

        An exception raised by the callback is logged and does not propagate,
        so a faulty observer cannot stop polling.

        Args:
            previous: Snapshot shown before this update, or ``None``.
            current: Newly derived snapshot.
            callback: Observer to notify.

        Returns:
            True when the snapshot counts as a change.

        """
        if previous is None or previous.same_odds(current):
            return False
        if callback is not None:
            try:
                callback(current, previous)
            except Exception:
                logger.exception("Odds change callback failed")
        return True
