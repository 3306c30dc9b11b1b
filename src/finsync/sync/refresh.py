#!/usr/bin/env python3
"""
Tiered Refresh Scheduler

Decides what to refresh when the client returns to the foreground. Push
notifications are not guaranteed to arrive while inactive, so ledger entries
and accounts are always re-synced; after a long absence every other kind is
re-synced as well.
"""

import logging
import time
from collections.abc import Callable

from ..core.models import PRIORITY_KINDS, EntityKind
from .merge import MergeEngine

logger = logging.getLogger(__name__)

DEFAULT_INACTIVITY_THRESHOLD_SECONDS = 60.0


class TieredRefreshScheduler:
    """Foreground/background transition tracker driving incremental refreshes."""

    def __init__(
        self,
        engine: MergeEngine,
        threshold_seconds: float = DEFAULT_INACTIVITY_THRESHOLD_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        kinds: list[EntityKind] | None = None,
    ):
        """
        Initialize the scheduler.

        Args:
            engine: Merge engine the refreshes go through
            threshold_seconds: Inactivity beyond which every kind is refreshed
            clock: Monotonic clock in seconds (injectable for tests)
            kinds: Every refreshable kind (defaults to all)
        """
        self._engine = engine
        self.threshold_seconds = threshold_seconds
        self._clock = clock
        self._kinds = kinds or list(EntityKind)
        self._inactive_since: float | None = None

    @property
    def inactive_since(self) -> float | None:
        return self._inactive_since

    def mark_inactive(self) -> None:
        """Record the first transition to inactive; repeated calls keep the earliest."""
        if self._inactive_since is None:
            self._inactive_since = self._clock()
            logger.debug("Marked inactive")

    def plan_refresh(self, inactive_seconds: float) -> list[EntityKind]:
        """
        Kinds to refresh after the given inactivity.

        Priority kinds are always included; every remaining kind is added when
        the inactivity exceeds the threshold.
        """
        plan = [kind for kind in PRIORITY_KINDS if kind in self._kinds]
        if inactive_seconds > self.threshold_seconds:
            plan.extend(kind for kind in self._kinds if kind not in plan)
        return plan

    def mark_active(self) -> list[EntityKind]:
        """
        Handle the return to foreground.

        Returns:
            Kinds whose incremental sync was scheduled (empty when no inactive
            transition had been recorded)
        """
        if self._inactive_since is None:
            return []
        inactive_seconds = self._clock() - self._inactive_since
        self._inactive_since = None

        plan = self.plan_refresh(inactive_seconds)
        logger.info(
            f"Active after {inactive_seconds:.1f}s inactive; refreshing {', '.join(k.value for k in plan)}"
        )
        for kind in plan:
            # Zero delay still supersedes any debounced sync pending for the kind
            self._engine.schedule_sync(kind, 0.0)
        return plan
