#!/usr/bin/env python3
"""
Mutation Guard

Records a marker for every local create/update/delete and reports whether an
entity is still inside the guard window that follows it. A sync requested
inside the window is deferred, not executed, so a lagging replica cannot
revert a fresh optimistic write.
"""

import logging
import time
from typing import Callable

from ..core.models import EntityKind

logger = logging.getLogger(__name__)

DEFAULT_GUARD_WINDOW_SECONDS = 2.0


class MutationGuard:
    """At most one marker per entity kind; the latest mutation wins."""

    def __init__(
        self,
        window_seconds: float = DEFAULT_GUARD_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the guard.

        Args:
            window_seconds: Guard window length
            clock: Monotonic clock in seconds (injectable for tests)
        """
        self.window_seconds = window_seconds
        self._clock = clock
        self._markers: dict[EntityKind, float] = {}

    def mark_mutated(self, kind: EntityKind) -> None:
        """Record a local mutation of this kind at the current time."""
        self._markers[kind] = self._clock()
        logger.debug(f"Mutation marker set for {kind.value}")

    def within_guard(self, kind: EntityKind) -> bool:
        """True while less than the guard window has elapsed since the last mutation."""
        return self.remaining(kind) > 0

    def remaining(self, kind: EntityKind) -> float:
        """Seconds left in the guard window (0.0 when outside it)."""
        marker = self._markers.get(kind)
        if marker is None:
            return 0.0
        left = self.window_seconds - (self._clock() - marker)
        if left <= 0:
            del self._markers[kind]
            return 0.0
        return left

    def clear(self) -> None:
        self._markers.clear()
