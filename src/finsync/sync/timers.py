#!/usr/bin/env python3
"""
Delayed Task Scheduler

Per-key cancellable delayed tasks on the running asyncio loop. Scheduling a key
that already has a pending task cancels the older one, so a stale sync is never
fired after it has been superseded.
"""

import asyncio
import inspect
import logging
from collections.abc import Callable, Hashable
from typing import Any

logger = logging.getLogger(__name__)

# Plain callables or coroutine functions
TaskFn = Callable[[], Any]


class DelayedTaskScheduler:
    """
    Timer abstraction keyed by an arbitrary hashable (usually an EntityKind).

    Example:
        timers = DelayedTaskScheduler()
        timers.schedule(EntityKind.TRANSACTIONS, 0.3, lambda: engine.sync(kind))
        timers.schedule(EntityKind.TRANSACTIONS, 0.3, ...)  # resets the window
    """

    def __init__(self) -> None:
        self._handles: dict[Hashable, asyncio.TimerHandle] = {}
        self._running: set[asyncio.Task] = set()

    def schedule(self, key: Hashable, delay: float, fn: TaskFn) -> None:
        """
        Run fn after delay seconds, superseding any pending task for key.

        Must be called from within a running event loop.
        """
        self.cancel(key)
        loop = asyncio.get_running_loop()
        self._handles[key] = loop.call_later(max(delay, 0.0), self._fire, key, fn)

    def cancel(self, key: Hashable) -> bool:
        """Cancel the pending task for key; returns True if one was pending."""
        handle = self._handles.pop(key, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_all(self) -> None:
        """Cancel every pending task (fired tasks already running are left alone)."""
        for handle in self._handles.values():
            handle.cancel()
        self._handles.clear()

    def is_pending(self, key: Hashable) -> bool:
        return key in self._handles

    def pending_keys(self) -> list[Hashable]:
        return list(self._handles)

    async def drain(self) -> None:
        """Wait for fired tasks that are still running."""
        while self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)

    def _fire(self, key: Hashable, fn: TaskFn) -> None:
        self._handles.pop(key, None)
        task = asyncio.ensure_future(self._run(key, fn))
        self._running.add(task)
        task.add_done_callback(self._running.discard)

    async def _run(self, key: Hashable, fn: TaskFn) -> None:
        try:
            result = fn()
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"Delayed task {key!r} failed: {e}", exc_info=True)
