#!/usr/bin/env python3
"""
Incremental Merge Engine

Brings one entity collection in line with the remote:

1. Inside the mutation guard window the sync is deferred, not run.
2. With no cursor (or when forced) the whole matching collection is fetched and
   replaces the cached one.
3. Otherwise only rows changed since the cursor are fetched and merged.
4. On success the cursor moves to the fetch-start time; on failure cursor and
   cache stay as they were.

Fetches are serialized per entity kind, and an identical request already in
flight is shared instead of re-issued.
"""

import asyncio
import logging
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..core.dates import to_iso_timestamp, utc_now
from ..core.errors import FetchError
from ..core.models import EntityKind, Record
from ..storage.local_cache import LocalCache
from .cursor_store import SyncCursorStore, cursor_key
from .dedup import RequestDeduplicator
from .guard import MutationGuard
from .registry import EntityRegistry
from .remote import matches_filters
from .timers import DelayedTaskScheduler

logger = logging.getLogger(__name__)


def sync_timer_key(kind: EntityKind, filters: Mapping[str, Any] | None = None) -> str:
    """Timer key shared by deferred and debounced syncs of one kind and filter set."""
    return f"sync:{cursor_key(kind, filters)}"


@dataclass
class SyncResult:
    """Outcome of one sync request."""

    success: bool
    kind: EntityKind
    records: list[Record] = field(default_factory=list)
    is_incremental: bool = False
    deferred: bool = False
    fetched_count: int = 0
    execution_time_seconds: float | None = None
    error_message: str | None = None


class MergeEngine:
    """Cursor-driven fetch and merge for every registered entity kind."""

    def __init__(
        self,
        cache: LocalCache,
        cursors: SyncCursorStore,
        registry: EntityRegistry,
        guard: MutationGuard,
        timers: DelayedTaskScheduler,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._cache = cache
        self._cursors = cursors
        self._registry = registry
        self._guard = guard
        self._timers = timers
        self._clock = clock
        self._locks: dict[EntityKind, asyncio.Lock] = {}
        self._dedup = RequestDeduplicator()
        # Timer keys whose next sync must be a full fetch
        self._pending_full: set[str] = set()
        self.fetch_count = 0

    @property
    def registry(self) -> EntityRegistry:
        return self._registry

    @property
    def cursors(self) -> SyncCursorStore:
        return self._cursors

    async def sync(
        self,
        kind: EntityKind,
        filters: Mapping[str, Any] | None = None,
        force_full: bool = False,
    ) -> SyncResult:
        """
        Sync one entity kind.

        Args:
            kind: Entity kind to sync
            filters: Entity-specific fetch filters (part of the cursor key)
            force_full: Ignore the cursor and replace the collection

        Returns:
            SyncResult; ``deferred`` is set when the guard window postponed it
        """
        filters = dict(filters or {})
        key = sync_timer_key(kind, filters)
        force_full = force_full or key in self._pending_full
        remaining = self._guard.remaining(kind)
        if remaining > 0:
            logger.info(f"Deferring {kind.value} sync for {remaining:.2f}s (recent local mutation)")
            self.schedule_sync(kind, remaining, filters, force_full)
            return SyncResult(success=True, kind=kind, deferred=True)

        params = {"filters": filters, "force_full": force_full}
        result = await self._dedup.run(
            f"sync:{kind.value}", params, lambda: self._sync_serialized(kind, filters, force_full)
        )
        if result.success and not result.deferred and not result.is_incremental:
            self._pending_full.discard(key)
        return result

    def require_full_sync(self, kind: EntityKind, filters: Mapping[str, Any] | None = None) -> None:
        """
        Make the next sync of this kind and filter set a full fetch.

        The requirement holds until a full fetch succeeds, whichever request
        (scheduled, deferred or direct) ends up running it.
        """
        self._pending_full.add(sync_timer_key(kind, filters))

    def needs_full_sync(self, kind: EntityKind, filters: Mapping[str, Any] | None = None) -> bool:
        return sync_timer_key(kind, filters) in self._pending_full

    async def sync_all(
        self, kinds: Iterable[EntityKind] | None = None, force_full: bool = False
    ) -> dict[EntityKind, SyncResult]:
        """Sync several kinds concurrently; each kind keeps its own result."""
        selected = list(kinds) if kinds is not None else self._registry.kinds()
        results = await asyncio.gather(*(self.sync(kind, force_full=force_full) for kind in selected))
        return dict(zip(selected, results))

    def schedule_sync(
        self,
        kind: EntityKind,
        delay: float,
        filters: Mapping[str, Any] | None = None,
        force_full: bool = False,
    ) -> None:
        """
        Schedule a sync after delay seconds, superseding any pending one for the same key.

        A superseded request's need for a full fetch carries over to the new one.
        """
        filters = dict(filters or {})
        if force_full:
            self.require_full_sync(kind, filters)

        async def run() -> None:
            result = await self.sync(kind, filters)
            if not result.success:
                logger.warning(f"Scheduled {kind.value} sync failed: {result.error_message}")

        self._timers.schedule(sync_timer_key(kind, filters), delay, run)

    def _lock_for(self, kind: EntityKind) -> asyncio.Lock:
        lock = self._locks.get(kind)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[kind] = lock
        return lock

    async def _sync_serialized(self, kind: EntityKind, filters: dict[str, Any], force_full: bool) -> SyncResult:
        async with self._lock_for(kind):
            return await self._sync_once(kind, filters, force_full)

    async def _sync_once(self, kind: EntityKind, filters: dict[str, Any], force_full: bool) -> SyncResult:
        start = time.perf_counter()
        handlers = self._registry[kind]
        cursor = None if force_full else self._cursors.get(kind, filters)
        incremental = cursor is not None

        fetch_started = self._clock()
        self.fetch_count += 1
        try:
            incoming = await handlers.fetch(filters, cursor)
        except FetchError as e:
            logger.error(f"Failed to sync {kind.value}: {e}")
            return SyncResult(
                success=False,
                kind=kind,
                is_incremental=incremental,
                execution_time_seconds=time.perf_counter() - start,
                error_message=str(e),
            )

        # No await between reading the collection and swapping it in
        existing = self._cache.snapshot().collections[kind]
        if incremental:
            merged = handlers.merge(existing, incoming, True)
        elif filters:
            # A filtered full fetch only replaces the slice it covers
            outside = {key: record for key, record in existing.items() if not matches_filters(record, filters)}
            merged = {**outside, **handlers.merge({}, incoming, False)}
        else:
            merged = handlers.merge({}, incoming, False)
        self._cache.swap(kind, merged)
        self._cursors.advance(kind, to_iso_timestamp(fetch_started), filters)

        elapsed = time.perf_counter() - start
        mode = "incremental" if incremental else "full"
        logger.info(f"Synced {kind.value} ({mode}): {len(incoming)} fetched, {len(merged)} cached")
        return SyncResult(
            success=True,
            kind=kind,
            records=list(merged.values()),
            is_incremental=incremental,
            fetched_count=len(incoming),
            execution_time_seconds=elapsed,
        )
