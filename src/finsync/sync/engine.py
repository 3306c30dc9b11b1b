#!/usr/bin/env python3
"""
Sync Engine Orchestrator

Wires the cursor store, mutation guard, timers, merge engine, coalescer,
refresh scheduler, local mutations and derived views around one explicit
LocalCache handle.

Lifecycle:
    engine = SyncEngine.from_config(get_config())
    await engine.start()       # hydrate, sync every kind, subscribe
    ...
    await engine.stop()        # cancel timers, unsubscribe, flush
"""

import logging
import time
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any

from ..analysis.views import DerivedViews
from ..core.config import Config, SyncConfig
from ..core.dates import utc_now
from ..core.models import EntityKind
from ..storage.cache_store import CacheStore
from ..storage.local_cache import LocalCache
from .coalescer import ChangeNotificationCoalescer
from .cursor_store import SyncCursorStore
from .guard import MutationGuard
from .merge import MergeEngine, SyncResult
from .mutations import LocalMutations
from .refresh import TieredRefreshScheduler
from .registry import build_registry
from .remote import ChangeChannel, FileRemote, LocalChangeChannel, RemoteDataSource
from .timers import DelayedTaskScheduler

logger = logging.getLogger(__name__)


class SyncEngine:
    """Local-first sync engine bound to one cache handle and one remote."""

    def __init__(
        self,
        remote: RemoteDataSource,
        cache: LocalCache,
        channel: ChangeChannel | None = None,
        principal_id: str | None = None,
        sync_config: SyncConfig | None = None,
        base_currency: str = "USD",
        monotonic_clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize the engine.

        Args:
            remote: Remote data source
            cache: Local cache handle (hydrated by start())
            channel: Change-notification channel; None disables push updates
            principal_id: Principal whose changes the channel delivers
            sync_config: Guard, debounce and inactivity timings
            base_currency: Fallback base currency for derived views
            monotonic_clock: Clock for the guard window and inactivity tracking
            wall_clock: Clock for cursor timestamps
        """
        self.sync_config = sync_config or SyncConfig()
        self.cache = cache
        self.remote = remote
        self.principal_id = principal_id

        self.timers = DelayedTaskScheduler()
        self.guard = MutationGuard(self.sync_config.guard_window_seconds, clock=monotonic_clock)
        self.cursors = SyncCursorStore(cache.store)
        self.registry = build_registry(remote, self.sync_config)
        self.merge_engine = MergeEngine(cache, self.cursors, self.registry, self.guard, self.timers, clock=wall_clock)
        self.mutations = LocalMutations(cache, self.guard, remote, principal_id)
        self.views = DerivedViews(cache, base_currency, self.sync_config.max_category_depth)
        self.refresh_scheduler = TieredRefreshScheduler(
            self.merge_engine, self.sync_config.inactivity_threshold_seconds, clock=monotonic_clock
        )

        self.coalescer: ChangeNotificationCoalescer | None = None
        if channel is not None and principal_id:
            self.coalescer = ChangeNotificationCoalescer(
                principal_id, self.registry, self.merge_engine, cache, self.timers, channel
            )
        self._started = False

    @classmethod
    def from_config(cls, config: Config, channel: LocalChangeChannel | None = None) -> "SyncEngine":
        """Build an engine over the configured cache directory and file remote."""
        cache = LocalCache(CacheStore(config.cache_dir))
        remote = FileRemote(config.remote.snapshot_dir, channel=channel, principal_id=config.remote.principal_id)
        return cls(
            remote=remote,
            cache=cache,
            channel=channel,
            principal_id=config.remote.principal_id,
            sync_config=config.sync,
            base_currency=config.base_currency,
        )

    @property
    def is_started(self) -> bool:
        return self._started

    async def start(
        self, force_full: bool = False, kinds: Iterable[EntityKind] | None = None
    ) -> dict[EntityKind, SyncResult]:
        """
        Hydrate the cache and cursors, then sync.

        Kinds with a cursor sync incrementally, the rest (and every kind when
        force_full is set) are fetched in full.
        """
        corrupt = self.cache.hydrate()
        self.cursors.load()
        store = self.cache.store
        for kind in EntityKind:
            missing_blob = store is not None and not store.collection_file(kind).exists()
            if kind in corrupt or missing_blob:
                # Without the cached rows an incremental fetch would leave gaps
                self.cursors.clear(kind)

        results = await self.merge_engine.sync_all(kinds, force_full=force_full)
        failed = [kind.value for kind, result in results.items() if not result.success]
        if failed:
            logger.warning(f"Initial sync failed for: {', '.join(failed)}")

        if self.coalescer is not None:
            self.coalescer.start()
        self._started = True
        return results

    async def sync(self, kind: EntityKind, force_full: bool = False) -> SyncResult:
        return await self.merge_engine.sync(kind, force_full=force_full)

    async def stop(self) -> None:
        """Cancel pending timers, unsubscribe and flush the cache."""
        if self.coalescer is not None:
            self.coalescer.stop()
        self.timers.cancel_all()
        await self.timers.drain()
        self.cache.flush()
        self._started = False
        logger.info("Sync engine stopped")

    def status(self) -> dict[str, Any]:
        """Per-kind record counts and cursors."""
        cursors = self.cursors.all()
        return {
            kind.value: {
                "records": self.cache.count(kind),
                "cursor": cursors.get(kind.value),
                "pending": self.timers.is_pending(f"sync:{kind.value}"),
            }
            for kind in EntityKind
        }
