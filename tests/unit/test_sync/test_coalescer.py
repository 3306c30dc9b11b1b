#!/usr/bin/env python3
"""Unit tests for change-notification coalescing."""

import asyncio
import logging

import pytest

from finsync.core.config import SyncConfig
from finsync.core.models import EntityKind
from finsync.storage.local_cache import LocalCache
from finsync.sync.coalescer import ChangeNotificationCoalescer
from finsync.sync.cursor_store import SyncCursorStore
from finsync.sync.guard import MutationGuard
from finsync.sync.merge import MergeEngine
from finsync.sync.refresh import TieredRefreshScheduler
from finsync.sync.registry import build_registry
from finsync.sync.remote import ChangeEvent, ChannelStatus, EventType, LocalChangeChannel
from finsync.sync.timers import DelayedTaskScheduler
from tests.fixtures.clocks import FakeClock
from tests.fixtures.fake_remote import FakeRemote
from tests.fixtures.records import make_account, make_category, make_entry

DEBOUNCE = SyncConfig(debounce_ms=20, ledger_debounce_ms=20)
SETTLE = 0.1
GUARD_WINDOW = 0.15


class CoalescerHarness:
    """Coalescer over a real merge engine and an in-memory remote."""

    def __init__(self):
        self.remote = FakeRemote()
        self.cache = LocalCache()
        self.timers = DelayedTaskScheduler()
        self.channel = LocalChangeChannel()
        registry = build_registry(self.remote, DEBOUNCE)
        self.guard = MutationGuard(GUARD_WINDOW)
        self.engine = MergeEngine(self.cache, SyncCursorStore(), registry, self.guard, self.timers)
        self.coalescer = ChangeNotificationCoalescer(
            "user-1", registry, self.engine, self.cache, self.timers, self.channel
        )

    async def settle(self):
        await asyncio.sleep(SETTLE)
        await self.timers.drain()


def category_event(category_id, event_type=EventType.UPDATE, user_id="user-1"):
    row = make_category(category_id, user_id=user_id)
    if event_type == EventType.DELETE:
        return ChangeEvent("categories", event_type, old=row)
    return ChangeEvent("categories", event_type, new=row)


@pytest.mark.sync
class TestDebouncedKinds:
    """Test burst collapsing."""

    @pytest.mark.asyncio
    async def test_burst_triggers_one_sync(self):
        """Test that N events within the window produce one fetch."""
        h = CoalescerHarness()
        h.remote.seed("categories", [make_category(f"C{i}") for i in range(5)])

        for i in range(5):
            h.coalescer.handle_event(category_event(f"C{i}"))
        assert h.coalescer.is_pending(EntityKind.CATEGORIES)
        await h.settle()

        assert len(h.remote.fetches_for("categories")) == 1
        assert h.cache.count(EntityKind.CATEGORIES) == 5
        assert not h.coalescer.is_pending(EntityKind.CATEGORIES)

    @pytest.mark.asyncio
    async def test_events_after_window_sync_again(self):
        """Test that separate bursts sync separately."""
        h = CoalescerHarness()
        h.coalescer.handle_event(category_event("C1"))
        await h.settle()
        h.coalescer.handle_event(category_event("C2"))
        await h.settle()

        assert len(h.remote.fetches_for("categories")) == 2

    @pytest.mark.asyncio
    async def test_hard_delete_forces_full_sync(self):
        """Test that a DELETE on a hard-deleted kind bypasses the cursor."""
        h = CoalescerHarness()
        h.remote.seed("categories", [make_category("C1"), make_category("C2")])
        await h.engine.sync(EntityKind.CATEGORIES)
        h.remote.seed("categories", [make_category("C2")])

        h.coalescer.handle_event(category_event("C1", EventType.DELETE))
        await h.settle()

        last_call = h.remote.fetches_for("categories")[-1]
        assert last_call[2] is None
        assert [r["category_id"] for r in h.cache.records(EntityKind.CATEGORIES)] == ["C2"]

    @pytest.mark.asyncio
    async def test_ledger_event_refreshes_transfers_and_accounts(self):
        """Test dependent refreshes for ledger changes."""
        h = CoalescerHarness()
        h.remote.seed("transactions", [make_entry("T1"), make_entry("T2", transfer_id="TRF_1")])
        h.remote.seed("accounts", [make_account("ACC_1")])

        h.coalescer.handle_event(ChangeEvent("transactions", EventType.INSERT, new=make_entry("T1")))
        await h.settle()

        ledger_filters = [call[1] for call in h.remote.fetches_for("transactions")]
        assert {} in ledger_filters
        assert {"transfer_only": True} in ledger_filters
        assert len(h.remote.fetches_for("accounts")) == 1
        assert h.cache.count(EntityKind.TRANSFERS) == 1


@pytest.mark.sync
class TestDirectPatchAndFiltering:
    """Test direct patches and principal filtering."""

    @pytest.mark.asyncio
    async def test_account_change_patches_without_fetch(self):
        """Test that account events are applied immediately."""
        h = CoalescerHarness()
        h.coalescer.handle_event(ChangeEvent("accounts", EventType.INSERT, new=make_account("A1")))

        assert h.cache.get(EntityKind.ACCOUNTS, "A1") is not None
        assert h.remote.fetch_calls == []
        assert h.timers.pending_keys() == []

    @pytest.mark.asyncio
    async def test_other_principal_is_ignored(self):
        """Test that foreign events never touch the cache or timers."""
        h = CoalescerHarness()
        h.coalescer.handle_event(ChangeEvent("accounts", EventType.INSERT, new=make_account("A9", user_id="user-2")))
        h.coalescer.handle_event(category_event("C9", user_id="user-2"))

        assert h.coalescer.ignored_count == 2
        assert h.cache.count(EntityKind.ACCOUNTS) == 0
        assert h.timers.pending_keys() == []

    @pytest.mark.asyncio
    async def test_unknown_table_is_ignored(self):
        """Test events for unregistered tables."""
        h = CoalescerHarness()
        h.coalescer.handle_event(ChangeEvent("payees", EventType.INSERT, new={"user_id": "user-1"}))
        assert h.timers.pending_keys() == []


@pytest.mark.sync
class TestSubscriptionLifecycle:
    """Test channel subscription and status handling."""

    @pytest.mark.asyncio
    async def test_start_subscribes_and_routes_channel_events(self):
        """Test events published on the channel reach the coalescer."""
        h = CoalescerHarness()
        h.coalescer.start()
        h.coalescer.start()
        assert h.channel.subscriber_count == 1

        h.channel.publish(ChangeEvent("accounts", EventType.INSERT, new=make_account("A1")))
        assert h.cache.count(EntityKind.ACCOUNTS) == 1

    @pytest.mark.asyncio
    async def test_stop_cancels_pending_syncs(self):
        """Test that stopping drops debounced work."""
        h = CoalescerHarness()
        h.coalescer.start()
        h.coalescer.handle_event(category_event("C1"))

        h.coalescer.stop()
        await h.settle()

        assert h.remote.fetch_calls == []
        assert h.channel.subscriber_count == 0

    def test_channel_error_is_logged(self, caplog):
        """Test that channel errors surface as warnings."""
        h = CoalescerHarness()
        with caplog.at_level(logging.WARNING, logger="finsync.sync.coalescer"):
            h.coalescer.handle_status(ChannelStatus.CHANNEL_ERROR)
        assert "CHANNEL_ERROR" in caplog.text


@pytest.mark.sync
class TestFullResyncAfterHardDelete:
    """Test that the full fetch owed after a hard delete is never dropped."""

    async def seed_and_delete_c1(self, h):
        h.remote.seed("categories", [make_category("C1"), make_category("C2")])
        await h.engine.sync(EntityKind.CATEGORIES)
        h.remote.seed("categories", [make_category("C2")])

    def cached_ids(self, h):
        return sorted(r["category_id"] for r in h.cache.records(EntityKind.CATEGORIES))

    @pytest.mark.asyncio
    async def test_deferred_full_sync_survives_later_event(self):
        """Test a hard delete deferred by the guard, then superseded by another event."""
        h = CoalescerHarness()
        await self.seed_and_delete_c1(h)
        h.guard.mark_mutated(EntityKind.CATEGORIES)

        h.coalescer.handle_event(category_event("C1", EventType.DELETE))
        await asyncio.sleep(0.05)
        assert h.engine.needs_full_sync(EntityKind.CATEGORIES)

        h.coalescer.handle_event(category_event("C2"))
        await asyncio.sleep(GUARD_WINDOW + SETTLE)
        await h.timers.drain()

        assert h.remote.fetches_for("categories")[-1][2] is None
        assert self.cached_ids(h) == ["C2"]
        assert not h.engine.needs_full_sync(EntityKind.CATEGORIES)

    @pytest.mark.asyncio
    async def test_refresh_after_inactivity_keeps_full_sync(self):
        """Test a hard delete whose debounce timer is replaced by a foreground refresh."""
        h = CoalescerHarness()
        await self.seed_and_delete_c1(h)
        clock = FakeClock()
        refresh = TieredRefreshScheduler(h.engine, threshold_seconds=30, clock=clock)
        refresh.mark_inactive()
        clock.advance(40)

        h.coalescer.handle_event(category_event("C1", EventType.DELETE))
        assert EntityKind.CATEGORIES in refresh.mark_active()
        await h.settle()

        assert h.remote.fetches_for("categories")[-1][2] is None
        assert self.cached_ids(h) == ["C2"]

    @pytest.mark.asyncio
    async def test_failed_full_sync_is_retried_in_full(self):
        """Test that a failed fetch leaves the full-fetch requirement in place."""
        h = CoalescerHarness()
        await self.seed_and_delete_c1(h)
        h.remote.fail_fetch.add("categories")

        h.coalescer.handle_event(category_event("C1", EventType.DELETE))
        await h.settle()
        assert h.engine.needs_full_sync(EntityKind.CATEGORIES)

        h.remote.fail_fetch.clear()
        result = await h.engine.sync(EntityKind.CATEGORIES)

        assert result.success and not result.is_incremental
        assert self.cached_ids(h) == ["C2"]
        assert not h.engine.needs_full_sync(EntityKind.CATEGORIES)
