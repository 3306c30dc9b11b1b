#!/usr/bin/env python3
"""Unit tests for the entity handler registry."""

import pytest

from finsync.core.config import SyncConfig
from finsync.core.errors import FetchError
from finsync.core.models import EntityKind
from finsync.storage.local_cache import LocalCache
from finsync.sync.registry import NotificationPolicy, build_registry
from finsync.sync.remote import ChangeEvent, EventType
from tests.fixtures.fake_remote import FakeRemote
from tests.fixtures.records import make_account, make_entry


@pytest.mark.sync
class TestBuildRegistry:
    """Test per-kind handler configuration."""

    def setup_method(self):
        self.remote = FakeRemote()
        self.registry = build_registry(self.remote, SyncConfig(debounce_ms=500, ledger_debounce_ms=300))

    def test_every_kind_is_registered(self):
        """Test registry completeness."""
        assert set(self.registry.kinds()) == set(EntityKind)

    def test_policies(self):
        """Test accounts patch directly and everything else debounces."""
        assert self.registry[EntityKind.ACCOUNTS].policy == NotificationPolicy.DIRECT_PATCH
        assert self.registry[EntityKind.CATEGORIES].policy == NotificationPolicy.DEBOUNCE
        assert self.registry[EntityKind.TRANSACTIONS].debounce_seconds == pytest.approx(0.3)
        assert self.registry[EntityKind.BUDGETS].debounce_seconds == pytest.approx(0.5)

    def test_ledger_refreshes_dependents(self):
        """Test that ledger changes pull transfers and accounts along."""
        assert self.registry[EntityKind.TRANSACTIONS].also_refresh == (EntityKind.TRANSFERS, EntityKind.ACCOUNTS)

    def test_ledger_table_routes_to_transactions(self):
        """Test table routing when two kinds share a table."""
        assert self.registry.for_table("transactions") == EntityKind.TRANSACTIONS
        assert self.registry.for_table("payees") is None

    @pytest.mark.asyncio
    async def test_transfers_fetch_applies_default_filter(self):
        """Test that the transfers kind only fetches transfer legs."""
        self.remote.seed("transactions", [make_entry("T1"), make_entry("T2", transfer_id="TRF_1")])

        rows = await self.registry[EntityKind.TRANSFERS].fetch({}, None)

        assert [r["transaction_id"] for r in rows] == ["T2"]
        assert self.remote.fetch_calls[0][1] == {"transfer_only": True}

    @pytest.mark.asyncio
    async def test_unexpected_fetch_errors_are_wrapped(self):
        """Test that adapter exceptions surface as FetchError."""

        class BrokenRemote(FakeRemote):
            async def fetch(self, table, filters, since):
                raise ConnectionError("reset by peer")

        registry = build_registry(BrokenRemote())
        with pytest.raises(FetchError, match="reset by peer"):
            await registry[EntityKind.ACCOUNTS].fetch({}, None)


@pytest.mark.sync
class TestDirectPatch:
    """Test applying pushed rows to the cache."""

    def setup_method(self):
        self.registry = build_registry(FakeRemote())
        self.cache = LocalCache()
        self.patch = self.registry[EntityKind.ACCOUNTS].apply_patch

    def test_insert_and_update(self):
        """Test upserting pushed rows."""
        self.patch(self.cache, ChangeEvent("accounts", EventType.INSERT, new=make_account("A1")))
        self.patch(self.cache, ChangeEvent("accounts", EventType.UPDATE, new=make_account("A1", name="Renamed")))
        assert self.cache.get(EntityKind.ACCOUNTS, "A1")["name"] == "Renamed"

    def test_delete_removes(self):
        """Test hard deletes."""
        self.cache.upsert(EntityKind.ACCOUNTS, make_account("A1"))
        self.patch(self.cache, ChangeEvent("accounts", EventType.DELETE, old={"account_id": "A1"}))
        assert self.cache.get(EntityKind.ACCOUNTS, "A1") is None

    def test_keyless_event_is_ignored(self):
        """Test events without a primary key."""
        self.patch(self.cache, ChangeEvent("accounts", EventType.INSERT, new={"name": "?"}))
        assert self.cache.count(EntityKind.ACCOUNTS) == 0
