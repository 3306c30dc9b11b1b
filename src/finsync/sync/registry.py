#!/usr/bin/env python3
"""
Entity Handler Registry

Maps every EntityKind to the handlers the engine needs for it: how to fetch it
from the remote, how to merge a fetched batch, how to apply a pushed change
directly, and how change notifications for it are coalesced.
"""

import logging
from collections.abc import Awaitable, Callable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..core.config import SyncConfig
from ..core.errors import FetchError
from ..core.models import EntityKind, Record, is_tombstoned, record_key
from ..storage.local_cache import LocalCache
from .delta import merge_incremental, replace_collection
from .remote import ChangeEvent, EventType, RemoteDataSource

logger = logging.getLogger(__name__)

FetchFn = Callable[[Mapping[str, Any], str | None], Awaitable[list[Record]]]
MergeFn = Callable[[Mapping[str, Record], list[Record], bool], dict[str, Record]]
PatchFn = Callable[[LocalCache, ChangeEvent], None]


class NotificationPolicy(Enum):
    """How a pushed change for an entity kind reaches the cache."""

    # Apply the pushed row to the cache immediately, no fetch
    DIRECT_PATCH = "direct_patch"
    # Collapse bursts into one scheduled sync
    DEBOUNCE = "debounce"


@dataclass
class EntityHandlers:
    """Fetch/merge/patch handlers for one entity kind, closed over its key field."""

    kind: EntityKind
    fetch: FetchFn
    merge: MergeFn
    apply_patch: PatchFn
    policy: NotificationPolicy = NotificationPolicy.DEBOUNCE
    debounce_seconds: float = 0.5
    default_filters: dict[str, Any] = field(default_factory=dict)
    # Other kinds whose views depend on this one and refresh alongside it
    also_refresh: tuple[EntityKind, ...] = ()


class EntityRegistry:
    """Typed registry: EntityKind -> EntityHandlers, plus table routing."""

    def __init__(self, handlers: list[EntityHandlers]):
        self._handlers = {h.kind: h for h in handlers}
        self._by_table: dict[str, EntityKind] = {}
        for handler in handlers:
            # The first kind registered for a table owns its notifications
            self._by_table.setdefault(handler.kind.table, handler.kind)

    def __getitem__(self, kind: EntityKind) -> EntityHandlers:
        return self._handlers[kind]

    def __iter__(self) -> Iterator[EntityHandlers]:
        return iter(self._handlers.values())

    def __contains__(self, kind: object) -> bool:
        return kind in self._handlers

    def kinds(self) -> list[EntityKind]:
        return list(self._handlers)

    def for_table(self, table: str) -> EntityKind | None:
        """Entity kind that change events for a remote table are routed to."""
        return self._by_table.get(table)


def _make_fetch(remote: RemoteDataSource, kind: EntityKind, default_filters: Mapping[str, Any]) -> FetchFn:
    async def fetch(filters: Mapping[str, Any], since: str | None) -> list[Record]:
        merged = {**default_filters, **filters}
        try:
            return await remote.fetch(kind.table, merged, since)
        except FetchError:
            raise
        except Exception as e:
            raise FetchError(kind.value, str(e)) from e

    return fetch


def _make_merge(kind: EntityKind) -> MergeFn:
    key_field = kind.key_field

    def merge(existing: Mapping[str, Record], incoming: list[Record], incremental: bool) -> dict[str, Record]:
        if incremental:
            return merge_incremental(existing, incoming, key_field)
        return replace_collection(incoming, key_field)

    return merge


def _make_patch(kind: EntityKind) -> PatchFn:
    def apply_patch(cache: LocalCache, event: ChangeEvent) -> None:
        record = event.record
        if record is None:
            return
        key = record_key(kind, record)
        if key is None:
            logger.warning(f"Ignoring {kind.value} change without {kind.key_field}")
            return
        if event.event_type == EventType.DELETE or is_tombstoned(record):
            cache.remove(kind, key)
        else:
            cache.upsert(kind, record)

    return apply_patch


def build_registry(remote: RemoteDataSource, sync_config: SyncConfig | None = None) -> EntityRegistry:
    """
    Build the handler registry for every entity kind.

    Accounts are small and directly addressable, so pushed changes patch the
    cache. Ledger entries debounce on the shorter ledger window and pull
    transfer legs and accounts along with them.
    """
    sync_config = sync_config or SyncConfig()
    handlers = []
    for kind in EntityKind:
        default_filters: dict[str, Any] = {}
        policy = NotificationPolicy.DEBOUNCE
        debounce = sync_config.debounce_seconds
        also_refresh: tuple[EntityKind, ...] = ()

        if kind == EntityKind.ACCOUNTS:
            policy = NotificationPolicy.DIRECT_PATCH
        elif kind == EntityKind.TRANSACTIONS:
            debounce = sync_config.ledger_debounce_seconds
            also_refresh = (EntityKind.TRANSFERS, EntityKind.ACCOUNTS)
        elif kind == EntityKind.TRANSFERS:
            default_filters = {"transfer_only": True}

        handlers.append(
            EntityHandlers(
                kind=kind,
                fetch=_make_fetch(remote, kind, default_filters),
                merge=_make_merge(kind),
                apply_patch=_make_patch(kind),
                policy=policy,
                debounce_seconds=debounce,
                default_filters=default_filters,
                also_refresh=also_refresh,
            )
        )
    return EntityRegistry(handlers)
