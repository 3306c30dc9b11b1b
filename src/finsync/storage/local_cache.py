#!/usr/bin/env python3
"""
Local Cache Handle

The in-memory, client-resident copy of every entity collection. One LocalCache
instance is created per session and handed to each component explicitly;
there is no module-level store.

Lifecycle: ``hydrate()`` from the persistent store, run, ``flush()``.

Collections are copy-on-write: every change reads the current mapping, builds
a new one and swaps it in under one lock, so concurrent writers never lose each
other's records and a reader holding a snapshot never sees a collection
mid-merge.
"""

import logging
import threading
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Iterable, Mapping

from ..core.models import EntityKind, Record, is_tombstoned, record_key
from .cache_store import CacheStore

logger = logging.getLogger(__name__)

CacheListener = Callable[[EntityKind, int], None]


@dataclass(frozen=True)
class CacheSnapshot:
    """Immutable view of every collection at one cache version."""

    version: int
    collections: Mapping[EntityKind, Mapping[str, Record]]

    def records(self, kind: EntityKind) -> list[Record]:
        """Records of one collection in insertion order."""
        return list(self.collections[kind].values())

    def get(self, kind: EntityKind, key: str) -> Record | None:
        return self.collections[kind].get(key)

    def count(self, kind: EntityKind) -> int:
        return len(self.collections[kind])


class LocalCache:
    """Explicit cache handle shared by the merge engine, coalescer, mutations and views."""

    def __init__(self, store: CacheStore | None = None, autosave: bool = True):
        """
        Initialize an empty cache.

        Args:
            store: Persistent store; None keeps the cache memory-only
            autosave: Persist a collection as soon as it changes
        """
        self._store = store
        self._autosave = autosave and store is not None
        self._lock = threading.Lock()
        self._collections: dict[EntityKind, dict[str, Record]] = {kind: {} for kind in EntityKind}
        self._version = 0
        self._dirty: set[EntityKind] = set()
        self._listeners: list[CacheListener] = []

    @property
    def store(self) -> CacheStore | None:
        return self._store

    @property
    def version(self) -> int:
        """Monotonic counter bumped on every collection change."""
        return self._version

    def hydrate(self) -> set[EntityKind]:
        """
        Load every collection from the persistent store.

        Returns:
            Kinds whose blob was corrupt and had to be reset to empty; callers
            must drop those kinds' cursors so the next sync is a full fetch
        """
        if self._store is None:
            return set()

        corrupt: set[EntityKind] = set()
        loaded: dict[EntityKind, dict[str, Record]] = {}
        for kind in EntityKind:
            try:
                records = self._store.load_collection(kind)
            except ValueError as e:
                logger.warning(f"Discarding cached {kind.value}: {e}")
                corrupt.add(kind)
                records = []
            loaded[kind] = _index_records(kind, records)

        with self._lock:
            self._collections = loaded
            self._version += 1
            self._dirty.clear()

        total = sum(len(c) for c in loaded.values())
        logger.info(f"Hydrated local cache with {total} records")
        return corrupt

    def flush(self) -> None:
        """Persist every collection changed since the last save."""
        if self._store is None:
            return
        with self._lock:
            dirty = set(self._dirty)
            self._dirty.clear()
            collections = {kind: self._collections[kind] for kind in dirty}
        for kind, mapping in collections.items():
            self._store.save_collection(kind, list(mapping.values()))
        if dirty:
            logger.debug(f"Flushed {len(dirty)} collection(s) to disk")

    def subscribe(self, listener: CacheListener) -> None:
        """Register a callback invoked with (kind, version) after each change."""
        self._listeners.append(listener)

    def snapshot(self) -> CacheSnapshot:
        """Consistent read-only view of every collection."""
        with self._lock:
            collections = {kind: MappingProxyType(mapping) for kind, mapping in self._collections.items()}
            version = self._version
        return CacheSnapshot(version=version, collections=MappingProxyType(collections))

    def records(self, kind: EntityKind) -> list[Record]:
        """Records of one collection in insertion order."""
        with self._lock:
            return list(self._collections[kind].values())

    def get(self, kind: EntityKind, key: str) -> Record | None:
        with self._lock:
            return self._collections[kind].get(key)

    def count(self, kind: EntityKind) -> int:
        with self._lock:
            return len(self._collections[kind])

    def replace(self, kind: EntityKind, records: Iterable[Record]) -> None:
        """Replace a whole collection (tombstoned records are dropped)."""
        self._swap(kind, _index_records(kind, records))

    def swap(self, kind: EntityKind, mapping: dict[str, Record]) -> None:
        """Install a mapping built by the merge engine as the new collection."""
        self._swap(kind, dict(mapping))

    def upsert(self, kind: EntityKind, record: Record) -> Record | None:
        """
        Insert or wholly replace one record.

        A record carrying a tombstone removes the cached copy instead.

        Returns:
            The previously cached record, if any
        """
        key = record_key(kind, record)
        if key is None:
            raise ValueError(f"{kind.value} record is missing {kind.key_field}")
        if is_tombstoned(record):
            return self.remove(kind, key)
        with self._lock:
            current = self._collections[kind]
            previous = current.get(key)
            updated = dict(current)
            updated[key] = dict(record)
            version = self._install(kind, updated)
        self._after_swap(kind, updated, version)
        return previous

    def remove(self, kind: EntityKind, key: str) -> Record | None:
        """Remove one record; returns it, or None when it was not cached."""
        with self._lock:
            current = self._collections[kind]
            if key not in current:
                return None
            previous = current[key]
            updated = {k: v for k, v in current.items() if k != key}
            version = self._install(kind, updated)
        self._after_swap(kind, updated, version)
        return previous

    def clear(self) -> None:
        """Empty every collection (persisted on the next flush)."""
        for kind in EntityKind:
            self._swap(kind, {})

    def _swap(self, kind: EntityKind, mapping: dict[str, Record]) -> None:
        with self._lock:
            version = self._install(kind, mapping)
        self._after_swap(kind, mapping, version)

    def _install(self, kind: EntityKind, mapping: dict[str, Record]) -> int:
        # Caller holds self._lock
        self._collections[kind] = mapping
        self._version += 1
        self._dirty.add(kind)
        return self._version

    def _after_swap(self, kind: EntityKind, mapping: dict[str, Record], version: int) -> None:
        if self._autosave:
            with self._lock:
                # A newer swap of this kind persists its own mapping
                still_current = self._collections[kind] is mapping
            if still_current:
                self._store.save_collection(kind, list(mapping.values()))  # type: ignore[union-attr]
                with self._lock:
                    if self._collections[kind] is mapping:
                        self._dirty.discard(kind)

        for listener in list(self._listeners):
            try:
                listener(kind, version)
            except Exception as e:
                logger.error(f"Cache listener failed for {kind.value}: {e}")


def _index_records(kind: EntityKind, records: Iterable[Record]) -> dict[str, Record]:
    """Key records by primary key, preserving order and dropping tombstones."""
    indexed: dict[str, Record] = {}
    for record in records:
        key = record_key(kind, record)
        if key is None:
            logger.warning(f"Skipping {kind.value} record without {kind.key_field}")
            continue
        if is_tombstoned(record):
            indexed.pop(key, None)
            continue
        indexed[key] = dict(record)
    return indexed
