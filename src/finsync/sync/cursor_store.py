#!/usr/bin/env python3
"""
Sync Cursor Store

Per-entity last-successful-sync timestamps driving incremental fetch.

A cursor is keyed by the entity kind plus a canonical signature of the filter
set it was obtained with, so a cursor advanced by a filtered fetch is never
used for an unfiltered one (or vice versa). Cursors only move forward.
"""

import json
import logging
import threading
from datetime import datetime
from typing import Any, Mapping

from ..core.dates import parse_timestamp, to_iso_timestamp
from ..core.models import EntityKind
from ..storage.cache_store import CacheStore

logger = logging.getLogger(__name__)

Filters = Mapping[str, Any]


def cursor_key(kind: EntityKind, filters: Filters | None = None) -> str:
    """
    Canonical cursor key for an entity kind and filter set.

    Filters whose value is None are ignored; the rest are sorted by name.

    Examples:
        cursor_key(EntityKind.ACCOUNTS) -> "accounts"
        cursor_key(EntityKind.TRANSACTIONS, {"account_id": "ACC_1"})
            -> 'transactions?account_id="ACC_1"'
    """
    if not filters:
        return kind.value
    parts = [
        f"{name}={json.dumps(value, sort_keys=True, default=str)}"
        for name, value in sorted(filters.items())
        if value is not None
    ]
    if not parts:
        return kind.value
    return f"{kind.value}?{'&'.join(parts)}"


class SyncCursorStore:
    """Monotonic cursor map persisted through the local cache store."""

    def __init__(self, store: CacheStore | None = None):
        self._store = store
        self._lock = threading.Lock()
        self._cursors: dict[str, str] = {}

    def load(self) -> None:
        """Hydrate cursors from the persistent store."""
        if self._store is None:
            return
        cursors = self._store.load_cursors()
        with self._lock:
            self._cursors = cursors
        logger.debug(f"Loaded {len(cursors)} sync cursor(s)")

    def get(self, kind: EntityKind, filters: Filters | None = None) -> str | None:
        """Last successful sync timestamp for this kind and filter set."""
        with self._lock:
            return self._cursors.get(cursor_key(kind, filters))

    def advance(self, kind: EntityKind, timestamp: datetime | str, filters: Filters | None = None) -> bool:
        """
        Move a cursor forward.

        Args:
            kind: Entity kind
            timestamp: Fetch-start time of the successful fetch
            filters: Filter set the fetch was issued with

        Returns:
            True if stored; False when the timestamp is older than the current
            cursor (the cursor is left unchanged)
        """
        value = to_iso_timestamp(timestamp) if isinstance(timestamp, datetime) else timestamp
        new_moment = parse_timestamp(value)
        if new_moment is None:
            logger.warning(f"Refusing to store unparseable cursor for {kind.value}: {value!r}")
            return False

        key = cursor_key(kind, filters)
        with self._lock:
            current = parse_timestamp(self._cursors.get(key))
            if current is not None and new_moment < current:
                logger.warning(f"Cursor regression rejected for {key}: {value} < {self._cursors[key]}")
                return False
            self._cursors[key] = to_iso_timestamp(new_moment)
            snapshot = dict(self._cursors)

        self._persist(snapshot)
        return True

    def clear(self, kind: EntityKind | None = None) -> None:
        """Drop the cursors of one kind (every filter set), or all cursors."""
        with self._lock:
            if kind is None:
                self._cursors = {}
            else:
                prefix = f"{kind.value}?"
                self._cursors = {
                    key: value
                    for key, value in self._cursors.items()
                    if key != kind.value and not key.startswith(prefix)
                }
            snapshot = dict(self._cursors)
        self._persist(snapshot)

    def all(self) -> dict[str, str]:
        """Copy of the whole cursor map."""
        with self._lock:
            return dict(self._cursors)

    def _persist(self, cursors: dict[str, str]) -> None:
        if self._store is not None:
            self._store.save_cursors(cursors)
