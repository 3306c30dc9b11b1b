#!/usr/bin/env python3
"""
Local Persistent Cache Store

Durable storage of every entity collection across sessions: one JSON blob per
collection plus one blob holding the sync cursor map. Every write replaces the
blob atomically, so a crash leaves either the old or the new collection.

Authentication and session state are never written here.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from ..core.json_utils import read_json, write_json_atomic
from ..core.models import EntityKind, Record

logger = logging.getLogger(__name__)

CURSORS_FILE = "cursors.json"


class CacheStore:
    """
    DataStore for the local entity cache.

    Layout under ``cache_dir``::

        transactions.json      list of records, insertion-ordered
        accounts.json
        ...
        cursors.json           {cursor key: ISO timestamp}
    """

    def __init__(self, cache_dir: Path):
        """
        Initialize cache store.

        Args:
            cache_dir: Directory containing the collection blobs
        """
        self.cache_dir = Path(cache_dir)
        self.cursors_file = self.cache_dir / CURSORS_FILE

    def collection_file(self, kind: EntityKind) -> Path:
        """Path of the blob holding one collection."""
        return self.cache_dir / f"{kind.value}.json"

    def exists(self) -> bool:
        """True when at least one collection blob has been written."""
        return any(self.collection_file(kind).exists() for kind in EntityKind)

    def load_collection(self, kind: EntityKind) -> list[Record]:
        """
        Load one collection.

        Returns:
            List of records (empty when the blob does not exist yet)

        Raises:
            ValueError: If the blob is not a JSON list of objects
        """
        path = self.collection_file(kind)
        if not path.exists():
            return []
        try:
            data = read_json(path)
        except ValueError as e:
            raise ValueError(f"Corrupt cache blob {path}: {e}") from e
        if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
            raise ValueError(f"Invalid cache blob {path}: expected a list of records")
        return data

    def save_collection(self, kind: EntityKind, records: list[Record]) -> None:
        """Atomically replace one collection blob."""
        write_json_atomic(self.collection_file(kind), records)

    def load(self) -> dict[EntityKind, list[Record]]:
        """
        Load every collection.

        Raises:
            ValueError: If any blob is corrupt
        """
        return {kind: self.load_collection(kind) for kind in EntityKind}

    def save(self, data: dict[EntityKind, list[Record]]) -> None:
        """Save the given collections (kinds missing from data are left alone)."""
        for kind, records in data.items():
            self.save_collection(kind, records)

    def load_cursors(self) -> dict[str, str]:
        """Load the cursor map; a missing or corrupt blob yields an empty map."""
        if not self.cursors_file.exists():
            return {}
        try:
            data: Any = read_json(self.cursors_file)
        except ValueError as e:
            logger.warning(f"Ignoring corrupt cursor blob {self.cursors_file}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring invalid cursor blob {self.cursors_file}")
            return {}
        return {str(key): str(value) for key, value in data.items() if value}

    def save_cursors(self, cursors: dict[str, str]) -> None:
        """Atomically replace the cursor map."""
        write_json_atomic(self.cursors_file, cursors)

    def blob_files(self) -> list[Path]:
        """Collection and cursor blobs currently on disk."""
        paths = [self.collection_file(kind) for kind in EntityKind] + [self.cursors_file]
        return [path for path in paths if path.exists()]

    def clear(self) -> None:
        """Delete every blob (collections and cursors)."""
        for path in self.blob_files():
            path.unlink(missing_ok=True)

    def last_modified(self) -> datetime | None:
        """Get timestamp of the most recently written blob."""
        blobs = self.blob_files()
        if not blobs:
            return None
        return datetime.fromtimestamp(max(path.stat().st_mtime for path in blobs))

    def age_days(self) -> int | None:
        """Days since the last blob was written (None before the first write)."""
        last_mod = self.last_modified()
        if last_mod is None:
            return None
        return (datetime.now() - last_mod).days

    def item_count(self) -> int | None:
        """Get total count of cached records across all collections."""
        if not self.exists():
            return None
        total = 0
        for kind in EntityKind:
            try:
                total += len(self.load_collection(kind))
            except ValueError:
                continue
        return total

    def size_bytes(self) -> int | None:
        """Get total size of all blobs."""
        if not self.exists():
            return None
        return sum(path.stat().st_size for path in self.blob_files())

    def summary_text(self) -> str:
        """Get human-readable summary."""
        count = self.item_count()
        if count is None:
            return "No local cache found"
        return f"Local cache: {count} records"
