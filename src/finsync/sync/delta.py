#!/usr/bin/env python3
"""
Delta Merge Functions

Pure functions combining a fetched batch with a cached collection. Both are
idempotent: applying the same batch twice yields the same collection.
"""

from collections.abc import Iterable, Mapping

from ..core.models import TOMBSTONE_FIELD, Record


def _key(record: Mapping, key_field: str) -> str | None:
    value = record.get(key_field)
    if value is None or value == "":
        return None
    return str(value)


def replace_collection(incoming: Iterable[Record], key_field: str) -> dict[str, Record]:
    """
    Build a collection from a full fetch.

    Records without a primary key and tombstoned records are dropped.
    """
    result: dict[str, Record] = {}
    for record in incoming:
        key = _key(record, key_field)
        if key is None:
            continue
        if record.get(TOMBSTONE_FIELD):
            result.pop(key, None)
            continue
        result[key] = dict(record)
    return result


def merge_incremental(
    existing: Mapping[str, Record], incoming: Iterable[Record], key_field: str
) -> dict[str, Record]:
    """
    Merge a partial delta into a cached collection.

    Each incoming record replaces the cached record with the same key wholesale
    (no field-level patching); records absent from the delta are untouched.
    Afterwards every record whose tombstone is set is stripped.

    Args:
        existing: Current collection keyed by primary key
        incoming: Records returned by an incremental fetch
        key_field: Primary key field of the entity

    Returns:
        New collection; ``existing`` is not modified
    """
    result = dict(existing)
    for record in incoming:
        key = _key(record, key_field)
        if key is None:
            continue
        result[key] = dict(record)
    return {key: record for key, record in result.items() if not record.get(TOMBSTONE_FIELD)}
