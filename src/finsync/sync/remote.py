#!/usr/bin/env python3
"""
Remote System-of-Record Interfaces

Contracts the engine consumes from the remote data service:

- RemoteDataSource: per-table fetch with an optional ``since`` timestamp and
  entity-specific filters, plus the writes used by local mutations.
- ChangeChannel: one subscription scoped to the principal multiplexing
  ``{table, event_type, new, old}`` events.

FileRemote and LocalChangeChannel implement both contracts over a directory of
JSON table snapshots, which is what the CLI runs against.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Protocol

from ..core.dates import parse_timestamp, to_iso_timestamp, utc_now
from ..core.errors import FetchError, RemoteWriteError
from ..core.json_utils import read_json, write_json_atomic
from ..core.models import EntityKind, Record

logger = logging.getLogger(__name__)

PRINCIPAL_FIELD = "user_id"


class EventType(Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class ChannelStatus(Enum):
    SUBSCRIBED = "SUBSCRIBED"
    CHANNEL_ERROR = "CHANNEL_ERROR"
    TIMED_OUT = "TIMED_OUT"
    CLOSED = "CLOSED"


@dataclass(frozen=True)
class ChangeEvent:
    """One row change pushed by the change-notification channel."""

    table: str
    event_type: EventType
    new: Record | None = None
    old: Record | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ChangeEvent":
        """Build from the wire shape {table, eventType, new, old}."""
        raw_type = data.get("eventType") or data.get("event_type")
        return cls(
            table=str(data["table"]),
            event_type=EventType(str(raw_type).upper()),
            new=data.get("new") or None,
            old=data.get("old") or None,
        )

    @property
    def record(self) -> Record | None:
        """The row the event is about: new for insert/update, old for delete."""
        if self.event_type == EventType.DELETE:
            return self.old or self.new
        return self.new or self.old

    def belongs_to(self, principal_id: str) -> bool:
        """True when either side of the change is owned by the principal."""
        return any(
            side is not None and side.get(PRINCIPAL_FIELD) == principal_id for side in (self.new, self.old)
        )


EventHandler = Callable[[ChangeEvent], None]
StatusHandler = Callable[[ChannelStatus], None]


class RemoteDataSource(Protocol):
    """Request/response side of the remote system of record."""

    async def fetch(self, table: str, filters: Mapping[str, Any], since: str | None) -> list[Record]:
        """
        Fetch rows of a table.

        Args:
            table: Remote table name
            filters: Entity-specific filters (status, account_id, transfer_only, ...)
            since: ISO-8601 timestamp; None requests the complete matching collection

        Raises:
            FetchError: On any remote failure
        """
        ...

    async def upsert(self, table: str, record: Record) -> Record:
        """Insert or replace a row; returns the row as stored remotely."""
        ...

    async def delete(self, table: str, key_field: str, key: str) -> None:
        """Hard-delete a row."""
        ...


class ChangeChannel(Protocol):
    """Push side of the remote system of record."""

    def subscribe(self, principal_id: str, on_event: EventHandler, on_status: StatusHandler | None = None) -> None:
        ...

    def unsubscribe(self) -> None:
        ...


class LocalChangeChannel:
    """In-process change channel: publishers call publish(), subscribers get callbacks."""

    def __init__(self) -> None:
        self._subscribers: list[tuple[str, EventHandler, StatusHandler | None]] = []

    def subscribe(self, principal_id: str, on_event: EventHandler, on_status: StatusHandler | None = None) -> None:
        self._subscribers.append((principal_id, on_event, on_status))
        if on_status is not None:
            on_status(ChannelStatus.SUBSCRIBED)

    def unsubscribe(self) -> None:
        for _, _, on_status in self._subscribers:
            if on_status is not None:
                on_status(ChannelStatus.CLOSED)
        self._subscribers.clear()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: ChangeEvent) -> None:
        """Deliver an event to every subscriber (principal filtering is the subscriber's job)."""
        for _, on_event, _ in list(self._subscribers):
            on_event(event)

    def emit_status(self, status: ChannelStatus) -> None:
        for _, _, on_status in list(self._subscribers):
            if on_status is not None:
                on_status(status)


def since_fields_for(table: str) -> tuple[str, ...]:
    """Timestamp fields an incremental fetch of a remote table compares against the cursor."""
    for kind in EntityKind:
        if kind.table == table:
            return kind.since_fields
    return ("updated_at", "created_at")


def matches_filters(record: Mapping[str, Any], filters: Mapping[str, Any]) -> bool:
    """
    Apply the fetch protocol's entity filters to one row.

    ``transfer_only`` keeps rows with a transfer_id; every other filter is an
    equality test on the field of the same name.
    """
    for name, expected in filters.items():
        if expected is None:
            continue
        if name == "transfer_only":
            if expected and not record.get("transfer_id"):
                return False
            continue
        if record.get(name) != expected:
            return False
    return True


def changed_since(record: Mapping[str, Any], since: str, fields: tuple[str, ...]) -> bool:
    """True when any of the row's since fields is at or after the cursor."""
    cursor = parse_timestamp(since)
    if cursor is None:
        return True
    for field_name in fields:
        moment = parse_timestamp(record.get(field_name))
        if moment is not None and moment >= cursor:
            return True
    return False


class FileRemote:
    """
    Remote data source backed by a directory of JSON table snapshots.

    Each table lives in ``<snapshot_dir>/<table>.json`` as a list of rows.
    Writes stamp created_at/updated_at and publish change events on the
    attached channel.
    """

    def __init__(
        self,
        snapshot_dir: Path,
        channel: LocalChangeChannel | None = None,
        principal_id: str | None = None,
    ):
        self.snapshot_dir = Path(snapshot_dir)
        self.channel = channel
        self.principal_id = principal_id

    def table_file(self, table: str) -> Path:
        return self.snapshot_dir / f"{table}.json"

    def _load_table(self, table: str) -> list[Record]:
        path = self.table_file(table)
        if not path.exists():
            return []
        data = read_json(path)
        if not isinstance(data, list):
            raise ValueError(f"{path} does not contain a list of rows")
        return data

    def _owned(self, record: Mapping[str, Any]) -> bool:
        if self.principal_id is None or PRINCIPAL_FIELD not in record:
            return True
        return record.get(PRINCIPAL_FIELD) == self.principal_id

    async def fetch(self, table: str, filters: Mapping[str, Any], since: str | None) -> list[Record]:
        try:
            rows = self._load_table(table)
        except (OSError, ValueError) as e:
            raise FetchError(table, str(e)) from e

        fields = since_fields_for(table)
        result = [
            dict(row)
            for row in rows
            if self._owned(row)
            and matches_filters(row, filters)
            and (since is None or changed_since(row, since, fields))
        ]
        logger.debug(f"Fetched {len(result)} row(s) from {table} (since={since})")
        return result

    async def upsert(self, table: str, record: Record) -> Record:
        key_field = self._key_field(table)
        try:
            rows = self._load_table(table)
        except (OSError, ValueError) as e:
            raise RemoteWriteError(table, str(e)) from e

        now = to_iso_timestamp(utc_now())
        stored = dict(record)
        if self.principal_id is not None:
            stored.setdefault(PRINCIPAL_FIELD, self.principal_id)
        stored["updated_at"] = now

        old: Record | None = None
        for index, row in enumerate(rows):
            if row.get(key_field) == stored.get(key_field):
                old = row
                stored.setdefault("created_at", row.get("created_at") or now)
                rows[index] = stored
                break
        else:
            stored.setdefault("created_at", now)
            rows.append(stored)

        try:
            write_json_atomic(self.table_file(table), rows)
        except OSError as e:
            raise RemoteWriteError(table, str(e)) from e

        event_type = EventType.INSERT if old is None else EventType.UPDATE
        self._publish(ChangeEvent(table=table, event_type=event_type, new=dict(stored), old=old))
        return dict(stored)

    async def delete(self, table: str, key_field: str, key: str) -> None:
        try:
            rows = self._load_table(table)
        except (OSError, ValueError) as e:
            raise RemoteWriteError(table, str(e)) from e

        remaining = [row for row in rows if str(row.get(key_field)) != key]
        removed = [row for row in rows if str(row.get(key_field)) == key]
        if not removed:
            return
        try:
            write_json_atomic(self.table_file(table), remaining)
        except OSError as e:
            raise RemoteWriteError(table, str(e)) from e
        self._publish(ChangeEvent(table=table, event_type=EventType.DELETE, old=removed[0]))

    def _publish(self, event: ChangeEvent) -> None:
        if self.channel is not None:
            self.channel.publish(event)

    @staticmethod
    def _key_field(table: str) -> str:
        for kind in EntityKind:
            if kind.table == table:
                return kind.key_field
        raise RemoteWriteError(table, "unknown table")
