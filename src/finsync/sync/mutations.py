#!/usr/bin/env python3
"""
Local Mutation Handlers

Optimistic writes: every create/update/delete is applied to the local cache
first, a mutation marker is set so syncs arriving during replication lag are
deferred, and then the write is pushed to the remote (when one is configured).
A failed push rolls that record back.

Multi-entity operations (transfers) are sequences of independent writes; a
failure part-way leaves the earlier sub-writes in place.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Mapping

from ..core.currency import RATE_PRECISION, AmountLike, amount_to_cents, cents_to_amount_str, to_decimal
from ..core.dates import to_iso_timestamp, utc_now
from ..core.models import (
    ACTIVE_STATUS,
    TOMBSTONE_FIELD,
    EntityKind,
    EntryStatus,
    EntryType,
    Record,
    generate_id,
)
from ..storage.local_cache import LocalCache
from .guard import MutationGuard
from .remote import PRINCIPAL_FIELD, RemoteDataSource

logger = logging.getLogger(__name__)


@dataclass
class MutationResult:
    """Outcome of one local write."""

    success: bool
    kind: EntityKind
    key: str | None = None
    record: Record | None = None
    error_message: str | None = None


@dataclass
class TransferResult:
    """Outcome of a transfer operation and each of its sub-writes."""

    success: bool
    transfer_id: str | None = None
    out_entry: Record | None = None
    in_entry: Record | None = None
    exchange_rate: Record | None = None
    steps: list[MutationResult] = field(default_factory=list)
    error_message: str | None = None


def _format_amount(value: AmountLike) -> str:
    return cents_to_amount_str(abs(amount_to_cents(value)))


class LocalMutations:
    """Optimistic create/update/delete against one cache handle."""

    def __init__(
        self,
        cache: LocalCache,
        guard: MutationGuard,
        remote: RemoteDataSource | None = None,
        principal_id: str | None = None,
    ):
        self._cache = cache
        self._guard = guard
        self._remote = remote
        self.principal_id = principal_id

    def _mirrored_kinds(self, kind: EntityKind, record: Mapping[str, Any]) -> list[EntityKind]:
        """Collections holding this record: transfer legs live in both ledger collections."""
        if kind == EntityKind.TRANSACTIONS and record.get("transfer_id"):
            return [EntityKind.TRANSACTIONS, EntityKind.TRANSFERS]
        return [kind]

    def _apply_local(self, kind: EntityKind, record: Record) -> dict[EntityKind, Record | None]:
        previous = {}
        for target in self._mirrored_kinds(kind, record):
            previous[target] = self._cache.upsert(target, record)
            self._guard.mark_mutated(target)
        return previous

    def _remove_local(self, kind: EntityKind, record: Record, key: str) -> dict[EntityKind, Record | None]:
        previous = {}
        for target in self._mirrored_kinds(kind, record):
            previous[target] = self._cache.remove(target, key)
            self._guard.mark_mutated(target)
        return previous

    def _rollback(self, kind: EntityKind, key: str, previous: dict[EntityKind, Record | None]) -> None:
        for target, record in previous.items():
            if record is None:
                self._cache.remove(target, key)
            else:
                self._cache.upsert(target, record)
        logger.info(f"Rolled back local {kind.value} write for {key}")

    async def create(self, kind: EntityKind, record: Mapping[str, Any]) -> MutationResult:
        """
        Create a record optimistically.

        A primary key is generated when the record has none.
        """
        new_record = dict(record)
        key = new_record.get(kind.key_field) or generate_id(kind.id_prefix)
        new_record[kind.key_field] = key
        now = to_iso_timestamp(utc_now())
        new_record.setdefault("created_at", now)
        new_record["updated_at"] = now
        if self.principal_id is not None:
            new_record.setdefault(PRINCIPAL_FIELD, self.principal_id)

        previous = self._apply_local(kind, new_record)
        return await self._push(kind, key, new_record, previous)

    async def update(self, kind: EntityKind, key: str, changes: Mapping[str, Any]) -> MutationResult:
        """Apply field changes to a cached record (the record is replaced whole)."""
        current = self._cache.get(kind, key)
        if current is None:
            return MutationResult(success=False, kind=kind, key=key, error_message=f"{kind.value} {key} not found")

        updated = {**current, **changes, kind.key_field: key}
        updated["updated_at"] = to_iso_timestamp(utc_now())
        previous = self._apply_local(kind, updated)
        return await self._push(kind, key, updated, previous)

    async def delete(self, kind: EntityKind, key: str) -> MutationResult:
        """
        Delete a record.

        Soft-deletable kinds are tombstoned remotely and disappear from the
        local collection at once; other kinds are hard-deleted.
        """
        current = self._cache.get(kind, key)
        if current is None:
            return MutationResult(success=False, kind=kind, key=key, error_message=f"{kind.value} {key} not found")

        previous = self._remove_local(kind, current, key)
        if self._remote is None:
            return MutationResult(success=True, kind=kind, key=key)

        try:
            if kind.soft_deletable:
                now = to_iso_timestamp(utc_now())
                tombstone = {**current, TOMBSTONE_FIELD: now, "updated_at": now}
                await self._remote.upsert(kind.table, tombstone)
            else:
                await self._remote.delete(kind.table, kind.key_field, key)
        except Exception as e:
            logger.error(f"Failed to delete {kind.value} {key}: {e}")
            self._rollback(kind, key, previous)
            return MutationResult(success=False, kind=kind, key=key, error_message=str(e))
        return MutationResult(success=True, kind=kind, key=key)

    async def _push(
        self, kind: EntityKind, key: str, record: Record, previous: dict[EntityKind, Record | None]
    ) -> MutationResult:
        if self._remote is None:
            return MutationResult(success=True, kind=kind, key=key, record=record)
        try:
            stored = await self._remote.upsert(kind.table, record)
        except Exception as e:
            logger.error(f"Failed to write {kind.value} {key}: {e}")
            self._rollback(kind, key, previous)
            return MutationResult(success=False, kind=kind, key=key, error_message=str(e))

        # Keep the server's timestamps
        for target in self._mirrored_kinds(kind, stored):
            self._cache.upsert(target, stored)
        return MutationResult(success=True, kind=kind, key=key, record=stored)

    async def create_transfer(
        self,
        from_account_id: str,
        to_account_id: str,
        amount: AmountLike = None,
        from_amount: AmountLike = None,
        to_amount: AmountLike = None,
        transfer_date: date | str | None = None,
        description: str = "",
        category_id: str | None = None,
        status: str = EntryStatus.CLEARED.value,
    ) -> TransferResult:
        """
        Create a transfer: a Transfer Out leg, a Transfer In leg and, between
        accounts of different currencies, the exchange rate it implies.

        Same-currency transfers take ``amount``; cross-currency transfers take
        ``from_amount`` and ``to_amount``.
        """
        if not from_account_id or not to_account_id:
            return TransferResult(success=False, error_message="From account and to account are required")
        if from_account_id == to_account_id:
            return TransferResult(success=False, error_message="From account and to account must be different")

        from_account = self._cache.get(EntityKind.ACCOUNTS, from_account_id)
        to_account = self._cache.get(EntityKind.ACCOUNTS, to_account_id)
        if (
            from_account is None
            or to_account is None
            or (from_account.get("status") or ACTIVE_STATUS) != ACTIVE_STATUS
            or (to_account.get("status") or ACTIVE_STATUS) != ACTIVE_STATUS
        ):
            return TransferResult(success=False, error_message="One or both accounts not found or inactive")

        from_currency = (from_account.get("currency") or "USD").upper()
        to_currency = (to_account.get("currency") or "USD").upper()
        same_currency = from_currency == to_currency
        if same_currency:
            if amount is None:
                return TransferResult(success=False, error_message="Amount is required for same-currency transfers")
            out_amount = in_amount = _format_amount(amount)
        else:
            if from_amount is None or to_amount is None:
                return TransferResult(
                    success=False,
                    error_message="Both from_amount and to_amount are required for multi-currency transfers",
                )
            out_amount = _format_amount(from_amount)
            in_amount = _format_amount(to_amount)

        if isinstance(transfer_date, date):
            day = transfer_date.isoformat()
        elif transfer_date:
            day = transfer_date.split("T")[0]
        else:
            day = date.today().isoformat()

        transfer_id = generate_id(EntityKind.TRANSFERS.id_prefix)
        result = TransferResult(success=False, transfer_id=transfer_id)

        out_step = await self.create(
            EntityKind.TRANSACTIONS,
            {
                "account_id": from_account_id,
                "category_id": category_id,
                "amount": out_amount,
                "currency": from_currency,
                "description": description or f"Transfer to {to_account.get('name', to_account_id)}",
                "type": EntryType.TRANSFER_OUT.value,
                "status": status,
                "date": day,
                "transfer_id": transfer_id,
            },
        )
        result.steps.append(out_step)
        if not out_step.success:
            result.error_message = out_step.error_message
            return result
        result.out_entry = out_step.record

        in_step = await self.create(
            EntityKind.TRANSACTIONS,
            {
                "account_id": to_account_id,
                "category_id": category_id,
                "amount": in_amount,
                "currency": to_currency,
                "description": description or f"Transfer from {from_account.get('name', from_account_id)}",
                "type": EntryType.TRANSFER_IN.value,
                "status": status,
                "date": day,
                "transfer_id": transfer_id,
                "linked_transaction_id": out_step.key,
            },
        )
        result.steps.append(in_step)
        if not in_step.success:
            result.error_message = in_step.error_message
            return result
        result.in_entry = in_step.record

        link_step = await self.update(
            EntityKind.TRANSACTIONS, str(out_step.key), {"linked_transaction_id": in_step.key}
        )
        result.steps.append(link_step)
        if not link_step.success:
            result.error_message = link_step.error_message
            return result
        result.out_entry = link_step.record

        if not same_currency:
            rate = (to_decimal(in_amount) / to_decimal(out_amount)).quantize(RATE_PRECISION)
            rate_step = await self.create(
                EntityKind.EXCHANGE_RATES,
                {
                    "transfer_id": transfer_id,
                    "from_currency": from_currency,
                    "to_currency": to_currency,
                    "rate": str(rate),
                    "from_amount": out_amount,
                    "to_amount": in_amount,
                    "date": day,
                },
            )
            result.steps.append(rate_step)
            if not rate_step.success:
                result.error_message = rate_step.error_message
                return result
            result.exchange_rate = rate_step.record

        result.success = True
        logger.info(f"Created transfer {transfer_id} from {from_account_id} to {to_account_id}")
        return result

    async def delete_transfer(self, transfer_id: str) -> TransferResult:
        """Soft-delete both legs of a transfer and remove its exchange rates."""
        legs = [
            record
            for record in self._cache.records(EntityKind.TRANSACTIONS)
            if record.get("transfer_id") == transfer_id
        ]
        if not legs:
            return TransferResult(success=False, transfer_id=transfer_id, error_message="Transfer not found")

        result = TransferResult(success=True, transfer_id=transfer_id)
        for leg in legs:
            step = await self.delete(EntityKind.TRANSACTIONS, str(leg["transaction_id"]))
            result.steps.append(step)

        rates = [
            record
            for record in self._cache.records(EntityKind.EXCHANGE_RATES)
            if record.get("transfer_id") == transfer_id
        ]
        for rate in rates:
            step = await self.delete(EntityKind.EXCHANGE_RATES, str(rate["exchange_rate_id"]))
            result.steps.append(step)

        failures = [step for step in result.steps if not step.success]
        if failures:
            result.success = False
            result.error_message = "; ".join(step.error_message or "" for step in failures)
        return result
