#!/usr/bin/env python3
"""
Transfer Pairing

A transfer is two ledger entries sharing a transfer_id: a Transfer Out leg and
a Transfer In leg. The Transfer value is derived by grouping the cached entries;
it is never stored, so the ledger stays the single source of truth.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from ..core.models import EntryType, ExchangeRate, LedgerEntry
from ..core.money import Money


@dataclass(frozen=True)
class Transfer:
    """Derived view of one transfer."""

    transfer_id: str
    out_entry_id: str | None
    in_entry_id: str | None
    rate: Decimal | None = None
    date: str | None = None
    from_account_id: str | None = None
    to_account_id: str | None = None
    out_amount: Money | None = None
    in_amount: Money | None = None

    @property
    def is_complete(self) -> bool:
        """Both legs are present."""
        return self.out_entry_id is not None and self.in_entry_id is not None

    @property
    def is_cross_currency(self) -> bool:
        if self.out_amount is None or self.in_amount is None:
            return False
        return self.out_amount.currency != self.in_amount.currency


def group_transfers(entries: Iterable[LedgerEntry], rates: Iterable[ExchangeRate] = ()) -> list[Transfer]:
    """
    Pair transfer legs by transfer_id.

    Deleted legs are ignored. A transfer whose counterpart leg is missing is
    still returned, with the missing side set to None.

    Returns:
        Transfers, most recent date first
    """
    legs: dict[str, list[LedgerEntry]] = {}
    for entry in entries:
        if not entry.transfer_id or entry.is_deleted:
            continue
        legs.setdefault(entry.transfer_id, []).append(entry)

    rate_by_transfer: dict[str, ExchangeRate] = {}
    for rate in rates:
        if rate.transfer_id:
            rate_by_transfer[rate.transfer_id] = rate

    transfers = []
    for transfer_id, pair in legs.items():
        out_leg = next((e for e in pair if e.type == EntryType.TRANSFER_OUT), None)
        in_leg = next((e for e in pair if e.type == EntryType.TRANSFER_IN), None)
        dated = out_leg or in_leg
        rate = rate_by_transfer.get(transfer_id)
        transfers.append(
            Transfer(
                transfer_id=transfer_id,
                out_entry_id=out_leg.transaction_id if out_leg else None,
                in_entry_id=in_leg.transaction_id if in_leg else None,
                rate=rate.rate if rate else None,
                date=dated.date.to_iso_string() if dated and dated.date else None,
                from_account_id=out_leg.account_id if out_leg else None,
                to_account_id=in_leg.account_id if in_leg else None,
                out_amount=out_leg.amount if out_leg else None,
                in_amount=in_leg.amount if in_leg else None,
            )
        )

    transfers.sort(key=lambda t: t.date or "", reverse=True)
    return transfers
