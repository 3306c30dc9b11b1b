#!/usr/bin/env python3
"""
Core Data Models for finsync

Entity kinds and the typed views over the records held in the local cache.

Records travel through the sync engine as plain dicts (the JSON shape of the
remote rows) so a delta can replace a cached record wholesale. The dataclasses
below are read-side views built with ``from_dict`` and used by the derived
aggregation engine.
"""

import random
import time
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping

from .currency import normalize_currency_code, to_decimal
from .dates import FinancialDate, Month
from .money import Money

Record = dict[str, Any]

TOMBSTONE_FIELD = "deleted_at"


class EntityKind(Enum):
    """Entity collections kept in the local cache."""

    TRANSACTIONS = "transactions"
    ACCOUNTS = "accounts"
    CATEGORIES = "categories"
    BUDGETS = "budgets"
    TRANSFERS = "transfers"
    BORROWINGS_LENDINGS = "borrowings_lendings"
    SETTINGS = "settings"
    EXCHANGE_RATES = "exchange_rates"

    @property
    def table(self) -> str:
        """Remote table backing this collection."""
        return _ENTITY_META[self][0]

    @property
    def key_field(self) -> str:
        """Primary key field of the records."""
        return _ENTITY_META[self][1]

    @property
    def soft_deletable(self) -> bool:
        """Whether deletions arrive as deleted_at tombstones rather than hard deletes."""
        return _ENTITY_META[self][2]

    @property
    def since_fields(self) -> tuple[str, ...]:
        """Timestamp fields an incremental fetch compares against the cursor."""
        return _ENTITY_META[self][3]

    @property
    def id_prefix(self) -> str:
        """Prefix of locally generated primary keys."""
        return _ENTITY_META[self][4]

    @classmethod
    def parse(cls, value: "str | EntityKind") -> "EntityKind":
        """
        Resolve an entity kind from its value or member name.

        Raises:
            ValueError: If the name is unknown
        """
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower().replace("-", "_")
        for kind in cls:
            if kind.value == normalized:
                return kind
        raise ValueError(f"Unknown entity kind: {value!r}")


# kind -> (table, key field, soft deletable, since fields, id prefix)
_ENTITY_META: dict[EntityKind, tuple[str, str, bool, tuple[str, ...], str]] = {
    EntityKind.TRANSACTIONS: ("transactions", "transaction_id", True, ("updated_at", "created_at"), "TXN"),
    EntityKind.ACCOUNTS: ("accounts", "account_id", False, ("updated_at", "created_at"), "ACC"),
    EntityKind.CATEGORIES: ("categories", "category_id", False, ("updated_at", "created_at"), "CAT"),
    EntityKind.BUDGETS: ("budgets", "budget_id", False, ("updated_at", "created_at"), "BDG"),
    # Transfer legs are ledger entries; the kind exists so they get their own cursor
    EntityKind.TRANSFERS: ("transactions", "transaction_id", True, ("updated_at", "created_at"), "TRF"),
    EntityKind.BORROWINGS_LENDINGS: (
        "borrowings_lendings",
        "record_id",
        False,
        ("updated_at", "created_at"),
        "BRL",
    ),
    EntityKind.SETTINGS: ("settings", "setting_key", False, ("updated_at",), "SET"),
    EntityKind.EXCHANGE_RATES: ("exchange_rates", "exchange_rate_id", False, ("created_at",), "EXR"),
}

# Ledger entries and accounts are refreshed on every return to the foreground
PRIORITY_KINDS: tuple[EntityKind, ...] = (EntityKind.TRANSACTIONS, EntityKind.ACCOUNTS)


def generate_id(prefix: str) -> str:
    """
    Generate a local primary key: PREFIX_<epoch-ms>_<3 random digits>.

    Matches the shape of server-generated ids so optimistic records need no
    re-keying when the server echoes them back.
    """
    timestamp = int(time.time() * 1000)
    suffix = f"{random.randint(0, 999):03d}"  # noqa: S311
    return f"{prefix}_{timestamp}_{suffix}"


def is_tombstoned(record: Mapping[str, Any]) -> bool:
    """True when the record carries a deleted_at tombstone."""
    return bool(record.get(TOMBSTONE_FIELD))


def record_key(kind: EntityKind, record: Mapping[str, Any]) -> str | None:
    """Primary key of a record for the given kind (None when missing)."""
    value = record.get(kind.key_field)
    if value is None or value == "":
        return None
    return str(value)


class EntryType(Enum):
    """Ledger entry types."""

    INCOME = "Income"
    EXPENSE = "Expense"
    TRANSFER_IN = "Transfer In"
    TRANSFER_OUT = "Transfer Out"
    # Legacy single-row transfer type; moves no money on its own
    TRANSFER = "Transfer"

    @classmethod
    def parse(cls, value: str | None) -> "EntryType | None":
        for member in cls:
            if member.value == value:
                return member
        return None

    @property
    def direction(self) -> int:
        """+1 for inflows, -1 for outflows, 0 for the legacy type."""
        if self in (EntryType.INCOME, EntryType.TRANSFER_IN):
            return 1
        if self in (EntryType.EXPENSE, EntryType.TRANSFER_OUT):
            return -1
        return 0


class EntryStatus(Enum):
    PENDING = "Pending"
    CLEARED = "Cleared"
    RECONCILED = "Reconciled"
    CANCELLED = "Cancelled"


ACTIVE_STATUS = "Active"


@dataclass
class LedgerEntry:
    """
    A single financial record against an account.

    Amounts are stored unsigned; the entry type determines the direction.
    """

    transaction_id: str
    account_id: str
    amount: Money
    type: EntryType | None
    status: str = EntryStatus.CLEARED.value
    date: FinancialDate | None = None
    category_id: str | None = None
    description: str = ""
    transfer_id: str | None = None
    linked_transaction_id: str | None = None
    deleted_at: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LedgerEntry":
        raw_date = data.get("date")
        return cls(
            transaction_id=str(data["transaction_id"]),
            account_id=str(data.get("account_id") or ""),
            amount=Money.from_amount(data.get("amount"), data.get("currency") or "USD"),
            type=EntryType.parse(data.get("type")),
            status=data.get("status") or EntryStatus.CLEARED.value,
            date=FinancialDate.from_string(raw_date) if raw_date else None,
            category_id=data.get("category_id"),
            description=data.get("description") or "",
            transfer_id=data.get("transfer_id"),
            linked_transaction_id=data.get("linked_transaction_id"),
            deleted_at=data.get("deleted_at"),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )

    @property
    def is_deleted(self) -> bool:
        return bool(self.deleted_at)

    @property
    def is_cancelled(self) -> bool:
        return self.status == EntryStatus.CANCELLED.value

    @property
    def counts_toward_balance(self) -> bool:
        """Non-deleted, non-cancelled entries move the account balance."""
        return not self.is_deleted and not self.is_cancelled

    @property
    def signed_amount(self) -> Money:
        direction = self.type.direction if self.type else 0
        return Money(cents=self.amount.cents * direction, currency=self.amount.currency)


@dataclass
class Account:
    """Account with its opening balance; the current balance is derived."""

    account_id: str
    name: str
    currency: str
    opening_balance: Money
    status: str = ACTIVE_STATUS
    type: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Account":
        currency = normalize_currency_code(data.get("currency")) or "USD"
        return cls(
            account_id=str(data["account_id"]),
            name=data.get("name") or "",
            currency=currency,
            opening_balance=Money.from_amount(data.get("opening_balance"), currency),
            status=data.get("status") or ACTIVE_STATUS,
            type=data.get("type"),
        )

    @property
    def is_active(self) -> bool:
        return self.status == ACTIVE_STATUS


@dataclass
class Category:
    """Category tree node linked to its parent by parent_category_id."""

    category_id: str
    name: str
    type: str | None = None
    parent_category_id: str | None = None
    status: str = ACTIVE_STATUS

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Category":
        return cls(
            category_id=str(data["category_id"]),
            name=data.get("name") or "",
            type=data.get("type"),
            parent_category_id=data.get("parent_category_id") or None,
            status=data.get("status") or ACTIVE_STATUS,
        )

    @property
    def is_active(self) -> bool:
        return self.status == ACTIVE_STATUS


@dataclass
class Budget:
    """
    One-shot (month) or recurring (start_month..end_month) budget.

    An open-ended recurring budget has no end_month.
    """

    budget_id: str
    category_id: str
    amount: Money
    recurring: bool = False
    month: Month | None = None
    start_month: Month | None = None
    end_month: Month | None = None
    status: str = ACTIVE_STATUS

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Budget":
        return cls(
            budget_id=str(data["budget_id"]),
            category_id=str(data.get("category_id") or ""),
            amount=Money.from_amount(data.get("amount"), data.get("currency") or "USD"),
            recurring=bool(data.get("recurring", False)),
            month=Month.parse_optional(data.get("month")),
            start_month=Month.parse_optional(data.get("start_month")),
            end_month=Month.parse_optional(data.get("end_month")),
            status=data.get("status") or ACTIVE_STATUS,
        )

    @property
    def is_active(self) -> bool:
        return self.status == ACTIVE_STATUS

    def applies_to(self, month: Month) -> bool:
        """Whether this budget covers the given month."""
        if self.recurring:
            if self.start_month is None or self.start_month > month:
                return False
            return self.end_month is None or self.end_month >= month
        return self.month == month


@dataclass
class ExchangeRate:
    """Directional exchange rate: 1 unit of from_currency = rate units of to_currency."""

    exchange_rate_id: str
    from_currency: str
    to_currency: str
    rate: Decimal
    date: str | None = None
    from_amount: Decimal | None = None
    to_amount: Decimal | None = None
    transfer_id: str | None = None
    created_at: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ExchangeRate":
        return cls(
            exchange_rate_id=str(data["exchange_rate_id"]),
            from_currency=normalize_currency_code(data.get("from_currency")),
            to_currency=normalize_currency_code(data.get("to_currency")),
            rate=to_decimal(data.get("rate")),
            date=data.get("date"),
            from_amount=to_decimal(data["from_amount"]) if data.get("from_amount") is not None else None,
            to_amount=to_decimal(data["to_amount"]) if data.get("to_amount") is not None else None,
            transfer_id=data.get("transfer_id"),
            created_at=data.get("created_at"),
        )


@dataclass
class BorrowingLending:
    """Borrowing or lending record tracked against its originating ledger entry."""

    record_id: str
    type: str
    entity_name: str
    original_amount: Money
    paid_amount: Money
    remaining_amount: Money
    status: str = ACTIVE_STATUS
    original_transaction_id: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BorrowingLending":
        currency = data.get("currency") or "USD"
        original = Money.from_amount(data.get("original_amount"), currency)
        paid = Money.from_amount(data.get("paid_amount"), currency)
        remaining_raw = data.get("remaining_amount")
        remaining = (
            Money.from_amount(remaining_raw, currency) if remaining_raw is not None else original - paid
        )
        return cls(
            record_id=str(data["record_id"]),
            type=data.get("type") or "",
            entity_name=data.get("entity_name") or "",
            original_amount=original,
            paid_amount=paid,
            remaining_amount=remaining,
            status=data.get("status") or ACTIVE_STATUS,
            original_transaction_id=data.get("original_transaction_id"),
        )


BASE_CURRENCY_SETTING = "BaseCurrency"


@dataclass
class Setting:
    """Per-user key/value setting (BaseCurrency, DefaultAccountID, ...)."""

    setting_key: str
    setting_value: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Setting":
        value = data.get("setting_value")
        return cls(setting_key=str(data["setting_key"]), setting_value=None if value is None else str(value))
