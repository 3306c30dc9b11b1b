#!/usr/bin/env python3
"""Unit tests for entity kinds and typed record views."""

import re

import pytest

from finsync.core.dates import Month
from finsync.core.models import (
    Account,
    BorrowingLending,
    Budget,
    EntityKind,
    EntryType,
    ExchangeRate,
    LedgerEntry,
    Setting,
    generate_id,
    is_tombstoned,
    record_key,
)
from finsync.core.money import Money
from tests.fixtures.records import make_account, make_budget, make_entry, make_rate


@pytest.mark.unit
class TestEntityKind:
    """Test entity kind metadata."""

    def test_transfers_share_the_ledger_table(self):
        """Test that transfer legs are fetched from the ledger table."""
        assert EntityKind.TRANSFERS.table == "transactions"
        assert EntityKind.TRANSFERS.key_field == "transaction_id"

    def test_soft_deletable_kinds(self):
        """Test which kinds use tombstones."""
        assert EntityKind.TRANSACTIONS.soft_deletable
        assert not EntityKind.ACCOUNTS.soft_deletable

    def test_parse(self):
        """Test parsing by value with separators normalized."""
        assert EntityKind.parse("exchange-rates") == EntityKind.EXCHANGE_RATES
        assert EntityKind.parse(EntityKind.BUDGETS) == EntityKind.BUDGETS
        with pytest.raises(ValueError, match="Unknown entity kind"):
            EntityKind.parse("payees")


@pytest.mark.unit
class TestRecordHelpers:
    """Test record key and tombstone helpers."""

    def test_generate_id_shape(self):
        """Test local id format PREFIX_<ms>_<3 digits>."""
        assert re.fullmatch(r"TXN_\d{13}_\d{3}", generate_id("TXN"))

    def test_record_key(self):
        """Test primary key extraction."""
        assert record_key(EntityKind.ACCOUNTS, {"account_id": 7}) == "7"
        assert record_key(EntityKind.ACCOUNTS, {"account_id": ""}) is None
        assert record_key(EntityKind.ACCOUNTS, {}) is None

    def test_is_tombstoned(self):
        """Test tombstone detection."""
        assert is_tombstoned({"deleted_at": "2024-05-01T00:00:00Z"})
        assert not is_tombstoned({"deleted_at": None})


@pytest.mark.unit
class TestLedgerEntry:
    """Test the ledger entry view."""

    def test_from_dict(self):
        """Test parsing a remote row."""
        entry = LedgerEntry.from_dict(make_entry("T1", amount="45.99", currency="eur"))
        assert entry.amount == Money(4599, "EUR")
        assert entry.type == EntryType.EXPENSE
        assert str(entry.date) == "2024-05-15"

    @pytest.mark.currency
    def test_signed_amount_by_type(self):
        """Test direction of each entry type."""
        assert LedgerEntry.from_dict(make_entry("T1", type="Income")).signed_amount.cents == 1000
        assert LedgerEntry.from_dict(make_entry("T2", type="Expense")).signed_amount.cents == -1000
        assert LedgerEntry.from_dict(make_entry("T3", type="Transfer In")).signed_amount.cents == 1000
        assert LedgerEntry.from_dict(make_entry("T4", type="Transfer Out")).signed_amount.cents == -1000
        assert LedgerEntry.from_dict(make_entry("T5", type="Transfer")).signed_amount.cents == 0

    def test_counts_toward_balance(self):
        """Test that deleted and cancelled entries do not count."""
        assert LedgerEntry.from_dict(make_entry("T1")).counts_toward_balance
        assert not LedgerEntry.from_dict(make_entry("T2", status="Cancelled")).counts_toward_balance
        assert not LedgerEntry.from_dict(make_entry("T3", deleted_at="2024-05-02")).counts_toward_balance


@pytest.mark.unit
class TestOtherViews:
    """Test account, budget, rate, setting and borrowing views."""

    def test_account_opening_balance_currency(self):
        """Test that the opening balance carries the account currency."""
        account = Account.from_dict(make_account("A1", currency="gbp", opening_balance="12.50"))
        assert account.opening_balance == Money(1250, "GBP")
        assert account.is_active

    def test_one_shot_budget_applies_to_its_month(self):
        """Test one-shot budget month matching."""
        budget = Budget.from_dict(make_budget("B1", "C1", "200.00"))
        assert budget.month == Month(2024, 5)
        assert budget.applies_to(Month(2024, 5))
        assert not budget.applies_to(Month(2024, 6))

    def test_recurring_budget_range(self):
        """Test recurring budget start/end bounds."""
        budget = Budget.from_dict(
            make_budget(
                "B1", "C1", "100.00", month=None, recurring=True, start_month="2024-03-06", end_month="2024-06-06"
            )
        )
        assert not budget.applies_to(Month(2024, 2))
        assert budget.applies_to(Month(2024, 3))
        assert budget.applies_to(Month(2024, 6))
        assert not budget.applies_to(Month(2024, 7))

    def test_exchange_rate_from_dict(self):
        """Test rate parsing keeps Decimal precision."""
        rate = ExchangeRate.from_dict(make_rate("R1", "usd", "eur", "0.912345"))
        assert rate.from_currency == "USD"
        assert str(rate.rate) == "0.912345"

    def test_setting_value_is_string(self):
        """Test settings values are stringified."""
        assert Setting.from_dict({"setting_key": "DefaultAccountID", "setting_value": 42}).setting_value == "42"

    def test_borrowing_remaining_defaults_to_outstanding(self):
        """Test remaining amount derived when absent."""
        record = BorrowingLending.from_dict(
            {"record_id": "L1", "type": "Lent", "original_amount": "100", "paid_amount": "40"}
        )
        assert record.remaining_amount == Money(6000, "USD")
