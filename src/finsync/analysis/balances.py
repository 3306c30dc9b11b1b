#!/usr/bin/env python3
"""
Account Balance Derivation

Balances are never stored on the client; they are recomputed from the opening
balance and the ledger:

    balance = opening_balance + sum(signed amount of counted entries)

Income and Transfer In add, Expense and Transfer Out subtract. Deleted and
Cancelled entries do not count.
"""

from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from ..core.models import Account, ExchangeRate, LedgerEntry
from ..core.money import Money
from .conversion import convert_amount


def signed_amount(entry: LedgerEntry) -> Money:
    """Entry amount signed by its type (zero for the legacy Transfer type)."""
    return entry.signed_amount


def calculate_account_balance(opening_balance: Money, entries: Iterable[LedgerEntry]) -> Money:
    """
    Derive one account's balance.

    Args:
        opening_balance: The account's opening balance
        entries: Ledger entries of that account

    Returns:
        Balance in the opening balance's currency

    Example:
        Opening 100.00, Income 50.00, Expense 30.00 -> 120.00
    """
    total = opening_balance.cents
    for entry in entries:
        if entry.counts_toward_balance:
            total += entry.signed_amount.cents
    return Money(cents=total, currency=opening_balance.currency)


def calculate_all_account_balances(
    accounts: Iterable[Account], entries: Iterable[LedgerEntry]
) -> dict[str, Money]:
    """Derive every account's balance in one pass over the ledger."""
    by_account: dict[str, list[LedgerEntry]] = defaultdict(list)
    for entry in entries:
        by_account[entry.account_id].append(entry)
    return {
        account.account_id: calculate_account_balance(account.opening_balance, by_account.get(account.account_id, []))
        for account in accounts
    }


def calculate_currency_totals(balances: Iterable[Money]) -> dict[str, Money]:
    """Sum balances per currency."""
    totals: dict[str, int] = defaultdict(int)
    for balance in balances:
        totals[balance.currency] += balance.cents
    return {currency: Money(cents=cents, currency=currency) for currency, cents in sorted(totals.items())}


@dataclass
class ConvertedBalances:
    """Account balances expressed in one base currency."""

    base_currency: str
    total: Money
    converted: dict[str, Money] = field(default_factory=dict)
    # Account ids whose currency has no cached rate to the base currency
    unconvertible: list[str] = field(default_factory=list)


def calculate_converted_balances(
    balances: Mapping[str, Money], base_currency: str, rates: Iterable[ExchangeRate]
) -> ConvertedBalances:
    """
    Convert each balance to the base currency and total the convertible ones.

    Unconvertible balances are listed, not counted as zero.
    """
    rates = list(rates)
    result = ConvertedBalances(base_currency=base_currency.upper(), total=Money.zero(base_currency))
    total = 0
    for account_id, balance in balances.items():
        converted = convert_amount(balance, base_currency, rates)
        if converted is None:
            result.unconvertible.append(account_id)
            continue
        result.converted[account_id] = converted
        total += converted.cents
    result.total = Money(cents=total, currency=base_currency)
    return result
