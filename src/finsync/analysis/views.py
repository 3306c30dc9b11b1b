#!/usr/bin/env python3
"""
Derived Views

Read-only views over the current cache snapshot, safe to call from
presentation code. Typed records and computed results are memoized on the
cache version, so repeated reads between changes cost nothing and the first
read after a change recomputes from a consistent snapshot.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from ..core.currency import AmountLike
from ..core.dates import Month
from ..core.models import (
    BASE_CURRENCY_SETTING,
    Account,
    BorrowingLending,
    Budget,
    Category,
    EntityKind,
    ExchangeRate,
    LedgerEntry,
    Record,
    Setting,
)
from ..core.money import Money
from ..storage.local_cache import CacheSnapshot, LocalCache
from .balances import (
    ConvertedBalances,
    calculate_all_account_balances,
    calculate_converted_balances,
    calculate_currency_totals,
)
from .budgets import BudgetCalculator, BudgetReportNode, BudgetSummary
from .categories import DEFAULT_MAX_DEPTH, CategoryNode, build_category_tree, validate_category_hierarchy
from .conversion import convert_amount
from .transfers import Transfer, group_transfers

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _parse_all(records: list[Record], parser: Callable[[Record], T], kind: EntityKind) -> list[T]:
    parsed = []
    for record in records:
        try:
            parsed.append(parser(record))
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"Skipping malformed {kind.value} record: {e}")
    return parsed


@dataclass(frozen=True)
class TypedSnapshot:
    """Typed records of one cache version."""

    version: int
    entries: list[LedgerEntry]
    accounts: list[Account]
    categories: list[Category]
    budgets: list[Budget]
    transfer_legs: list[LedgerEntry]
    borrowings_lendings: list[BorrowingLending]
    settings: dict[str, str | None]
    rates: list[ExchangeRate]

    @classmethod
    def from_snapshot(cls, snapshot: CacheSnapshot) -> "TypedSnapshot":
        settings = _parse_all(snapshot.records(EntityKind.SETTINGS), Setting.from_dict, EntityKind.SETTINGS)
        return cls(
            version=snapshot.version,
            entries=_parse_all(
                snapshot.records(EntityKind.TRANSACTIONS), LedgerEntry.from_dict, EntityKind.TRANSACTIONS
            ),
            accounts=_parse_all(snapshot.records(EntityKind.ACCOUNTS), Account.from_dict, EntityKind.ACCOUNTS),
            categories=_parse_all(
                snapshot.records(EntityKind.CATEGORIES), Category.from_dict, EntityKind.CATEGORIES
            ),
            budgets=_parse_all(snapshot.records(EntityKind.BUDGETS), Budget.from_dict, EntityKind.BUDGETS),
            transfer_legs=_parse_all(
                snapshot.records(EntityKind.TRANSFERS), LedgerEntry.from_dict, EntityKind.TRANSFERS
            ),
            borrowings_lendings=_parse_all(
                snapshot.records(EntityKind.BORROWINGS_LENDINGS),
                BorrowingLending.from_dict,
                EntityKind.BORROWINGS_LENDINGS,
            ),
            settings={s.setting_key: s.setting_value for s in settings},
            rates=_parse_all(
                snapshot.records(EntityKind.EXCHANGE_RATES), ExchangeRate.from_dict, EntityKind.EXCHANGE_RATES
            ),
        )


class DerivedViews:
    """Balances, conversions, budgets and transfers derived from one cache handle."""

    def __init__(
        self,
        cache: LocalCache,
        default_base_currency: str = "USD",
        max_category_depth: int = DEFAULT_MAX_DEPTH,
    ):
        self._cache = cache
        self.default_base_currency = default_base_currency.upper()
        self.max_category_depth = max_category_depth
        self._typed: TypedSnapshot | None = None
        self._memo: dict[tuple, Any] = {}

    def _current(self) -> TypedSnapshot:
        """Typed records for the current cache version, rebuilt after any change."""
        version = self._cache.version
        typed = self._typed
        if typed is None or typed.version != version:
            typed = TypedSnapshot.from_snapshot(self._cache.snapshot())
            self._typed = typed
            self._memo = {}
        return typed

    def _memoized(self, key: tuple, compute: Callable[[TypedSnapshot], T]) -> T:
        typed = self._current()
        memo = self._memo
        if key not in memo:
            memo[key] = compute(typed)
        return memo[key]

    def base_currency(self) -> str:
        """BaseCurrency setting, falling back to the configured default."""
        value = self._current().settings.get(BASE_CURRENCY_SETTING)
        return (value or self.default_base_currency).upper()

    def account_balances(self) -> dict[str, Money]:
        return self._memoized(
            ("balances",), lambda t: calculate_all_account_balances(t.accounts, t.entries)
        )

    def get_account_balance(self, account_id: str) -> Money | None:
        """Derived balance of one account (None for an unknown account)."""
        return self.account_balances().get(account_id)

    def currency_totals(self, active_only: bool = True) -> dict[str, Money]:
        def compute(typed: TypedSnapshot) -> dict[str, Money]:
            balances = self.account_balances()
            return calculate_currency_totals(
                balances[a.account_id] for a in typed.accounts if a.is_active or not active_only
            )

        return self._memoized(("currency_totals", active_only), compute)

    def converted_balances(self, base_currency: str | None = None, active_only: bool = True) -> ConvertedBalances:
        """Active account balances converted to the base currency."""
        base = (base_currency or self.base_currency()).upper()

        def compute(typed: TypedSnapshot) -> ConvertedBalances:
            balances = self.account_balances()
            selected = {a.account_id: balances[a.account_id] for a in typed.accounts if a.is_active or not active_only}
            return calculate_converted_balances(selected, base, typed.rates)

        return self._memoized(("converted_balances", base, active_only), compute)

    def convert(self, amount: Money | AmountLike, from_currency: str, to_currency: str) -> Money | None:
        """
        Convert an amount between currencies with the cached rates.

        Returns:
            Converted Money, or None when no direct or inverse rate is cached
        """
        money = amount if isinstance(amount, Money) else Money.from_amount(amount, from_currency)
        if money.currency != from_currency.upper():
            money = Money(cents=money.cents, currency=from_currency)
        return convert_amount(money, to_currency, self._current().rates)

    def _budget_calculator(self) -> BudgetCalculator:
        base = self.base_currency()
        return self._memoized(
            ("budget_calculator", base),
            lambda t: BudgetCalculator(
                t.categories, t.budgets, t.entries, t.rates, base, self.max_category_depth
            ),
        )

    def get_effective_budget(self, category_id: str, month: Month | str) -> BudgetSummary:
        """Effective budget and spending of a category for a month (children included)."""
        month = Month.from_string(month) if isinstance(month, str) else month
        return self._memoized(
            ("effective_budget", category_id, month),
            lambda t: self._budget_calculator().get_effective_budget(category_id, month),
        )

    def budget_report(self, month: Month | str) -> list[BudgetReportNode]:
        month = Month.from_string(month) if isinstance(month, str) else month
        return self._memoized(
            ("budget_report", month), lambda t: self._budget_calculator().build_budget_report(month)
        )

    def category_tree(self, active_only: bool = False) -> list[CategoryNode]:
        return self._memoized(
            ("category_tree", active_only),
            lambda t: build_category_tree(t.categories, self.max_category_depth, active_only),
        )

    def category_problems(self) -> list[str]:
        return self._memoized(
            ("category_problems",),
            lambda t: validate_category_hierarchy(t.categories, self.max_category_depth),
        )

    def transfers(self) -> list[Transfer]:
        """Transfer pairs derived from the cached transfer legs."""
        return self._memoized(("transfers",), lambda t: group_transfers(t.transfer_legs, t.rates))

    def accounts(self) -> list[Account]:
        return list(self._current().accounts)

    def borrowings_lendings(self) -> list[BorrowingLending]:
        return list(self._current().borrowings_lendings)
