#!/usr/bin/env python3
"""
Effective Budget Resolution and Rollup

For a category and month:

- Own budget: the Active one-shot budgets for that month if any exist,
  otherwise the Active recurring budget covering the month (the one with the
  latest start month when several overlap).
- Children: the effective budgets of the Active child categories, summed.
- Effective budget: the larger of own and children when both are set, else
  whichever is set.
- Spending: the category's own spending plus its children's.

Amounts are expressed in the base currency. Budgets and entries whose currency
cannot be converted are left out and counted in ``unconvertible``.
"""

import logging
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field

from ..core.dates import Month
from ..core.models import Budget, Category, EntryType, ExchangeRate, LedgerEntry
from ..core.money import Money
from .categories import DEFAULT_MAX_DEPTH, index_children
from .conversion import convert_amount

logger = logging.getLogger(__name__)


@dataclass
class BudgetSummary:
    """Budget and spending of one category for one month, children included."""

    category_id: str
    month: Month
    budget: Money
    spending: Money
    own_budget: Money
    children_budget: Money
    own_spending: Money
    unconvertible: int = 0

    @property
    def remaining(self) -> Money:
        """Budget left (negative when overspent)."""
        return self.budget - self.spending


@dataclass
class BudgetReportNode:
    category: Category
    summary: BudgetSummary
    depth: int = 0
    children: list["BudgetReportNode"] = field(default_factory=list)


def applicable_budgets(budgets: Iterable[Budget], category_id: str, month: Month) -> list[Budget]:
    """Budgets that make up a category's own budget for the month."""
    active = [b for b in budgets if b.category_id == category_id and b.is_active]
    one_shot = [b for b in active if not b.recurring and b.month == month]
    if one_shot:
        return one_shot
    recurring = [b for b in active if b.recurring and b.applies_to(month)]
    if not recurring:
        return []
    return [max(recurring, key=lambda b: b.start_month or month)]


def calculate_effective_budget(own: Money, children: Money) -> Money:
    """
    Combine a category's own budget with its children's rollup.

    Examples:
        own 0, children 500   -> 500
        own 400, children 500 -> 500
        own 600, children 500 -> 600
        own 400, children 0   -> 400
    """
    if own.cents > 0 and children.cents > 0:
        return own if own.cents >= children.cents else children
    if own.cents > 0:
        return own
    return children


def spending_direction(entry: LedgerEntry) -> int:
    """+1 for expenses, -1 for income (refunds reduce spending), 0 otherwise."""
    if entry.type == EntryType.EXPENSE:
        return 1
    if entry.type == EntryType.INCOME:
        return -1
    return 0


class BudgetCalculator:
    """
    Budget resolution over one cache snapshot.

    Indexes budgets and entries by category once, then answers
    get_effective_budget and build_budget_report from the indexes.
    """

    def __init__(
        self,
        categories: Iterable[Category],
        budgets: Iterable[Budget],
        entries: Iterable[LedgerEntry],
        rates: Iterable[ExchangeRate],
        base_currency: str = "USD",
        max_depth: int = DEFAULT_MAX_DEPTH,
    ):
        self.categories = {c.category_id: c for c in categories}
        self.base_currency = base_currency.upper()
        self.max_depth = max_depth
        self.rates = list(rates)
        self._children = index_children(self.categories.values(), active_only=True)

        self._budgets: dict[str, list[Budget]] = defaultdict(list)
        for budget in budgets:
            self._budgets[budget.category_id].append(budget)

        self._entries: dict[str, list[LedgerEntry]] = defaultdict(list)
        for entry in entries:
            if entry.category_id and entry.counts_toward_balance and entry.date is not None:
                self._entries[entry.category_id].append(entry)

    def _to_base(self, amount: Money) -> Money | None:
        return convert_amount(amount, self.base_currency, self.rates)

    def resolve_own_budget(self, category_id: str, month: Month) -> tuple[Money, int]:
        """Own budget in the base currency plus the count of unconvertible budgets."""
        total = 0
        unconvertible = 0
        for budget in applicable_budgets(self._budgets.get(category_id, []), category_id, month):
            converted = self._to_base(budget.amount)
            if converted is None:
                unconvertible += 1
                logger.warning(f"Budget {budget.budget_id} in {budget.amount.currency} cannot be converted")
                continue
            total += converted.cents
        return Money(cents=total, currency=self.base_currency), unconvertible

    def own_spending(self, category_id: str, month: Month) -> tuple[Money, int]:
        """Own spending in the base currency plus the count of unconvertible entries."""
        total = 0
        unconvertible = 0
        for entry in self._entries.get(category_id, []):
            direction = spending_direction(entry)
            if direction == 0 or entry.date is None or not month.contains(entry.date.date):
                continue
            converted = self._to_base(entry.amount)
            if converted is None:
                unconvertible += 1
                continue
            total += direction * converted.cents
        return Money(cents=total, currency=self.base_currency), unconvertible

    def _report_node(self, category: Category, month: Month, depth: int, visited: set[str]) -> BudgetReportNode:
        visited.add(category.category_id)
        children: list[BudgetReportNode] = []
        if depth + 1 < self.max_depth:
            for child in self._children.get(category.category_id, []):
                if child.category_id in visited:
                    logger.warning(f"Category cycle at {child.category_id}; excluded from rollup")
                    continue
                children.append(self._report_node(child, month, depth + 1, visited))
        elif self._children.get(category.category_id):
            logger.warning(f"Budget rollup below {category.category_id} truncated at depth {self.max_depth}")

        own_budget, unconvertible_budgets = self.resolve_own_budget(category.category_id, month)
        own_spending, unconvertible_entries = self.own_spending(category.category_id, month)

        children_budget = sum((c.summary.budget.cents for c in children), 0)
        children_spending = sum((c.summary.spending.cents for c in children), 0)
        children_unconvertible = sum((c.summary.unconvertible for c in children), 0)

        summary = BudgetSummary(
            category_id=category.category_id,
            month=month,
            budget=calculate_effective_budget(own_budget, Money(children_budget, self.base_currency)),
            spending=Money(cents=own_spending.cents + children_spending, currency=self.base_currency),
            own_budget=own_budget,
            children_budget=Money(children_budget, self.base_currency),
            own_spending=own_spending,
            unconvertible=unconvertible_budgets + unconvertible_entries + children_unconvertible,
        )
        return BudgetReportNode(category=category, summary=summary, depth=depth, children=children)

    def get_effective_budget(self, category_id: str, month: Month) -> BudgetSummary:
        """Rolled-up budget and spending of one category; unknown categories resolve to their own figures."""
        category = self.categories.get(category_id)
        if category is None:
            category = Category(category_id=category_id, name="")
        return self._report_node(category, month, 0, set()).summary

    def build_budget_report(self, month: Month) -> list[BudgetReportNode]:
        """
        Report tree of every Active category, roots first.

        Totals must be taken from the roots only; every node already includes
        its descendants.
        """
        known = set(self.categories)
        roots = [
            c
            for c in self.categories.values()
            if c.is_active and (c.parent_category_id is None or c.parent_category_id not in known)
        ]
        visited: set[str] = set()
        return [self._report_node(root, month, 0, visited) for root in roots]


def resolve_own_budget(
    budgets: Iterable[Budget],
    category_id: str,
    month: Month,
    base_currency: str = "USD",
    rates: Iterable[ExchangeRate] = (),
) -> Money:
    """A category's own budget for the month, in the base currency."""
    calculator = BudgetCalculator([], budgets, [], rates, base_currency)
    own, _ = calculator.resolve_own_budget(category_id, month)
    return own


def get_effective_budget(
    category_id: str,
    month: Month,
    categories: Iterable[Category],
    budgets: Iterable[Budget],
    entries: Iterable[LedgerEntry],
    rates: Iterable[ExchangeRate] = (),
    base_currency: str = "USD",
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> BudgetSummary:
    """Rolled-up budget and spending for one category and month."""
    calculator = BudgetCalculator(categories, budgets, entries, rates, base_currency, max_depth)
    return calculator.get_effective_budget(category_id, month)


def build_budget_report(
    month: Month,
    categories: Iterable[Category],
    budgets: Iterable[Budget],
    entries: Iterable[LedgerEntry],
    rates: Iterable[ExchangeRate] = (),
    base_currency: str = "USD",
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> list[BudgetReportNode]:
    """Budget report tree for the month, roots first."""
    calculator = BudgetCalculator(categories, budgets, entries, rates, base_currency, max_depth)
    return calculator.build_budget_report(month)


def report_totals(roots: Iterable[BudgetReportNode], base_currency: str = "USD") -> tuple[Money, Money]:
    """Total budget and spending of a report, summed over root nodes only."""
    roots = list(roots)
    budget = sum((node.summary.budget.cents for node in roots), 0)
    spending = sum((node.summary.spending.cents for node in roots), 0)
    return Money(budget, base_currency), Money(spending, base_currency)
