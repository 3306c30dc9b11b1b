"""
Derived Aggregation Package

Pure computations over a cache snapshot: account balances, currency
conversion, category hierarchy, effective budgets and transfer pairing, plus
the memoized DerivedViews facade and pandas reports.
"""

from .balances import (
    ConvertedBalances,
    calculate_account_balance,
    calculate_all_account_balances,
    calculate_converted_balances,
    calculate_currency_totals,
    signed_amount,
)
from .budgets import (
    BudgetCalculator,
    BudgetReportNode,
    BudgetSummary,
    build_budget_report,
    calculate_effective_budget,
    get_effective_budget,
    resolve_own_budget,
)
from .categories import build_category_tree, get_category_descendants, validate_category_hierarchy
from .conversion import RateQuote, convert_amount, find_exchange_rate
from .transfers import Transfer, group_transfers
from .views import DerivedViews

__all__ = [
    "BudgetCalculator",
    "BudgetReportNode",
    "BudgetSummary",
    "ConvertedBalances",
    "DerivedViews",
    "RateQuote",
    "Transfer",
    "build_budget_report",
    "build_category_tree",
    "calculate_account_balance",
    "calculate_all_account_balances",
    "calculate_converted_balances",
    "calculate_currency_totals",
    "calculate_effective_budget",
    "convert_amount",
    "find_exchange_rate",
    "get_category_descendants",
    "get_effective_budget",
    "group_transfers",
    "resolve_own_budget",
    "signed_amount",
    "validate_category_hierarchy",
]
