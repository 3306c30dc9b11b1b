#!/usr/bin/env python3
"""
Tabular Reports

pandas DataFrames built from the derived views, for printing from the CLI or
writing to CSV.
"""

import pandas as pd

from ..core.dates import Month
from .budgets import BudgetReportNode
from .views import DerivedViews

BALANCE_COLUMNS = ["account_id", "name", "status", "currency", "balance", "base_currency", "converted_balance"]
BUDGET_COLUMNS = ["category_id", "name", "depth", "budget", "spending", "remaining", "own_budget", "unconvertible"]


def balances_dataframe(views: DerivedViews, base_currency: str | None = None) -> pd.DataFrame:
    """
    One row per account with its derived balance and the balance in the base
    currency (NaN when no rate is cached).
    """
    converted = views.converted_balances(base_currency, active_only=False)
    balances = views.account_balances()
    rows = []
    for account in views.accounts():
        balance = balances[account.account_id]
        in_base = converted.converted.get(account.account_id)
        rows.append(
            {
                "account_id": account.account_id,
                "name": account.name,
                "status": account.status,
                "currency": balance.currency,
                "balance": float(balance.to_decimal()),
                "base_currency": converted.base_currency,
                "converted_balance": float(in_base.to_decimal()) if in_base is not None else float("nan"),
            }
        )
    return pd.DataFrame(rows, columns=BALANCE_COLUMNS)


def flatten_budget_report(nodes: list[BudgetReportNode]) -> list[dict]:
    """Depth-first rows of a budget report tree, parents before children."""
    rows: list[dict] = []

    def visit(node: BudgetReportNode) -> None:
        summary = node.summary
        rows.append(
            {
                "category_id": node.category.category_id,
                "name": node.category.name,
                "depth": node.depth,
                "budget": float(summary.budget.to_decimal()),
                "spending": float(summary.spending.to_decimal()),
                "remaining": float(summary.remaining.to_decimal()),
                "own_budget": float(summary.own_budget.to_decimal()),
                "unconvertible": summary.unconvertible,
            }
        )
        for child in node.children:
            visit(child)

    for node in nodes:
        visit(node)
    return rows


def budget_report_dataframe(views: DerivedViews, month: Month | str) -> pd.DataFrame:
    """Flattened budget report for the month."""
    return pd.DataFrame(flatten_budget_report(views.budget_report(month)), columns=BUDGET_COLUMNS)


def format_dataframe(df: pd.DataFrame) -> str:
    """Render a DataFrame for terminal output."""
    if df.empty:
        return "(no rows)"
    return df.to_string(index=False, float_format=lambda value: f"{value:,.2f}")
