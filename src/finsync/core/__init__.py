"""
Core Utilities Package

Shared primitives used by the sync engine and the aggregation layer.

This package provides:
- Currency handling with integer arithmetic for precision
- Entity kinds and typed record views
- Configuration management for environment-specific settings
- Error types and JSON helpers
"""

from .config import (
    Config,
    Environment,
    SyncConfig,
    get_cache_dir,
    get_config,
    get_data_dir,
    is_development,
    is_production,
    is_test,
    reload_config,
)
from .currency import (
    amount_to_cents,
    apply_rate,
    cents_to_amount_str,
    divide_by_rate,
    format_cents,
    invert_rate,
    normalize_currency_code,
)
from .dates import FinancialDate, Month
from .errors import ConfigurationError, FetchError, FinsyncError, RemoteWriteError
from .models import (
    PRIORITY_KINDS,
    Account,
    BorrowingLending,
    Budget,
    Category,
    EntityKind,
    EntryType,
    ExchangeRate,
    LedgerEntry,
    Record,
    Setting,
    generate_id,
)
from .money import Money

__all__ = [
    "PRIORITY_KINDS",
    # Data models
    "Account",
    "BorrowingLending",
    "Budget",
    "Category",
    # Configuration
    "Config",
    "ConfigurationError",
    "EntityKind",
    "EntryType",
    "Environment",
    "ExchangeRate",
    "FetchError",
    "FinancialDate",
    "FinsyncError",
    "LedgerEntry",
    "Money",
    "Month",
    "Record",
    "RemoteWriteError",
    "Setting",
    "SyncConfig",
    # Currency utilities
    "amount_to_cents",
    "apply_rate",
    "cents_to_amount_str",
    "divide_by_rate",
    "format_cents",
    "generate_id",
    "get_cache_dir",
    "get_config",
    "get_data_dir",
    "invert_rate",
    "is_development",
    "is_production",
    "is_test",
    "normalize_currency_code",
    "reload_config",
]
