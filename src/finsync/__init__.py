"""
finsync - Local-First Personal Finance Sync Engine

Keeps a client-resident cache of ledger entries, accounts, categories, budgets,
transfers, borrow/lend records, settings and exchange rates consistent with a
remote system of record, and derives balances, budget rollups and currency
conversions from that cache.

Domain Packages:
- core: Money, currency, entity models, configuration, errors
- storage: Durable cache blobs and the in-memory cache handle
- sync: Cursors, merge engine, mutation guard, notification coalescing,
  tiered refresh and the engine orchestrator
- analysis: Derived aggregation (balances, conversion, budgets, transfers)
  and pandas reports
- cli: Command-line interface

Example Usage:
    from finsync.storage import LocalCache
    from finsync.sync import SyncEngine
    from finsync.analysis import DerivedViews

Version: 0.1.0
"""

__version__ = "0.1.0"
__author__ = "finsync contributors"

from .core.config import Environment, get_config
from .core.models import EntityKind
from .core.money import Money

__all__ = [
    "EntityKind",
    "Environment",
    "Money",
    "get_config",
]
