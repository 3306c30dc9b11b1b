"""
Test Suite for finsync

Test Structure:
- fixtures/: Record builders and an in-memory remote
- unit/: Unit tests mirroring src/ package structure
- integration/: CLI and end-to-end engine workflows

Test Categories:
- Core primitives (money, currency, dates, models, config)
- Local cache and persistence
- Sync engine (cursors, guard, timers, merge, coalescing, refresh, mutations)
- Derived views (balances, conversion, budgets, categories, transfers)

Test Data:
All records are synthetic.
"""
