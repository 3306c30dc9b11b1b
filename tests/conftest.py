"""
Pytest Configuration and Shared Fixtures

Provides common test fixtures and configuration for the entire test suite.
"""

import tempfile
from pathlib import Path

import pytest

from finsync.core import config as config_module


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as temp_path:
        yield Path(temp_path)


@pytest.fixture
def sample_ledger_entry() -> dict:
    """Sample ledger entry row as sent by the remote."""
    return {
        "transaction_id": "TXN_1714550400000_001",
        "user_id": "user-1",
        "account_id": "ACC_1",
        "category_id": "CAT_GROCERIES",
        "amount": "45.99",
        "currency": "USD",
        "type": "Expense",
        "status": "Cleared",
        "date": "2024-05-15",
        "description": "Test grocery run",
        "created_at": "2024-05-15T10:00:00+00:00",
        "updated_at": "2024-05-15T10:00:00+00:00",
        "deleted_at": None,
    }


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch, tmp_path):
    """Set up test environment variables."""
    # Ensure tests don't use real data
    monkeypatch.setenv("FINSYNC_ENV", "test")
    monkeypatch.setenv("FINSYNC_DATA_DIR", str(tmp_path / "finsync_data"))
    monkeypatch.setenv("FINSYNC_REMOTE_DIR", str(tmp_path / "remote"))
    monkeypatch.setenv("FINSYNC_PRINCIPAL_ID", "user-1")
    monkeypatch.delenv("FINSYNC_BASE_CURRENCY", raising=False)

    # Every test starts from a fresh configuration
    monkeypatch.setattr(config_module, "_config", None)


# Test markers for categorizing tests
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line("markers", "integration: Integration tests for complete workflows")
    config.addinivalue_line("markers", "sync: Tests for the sync engine and its timers")
    config.addinivalue_line("markers", "currency: Tests for currency handling and precision")
    config.addinivalue_line("markers", "slow: Tests that take significant time to run")
