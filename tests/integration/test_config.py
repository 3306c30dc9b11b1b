#!/usr/bin/env python3
"""
Integration tests for configuration module.

Tests configuration loading, environment overrides and validation.
"""

from pathlib import Path

import pytest

from finsync.core.config import (
    Config,
    Environment,
    get_cache_dir,
    get_config,
    get_data_dir,
    is_development,
    is_production,
    is_test,
    reload_config,
)
from finsync.core.errors import ConfigurationError


@pytest.mark.integration
class TestConfigLoading:
    """Test configuration loading and structure."""

    def test_config_loads_successfully(self):
        """Test that config loads without errors."""
        config = get_config()

        assert config.environment == Environment.TEST
        assert config.base_currency == "USD"
        assert config.remote.principal_id == "user-1"

    def test_config_is_cached(self):
        """Test that the global instance is reused until reloaded."""
        assert get_config() is get_config()
        first = get_config()
        assert reload_config() is not first

    def test_directories_are_created(self, tmp_path):
        """Test that data, cache and report directories exist."""
        config = get_config()

        assert config.data_dir == tmp_path / "finsync_data"
        assert get_data_dir().is_dir()
        assert get_cache_dir() == config.data_dir / "cache"
        assert config.output_dir.is_dir()
        assert config.remote.snapshot_dir == tmp_path / "remote"

    def test_environment_detection_functions(self):
        """Test environment detection helper functions."""
        assert is_test()
        assert not is_development()
        assert not is_production()

    def test_sync_timings_from_environment(self, monkeypatch):
        """Test that timing knobs are read from the environment."""
        monkeypatch.setenv("FINSYNC_GUARD_WINDOW_MS", "1500")
        monkeypatch.setenv("FINSYNC_LEDGER_DEBOUNCE_MS", "100")
        monkeypatch.setenv("FINSYNC_INACTIVITY_THRESHOLD", "30")

        config = Config.from_environment()

        assert config.sync.guard_window_seconds == 1.5
        assert config.sync.ledger_debounce_seconds == 0.1
        assert config.sync.inactivity_threshold_seconds == 30.0
        assert config.sync.debounce_seconds == 0.5


@pytest.mark.integration
class TestConfigValidation:
    """Test configuration validation."""

    def test_defaults_are_valid(self):
        """Test that the test environment validates cleanly."""
        assert Config.from_environment().validate() == []

    def test_negative_guard_window_rejected(self, monkeypatch):
        """Test numeric validation."""
        monkeypatch.setenv("FINSYNC_GUARD_WINDOW_MS", "-1")
        with pytest.raises(ConfigurationError, match="Guard window must be non-negative"):
            get_config()

    def test_production_requires_principal(self, monkeypatch):
        """Test production-only requirements."""
        monkeypatch.setenv("FINSYNC_ENV", "production")
        monkeypatch.delenv("FINSYNC_PRINCIPAL_ID")

        errors = Config.from_environment().validate()

        assert "FINSYNC_PRINCIPAL_ID is required in production" in errors

    def test_to_dict_redacts_principal(self):
        """Test that sensitive values are hidden unless requested."""
        config = get_config()

        redacted = config.to_dict()
        full = config.to_dict(include_sensitive=True)

        assert redacted["remote"]["principal_id"] == "***REDACTED***"
        assert full["remote"]["principal_id"] == "user-1"
        assert isinstance(redacted["data_dir"], str)
        assert Path(redacted["remote"]["snapshot_dir"]) == config.remote.snapshot_dir
