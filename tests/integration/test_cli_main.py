#!/usr/bin/env python3
"""
Integration tests for CLI Main Entry Point

Tests end-to-end CLI command execution with real command invocation.
Focuses on meaningful workflows, not trivial code coverage.
"""

import subprocess
import sys

import pytest
from click.testing import CliRunner

from finsync.cli.main import main


@pytest.mark.integration
class TestCLIMainIntegration:
    """Test main CLI entry point with real command execution."""

    def setup_method(self):
        """Set up test environment."""
        self.runner = CliRunner()

    def test_help_command_lists_all_subcommands(self):
        """Test finsync --help shows all registered subcommands."""
        result = self.runner.invoke(main, ["--help"])

        assert result.exit_code == 0
        assert "Local-First Personal Finance Sync" in result.output

        for command in ["sync", "status", "balances", "budget", "convert", "transfers", "version", "config"]:
            assert command in result.output

    def test_version_command_shows_version_info(self):
        """Test finsync version displays version and author."""
        result = self.runner.invoke(main, ["version"])

        assert result.exit_code == 0
        assert "finsync v" in result.output
        assert "Author:" in result.output

    def test_config_command_shows_configuration(self):
        """Test finsync config displays current configuration."""
        result = self.runner.invoke(main, ["config"])

        assert result.exit_code == 0
        assert "Current Configuration:" in result.output
        assert "Environment: test" in result.output
        assert "Cache Directory:" in result.output
        assert "Remote Directory:" in result.output
        assert "Base Currency: USD" in result.output
        assert "Guard Window: 2000 ms" in result.output

    def test_invalid_command_shows_error(self):
        """Test that invalid command shows helpful error."""
        result = self.runner.invoke(main, ["invalid-command"])

        assert result.exit_code != 0
        assert "Error" in result.output or "No such" in result.output

    def test_verbose_flag_enables_verbose_output(self):
        """Test --verbose flag prints environment and data directory."""
        result = self.runner.invoke(main, ["--verbose", "config"])

        assert result.exit_code == 0
        assert "Data directory:" in result.output
        assert "Current Configuration:" in result.output

    def test_debug_flag(self, monkeypatch):
        """Test --debug enables debug logging."""
        monkeypatch.setenv("LOG_LEVEL", "INFO")
        result = self.runner.invoke(main, ["--debug", "version"])

        assert result.exit_code == 0
        assert "Debug logging enabled" in result.output

    def test_config_env_override_changes_environment(self):
        """Test --config-env flag overrides environment."""
        result = self.runner.invoke(main, ["--config-env", "test", "config"])

        assert result.exit_code == 0
        assert "Environment: test" in result.output

    def test_invalid_configuration_is_reported(self, monkeypatch):
        """Test that configuration validation errors abort the command."""
        monkeypatch.setenv("FINSYNC_BASE_CURRENCY", "DOLLARS")
        result = self.runner.invoke(main, ["config"])

        assert result.exit_code != 0
        assert "Base currency must be a 3-letter ISO code" in str(result.exception)

    def test_subcommand_help_accessible(self):
        """Test that subcommand help is accessible."""
        for subcommand in ["sync", "status", "balances", "budget", "convert", "transfers"]:
            result = self.runner.invoke(main, [subcommand, "--help"])
            assert result.exit_code == 0
            assert "Usage:" in result.output

    def test_module_execution_version(self):
        """Test actual CLI execution via subprocess for version command."""
        result = subprocess.run(
            [sys.executable, "-m", "finsync.cli.main", "version"],
            capture_output=True,
            text=True,
            timeout=30,
        )

        assert result.returncode == 0
        assert "finsync v" in result.stdout
