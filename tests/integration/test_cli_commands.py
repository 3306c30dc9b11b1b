#!/usr/bin/env python3
"""
Integration tests for the sync and report CLI commands.

Seeds a file-backed remote, runs `finsync sync` against it and checks the
reports read back from the local cache.
"""

import pytest
from click.testing import CliRunner

from finsync.cli.main import main
from finsync.core.json_utils import write_json_atomic
from tests.fixtures.records import (
    make_account,
    make_budget,
    make_category,
    make_entry,
    make_rate,
    make_transfer_legs,
)


def seed_remote(remote_dir):
    """Write one JSON file per remote table."""
    tables = {
        "accounts": [
            make_account("ACC_USD", opening_balance="100.00"),
            make_account("ACC_SAV"),
            make_account("ACC_EUR", currency="EUR"),
        ],
        "transactions": [
            make_entry("TXN_1", account_id="ACC_USD", amount="50.00", type="Income"),
            make_entry("TXN_2", account_id="ACC_USD", amount="30.00", category_id="CAT_FOOD"),
            *make_transfer_legs("TRF_1", "ACC_USD", "ACC_SAV"),
        ],
        "categories": [make_category("CAT_FOOD", name="Food")],
        "budgets": [make_budget("BDG_1", "CAT_FOOD", "200.00")],
        "exchange_rates": [make_rate("EXR_1", "USD", "EUR", "0.9")],
    }
    for table, rows in tables.items():
        write_json_atomic(remote_dir / f"{table}.json", rows)


@pytest.mark.integration
class TestSyncCommand:
    """Test finsync sync and finsync status."""

    def setup_method(self):
        self.runner = CliRunner()

    def test_status_before_first_sync(self):
        result = self.runner.invoke(main, ["status"])

        assert result.exit_code == 0
        assert "No local cache found" in result.output
        assert "accounts: 0 records (cursor: never synced)" in result.output

    def test_first_sync_is_full_then_incremental(self, tmp_path):
        seed_remote(tmp_path / "remote")

        first = self.runner.invoke(main, ["sync"])
        assert first.exit_code == 0, first.output
        assert "accounts: full, 3 fetched, 3 cached" in first.output
        assert "transfers: full, 2 fetched, 2 cached" in first.output
        assert "✅ Sync complete" in first.output

        second = self.runner.invoke(main, ["sync"])
        assert second.exit_code == 0, second.output
        assert "accounts: incremental, 0 fetched, 3 cached" in second.output

    def test_status_after_sync(self, tmp_path):
        seed_remote(tmp_path / "remote")
        self.runner.invoke(main, ["sync"])

        result = self.runner.invoke(main, ["status"])

        assert result.exit_code == 0
        assert "Local cache:" in result.output
        assert "accounts: 3 records (cursor: " in result.output
        assert "transactions: 4 records" in result.output
        assert "never synced" not in result.output

    def test_sync_single_entity(self, tmp_path):
        seed_remote(tmp_path / "remote")

        result = self.runner.invoke(main, ["sync", "--entity", "accounts"])

        assert result.exit_code == 0
        assert "accounts: full, 3 fetched, 3 cached" in result.output
        assert "transactions:" not in result.output

    def test_full_flag_ignores_cursors(self, tmp_path):
        seed_remote(tmp_path / "remote")
        self.runner.invoke(main, ["sync", "--entity", "accounts"])

        result = self.runner.invoke(main, ["sync", "--entity", "accounts", "--full"])

        assert result.exit_code == 0
        assert "accounts: full, 3 fetched, 3 cached" in result.output

    def test_failed_entity_reported(self, tmp_path):
        seed_remote(tmp_path / "remote")
        write_json_atomic(tmp_path / "remote" / "accounts.json", {"not": "a list"})

        result = self.runner.invoke(main, ["sync"])

        assert result.exit_code != 0
        assert "accounts: FAILED" in result.output
        assert "transactions: full, 4 fetched, 4 cached" in result.output

    def test_unknown_entity_rejected(self):
        result = self.runner.invoke(main, ["sync", "--entity", "invoices"])

        assert result.exit_code == 2


@pytest.mark.integration
class TestReportCommands:
    """Test report commands over a synced cache."""

    def setup_method(self):
        self.runner = CliRunner()

    @pytest.fixture(autouse=True)
    def synced_cache(self, tmp_path):
        seed_remote(tmp_path / "remote")
        result = CliRunner().invoke(main, ["sync"])
        assert result.exit_code == 0, result.output

    def test_balances(self):
        result = self.runner.invoke(main, ["balances"])

        assert result.exit_code == 0
        assert "ACC_USD" in result.output
        assert "Total (active accounts): USD 120.00" in result.output
        assert "No exchange rate" not in result.output

    def test_balances_written_to_csv(self, tmp_path):
        output_file = tmp_path / "balances.csv"

        result = self.runner.invoke(main, ["balances", "--output-file", str(output_file)])

        assert result.exit_code == 0
        assert output_file.exists()
        assert "ACC_EUR" in output_file.read_text()

    def test_balances_report_missing_rate(self):
        result = self.runner.invoke(main, ["balances", "--base", "GBP"])

        assert result.exit_code == 0
        assert "⚠️  No exchange rate for:" in result.output

    def test_convert_with_inverse_rate(self):
        result = self.runner.invoke(main, ["convert", "100", "EUR", "USD"])

        assert result.exit_code == 0
        assert "EUR 100.00 = USD 111.11" in result.output

    def test_convert_without_rate_fails(self):
        result = self.runner.invoke(main, ["convert", "100", "GBP", "USD"])

        assert result.exit_code != 0
        assert "No exchange rate cached for GBP -> USD" in result.output

    def test_budget_report(self):
        result = self.runner.invoke(main, ["budget", "--month", "2024-05"])

        assert result.exit_code == 0
        assert "Budget report for 2024-05 (USD)" in result.output
        assert "CAT_FOOD" in result.output
        assert "200.00" in result.output

    def test_budget_rejects_bad_month(self):
        result = self.runner.invoke(main, ["budget", "--month", "bad"])

        assert result.exit_code == 2
        assert "--month" in result.output

    def test_transfers(self):
        result = self.runner.invoke(main, ["transfers"])

        assert result.exit_code == 0
        assert "TRF_1: ACC_USD USD 25.00 -> ACC_SAV USD 25.00" in result.output
        assert "(incomplete)" not in result.output
