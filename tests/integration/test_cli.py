"""
Integration tests for the command line interface.
"""

import json
from unittest.mock import MagicMock

import pytest
from click.testing import CliRunner
from conftest import StubCostFetcher, make_group

from cost_exporter import __version__, main
from cost_exporter.providers.base import APIError, ConfigurationError, ProviderFactory

pytestmark = pytest.mark.integration


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def use_config(make_config, monkeypatch):
    """Make the CLI load configuration from YAML text."""

    def _use_config(yaml_text="metrics:\n  include_process_metrics: false\n"):
        config = make_config(yaml_text)
        monkeypatch.setattr(main, "get_config", lambda: config)
        return config

    return _use_config


@pytest.fixture
def use_fetcher(monkeypatch):
    """Make the CLI build the given fetcher instead of the AWS one."""

    def _use_fetcher(fetcher):
        monkeypatch.setattr(ProviderFactory, "create_provider", MagicMock(return_value=fetcher))
        return fetcher

    return _use_fetcher


class TestCLI:
    """Test cases for CLI commands."""

    def test_version(self, runner, use_config):
        use_config()

        result = runner.invoke(main.cli, ["version"])

        assert result.exit_code == 0
        assert f"AWS Cost Exporter v{__version__}" in result.output

    def test_windows_json(self, runner, use_config):
        """Test the window listing for a fixed date."""
        use_config()

        result = runner.invoke(main.cli, ["windows", "--date", "2024-03-15", "--format", "json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["date"] == "2024-03-15"
        assert data["windows"][1] == {
            "window": "month_to_date",
            "gauge": "aws_monthly_cost_usd",
            "start": "2024-03-01",
            "end": "2024-03-15",
            "granularity": "monthly",
        }

    def test_windows_table(self, runner, use_config):
        use_config()

        result = runner.invoke(main.cli, ["windows", "--date", "2025-01-01"])

        assert result.exit_code == 0
        assert "Billing windows for 2025-01-01" in result.output
        assert "[2024-12-01, 2025-01-01)" in result.output

    def test_refresh_prints_metrics(self, runner, use_config, use_fetcher):
        """Test a one-off refresh cycle."""
        use_config()
        use_fetcher(StubCostFetcher(default=[make_group("AmazonEC2", "us-east-1", "12.3456")]))

        result = runner.invoke(main.cli, ["refresh", "--date", "2024-03-15"])

        assert result.exit_code == 0
        assert 'aws_daily_cost_usd{service="AmazonEC2",region="us-east-1"} 12.3456' in result.output
        assert "current_day: 1 series" in result.output

    def test_refresh_to_file(self, runner, use_config, use_fetcher, temp_dir):
        use_config()
        use_fetcher(StubCostFetcher(default=[make_group("AmazonS3", "us-west-2", "5")]))
        output = temp_dir / "metrics.prom"

        result = runner.invoke(main.cli, ["refresh", "--date", "2024-03-15", "-o", str(output)])

        assert result.exit_code == 0
        assert 'region="us-west-2"} 5.0' in output.read_text()

    def test_refresh_failure_exit_code(self, runner, use_config, use_fetcher):
        """Test that a failed cycle exits non-zero and reports skipped windows."""
        use_config()
        use_fetcher(StubCostFetcher(default=APIError("Throttled")))

        result = runner.invoke(main.cli, ["refresh", "--date", "2024-03-15"])

        assert result.exit_code == 1
        assert "current_day: failed - Throttled" in result.output
        assert "previous_month: skipped" in result.output

    def test_config_info(self, runner, use_config):
        use_config("refresh:\n  interval_seconds: 600\n")

        result = runner.invoke(main.cli, ["config-info"])

        assert result.exit_code == 0
        assert "Refresh interval: 600 seconds" in result.output
        assert "current_day: aws_daily_cost_usd" in result.output

    def test_configuration_error(self, runner, monkeypatch):
        """Test that invalid configuration exits with an error."""

        def broken_config():
            raise ConfigurationError("Unknown window 'weekly'")

        monkeypatch.setattr(main, "get_config", broken_config)

        result = runner.invoke(main.cli, ["version"])

        assert result.exit_code == 1
        assert "Error loading configuration: Unknown window 'weekly'" in result.output

    def test_serve_runs_uvicorn(self, runner, use_config, monkeypatch):
        """Test that serve applies CLI overrides and hands the app to uvicorn."""
        use_config()
        run = MagicMock()
        monkeypatch.setattr(main.uvicorn, "run", run)

        result = runner.invoke(main.cli, ["serve", "--port", "9100", "--interval", "60"])

        assert result.exit_code == 0
        _, kwargs = run.call_args
        assert kwargs["host"] == "0.0.0.0"
        assert kwargs["port"] == 9100
