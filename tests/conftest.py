"""
Pytest configuration and shared fixtures for cost exporter tests.

This module provides common fixtures and configurations used across
all test modules in the cost exporter.
"""

import os
import tempfile
from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest

from cost_exporter.config.settings import DEFAULT_GAUGES, ExporterConfig, create_settings
from cost_exporter.export.prometheus import CostGauge
from cost_exporter.monitoring.windows import DEFAULT_WINDOWS, WindowKind
from cost_exporter.providers.base import CostDataFetcher, TimeGranularity, TimeRange


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "aws: mark test as AWS-specific")


def make_group(service: Any, region: Any = None, amount: Any = "0", metric: str = "UnblendedCost"):
    """Build a Cost Explorer style group."""
    keys = [service] if region is None else [service, region]
    return {"Keys": keys, "Metrics": {metric: {"Amount": amount, "Unit": "USD"}}}


class StubCostFetcher(CostDataFetcher):
    """In-memory fetcher returning canned groups per time range."""

    def __init__(self, responses: dict[TimeRange, Any] | None = None, default: Any = None):
        super().__init__({})
        self.responses = responses or {}
        self.default = default if default is not None else []
        self.calls: list[tuple[TimeRange, TimeGranularity]] = []

    def _get_provider_name(self) -> str:
        return "stub"

    def fetch(self, time_range: TimeRange, granularity: TimeGranularity) -> list[dict[str, Any]]:
        self.calls.append((time_range, granularity))
        response = self.responses.get(time_range, self.default)
        if isinstance(response, Exception):
            raise response
        return list(response)


# Temporary directory fixture
@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


# Environment fixture
@pytest.fixture
def clean_env(monkeypatch) -> Generator[dict[str, str], None, None]:
    """Provide an environment without AWS or exporter overrides."""
    for var in list(os.environ):
        if var.startswith("COSTEXPORTER_") or var in (
            "AWS_REGION",
            "AWS_ACCESS_KEY_ID",
            "AWS_SECRET_ACCESS_KEY",
            "AWS_PROFILE",
            "PORT",
        ):
            monkeypatch.delenv(var, raising=False)
    yield os.environ


@pytest.fixture
def make_config(temp_dir, clean_env):
    """Create an ExporterConfig from YAML text."""

    def _make_config(yaml_text: str = "") -> ExporterConfig:
        config_file = temp_dir / "config.yaml"
        config_file.write_text(yaml_text)
        return ExporterConfig(create_settings([str(config_file)]))

    return _make_config


@pytest.fixture
def stub_fetcher() -> StubCostFetcher:
    """Fetcher that returns no groups unless told otherwise."""
    return StubCostFetcher()


@pytest.fixture
def gauges() -> dict[WindowKind, CostGauge]:
    """One gauge per default window, in refresh order."""
    return {kind: CostGauge(DEFAULT_GAUGES[kind]) for kind in DEFAULT_WINDOWS}
