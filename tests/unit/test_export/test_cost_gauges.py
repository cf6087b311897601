"""
Tests for the cost gauge store and Prometheus exposition.

Tests wholesale snapshot replacement, registry rendering and consistency
of the exposed label sets under concurrent replaces.
"""

import threading

from cost_exporter.export.prometheus import (
    LAST_REFRESH_METRIC,
    CostGauge,
    GaugeDefinition,
    create_registry,
    render_metrics,
    save_metrics_to_file,
)

DAILY = GaugeDefinition("aws_daily_cost_usd", "Daily AWS cost in USD")
MONTHLY = GaugeDefinition("aws_monthly_cost_usd", "Monthly AWS cost in USD")


def exposed_samples(registry, name):
    """Return {(service, region): value} for one metric in a registry."""
    samples = {}
    for family in registry.collect():
        if family.name != name:
            continue
        for sample in family.samples:
            samples[(sample.labels["service"], sample.labels["region"])] = sample.value
    return samples


class TestCostGauge:
    """Test cases for CostGauge."""

    def test_starts_empty(self):
        """Test that a new gauge has no samples and no refresh time."""
        gauge = CostGauge(DAILY)

        assert dict(gauge.samples()) == {}
        assert len(gauge) == 0
        assert gauge.last_updated is None

    def test_replace_installs_snapshot(self):
        """Test that replace installs exactly the given samples."""
        gauge = CostGauge(DAILY)
        gauge.replace({("AmazonEC2", "us-east-1"): 12.3456})

        assert dict(gauge.samples()) == {("AmazonEC2", "us-east-1"): 12.3456}
        assert gauge.last_updated is not None

    def test_replace_drops_missing_labels(self):
        """Test that labels absent from the new snapshot disappear."""
        gauge = CostGauge(DAILY)
        gauge.replace({("AmazonS3", "us-west-2"): 5.0, ("AmazonEC2", "us-east-1"): 1.0})
        gauge.replace({("AmazonEC2", "us-east-1"): 2.0})

        assert dict(gauge.samples()) == {("AmazonEC2", "us-east-1"): 2.0}

    def test_replace_is_idempotent(self):
        """Test that replacing twice with the same snapshot changes nothing."""
        gauge = CostGauge(DAILY)
        snapshot = {("AmazonEC2", "us-east-1"): 3.0, ("AmazonS3", "us-west-2"): 4.0}

        gauge.replace(snapshot)
        first = dict(gauge.samples())
        gauge.replace(snapshot)

        assert dict(gauge.samples()) == first == snapshot

    def test_empty_snapshot_clears(self):
        """Test that an empty snapshot removes every label combination."""
        gauge = CostGauge(DAILY)
        gauge.replace({("AmazonS3", "us-west-2"): 5.0})
        gauge.replace({})

        assert dict(gauge.samples()) == {}

    def test_snapshot_is_copied(self):
        """Test that later changes to the caller's dict are not exported."""
        gauge = CostGauge(DAILY)
        snapshot = {("AmazonEC2", "us-east-1"): 1.0}
        gauge.replace(snapshot)
        snapshot[("AmazonS3", "us-west-2")] = 9.0

        assert dict(gauge.samples()) == {("AmazonEC2", "us-east-1"): 1.0}

    def test_metric_family_labels(self):
        """Test rendering to a GaugeMetricFamily."""
        gauge = CostGauge(DAILY)
        gauge.replace({("AmazonEC2", "us-east-1"): 1.5})

        family = gauge.to_metric_family()

        assert family.name == "aws_daily_cost_usd"
        assert family.type == "gauge"
        assert [(s.labels, s.value) for s in family.samples] == [
            ({"service": "AmazonEC2", "region": "us-east-1"}, 1.5)
        ]


class TestRegistry:
    """Test cases for the exporter registry."""

    def test_get_sample_value(self):
        """Test that gauge samples are visible through the registry."""
        daily, monthly = CostGauge(DAILY), CostGauge(MONTHLY)
        registry = create_registry([daily, monthly])
        monthly.replace({("AmazonEC2", "us-east-1"): 42.0})

        assert (
            registry.get_sample_value(
                "aws_monthly_cost_usd", {"service": "AmazonEC2", "region": "us-east-1"}
            )
            == 42.0
        )
        assert exposed_samples(registry, "aws_daily_cost_usd") == {}

    def test_render_text_format(self):
        """Test the Prometheus text exposition."""
        gauge = CostGauge(DAILY)
        registry = create_registry([gauge])
        gauge.replace({("AmazonEC2", "us-east-1"): 12.3456})

        text = render_metrics(registry).decode("utf-8")

        assert "# HELP aws_daily_cost_usd Daily AWS cost in USD" in text
        assert "# TYPE aws_daily_cost_usd gauge" in text
        assert 'aws_daily_cost_usd{service="AmazonEC2",region="us-east-1"} 12.3456' in text

    def test_last_refresh_timestamp(self):
        """Test that refresh times are exported only for refreshed gauges."""
        daily, monthly = CostGauge(DAILY), CostGauge(MONTHLY)
        registry = create_registry([daily, monthly])
        daily.replace({})

        assert registry.get_sample_value(
            LAST_REFRESH_METRIC, {"gauge": "aws_daily_cost_usd"}
        ) == daily.last_updated
        assert registry.get_sample_value(
            LAST_REFRESH_METRIC, {"gauge": "aws_monthly_cost_usd"}
        ) is None

    def test_process_metrics_optional(self):
        """Test that process metrics are only registered on request."""
        plain = render_metrics(create_registry([CostGauge(DAILY)])).decode("utf-8")
        full = render_metrics(
            create_registry([CostGauge(DAILY)], include_process_metrics=True)
        ).decode("utf-8")

        assert "python_info" not in plain
        assert "python_info" in full

    def test_registries_are_independent(self):
        """Test that two exporters do not share gauge state."""
        first, second = CostGauge(DAILY), CostGauge(DAILY)
        first_registry, second_registry = create_registry([first]), create_registry([second])
        first.replace({("AmazonEC2", "us-east-1"): 1.0})

        assert exposed_samples(first_registry, "aws_daily_cost_usd") == {
            ("AmazonEC2", "us-east-1"): 1.0
        }
        assert exposed_samples(second_registry, "aws_daily_cost_usd") == {}

    def test_save_metrics_to_file(self, temp_dir):
        """Test saving rendered metrics."""
        target = temp_dir / "metrics.prom"

        assert save_metrics_to_file(b"aws_daily_cost_usd 1.0\n", str(target)) is True
        assert target.read_bytes() == b"aws_daily_cost_usd 1.0\n"
        assert save_metrics_to_file(b"", str(temp_dir / "missing" / "metrics.prom")) is False


class TestConcurrentReplace:
    """Scrapes must see either the old or the new snapshot, never a mix."""

    def test_readers_see_whole_snapshots(self):
        gauge = CostGauge(DAILY)
        registry = create_registry([gauge])
        old = {(f"Service{i}", "us-east-1"): 1.0 for i in range(50)}
        new = {(f"Service{i}", "eu-west-1"): 2.0 for i in range(25)}
        gauge.replace(old)

        stop = threading.Event()
        observed = []

        def scrape():
            while not stop.is_set():
                observed.append(exposed_samples(registry, "aws_daily_cost_usd"))

        reader = threading.Thread(target=scrape)
        reader.start()
        for _ in range(200):
            gauge.replace(new)
            gauge.replace(old)
        stop.set()
        reader.join()

        assert observed
        assert all(samples in (old, new) for samples in observed)
