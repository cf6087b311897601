"""
Prometheus exposition of cost gauges.

Each billing window owns one CostGauge. A refresh installs a whole new
snapshot in a single swap, so a scrape running at the same moment renders
either the previous or the new label set and never a mix of the two.
"""

import logging
import threading
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    GCCollector,
    PlatformCollector,
    ProcessCollector,
    generate_latest,
)
from prometheus_client.core import GaugeMetricFamily
from prometheus_client.registry import Collector

logger = logging.getLogger(__name__)

COST_LABELS = ("service", "region")
LAST_REFRESH_METRIC = "aws_cost_exporter_last_refresh_timestamp_seconds"


@dataclass(frozen=True)
class GaugeDefinition:
    """Name and help text of an exported cost gauge."""

    name: str
    documentation: str


class CostGauge:
    """A labelled gauge whose samples are replaced wholesale."""

    def __init__(self, definition: GaugeDefinition):
        self.definition = definition
        self._lock = threading.Lock()
        self._samples: Mapping[tuple[str, str], float] = MappingProxyType({})
        self._last_updated: float | None = None

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def last_updated(self) -> float | None:
        """Unix time of the last replace, or None if never refreshed."""
        with self._lock:
            return self._last_updated

    def replace(self, snapshot: Mapping[tuple[str, str], float]) -> None:
        """
        Install exactly the samples in ``snapshot``.

        Label combinations missing from ``snapshot`` stop being exported.
        An empty snapshot clears the gauge.
        """
        samples = MappingProxyType({key: float(value) for key, value in snapshot.items()})
        with self._lock:
            self._samples = samples
            self._last_updated = time.time()

    def samples(self) -> Mapping[tuple[str, str], float]:
        """Return the current read-only snapshot."""
        with self._lock:
            return self._samples

    def __len__(self) -> int:
        return len(self.samples())

    def to_metric_family(self) -> GaugeMetricFamily:
        family = GaugeMetricFamily(
            self.definition.name, self.definition.documentation, labels=list(COST_LABELS)
        )
        for (service, region), value in sorted(self.samples().items()):
            family.add_metric([service, region], value)
        return family


class CostMetricsCollector(Collector):
    """Custom collector exposing a fixed set of cost gauges."""

    def __init__(self, gauges: Iterable[CostGauge], include_refresh_timestamps: bool = True):
        self.gauges = list(gauges)
        self.include_refresh_timestamps = include_refresh_timestamps

    def collect(self):
        for gauge in self.gauges:
            yield gauge.to_metric_family()

        if self.include_refresh_timestamps:
            family = GaugeMetricFamily(
                LAST_REFRESH_METRIC,
                "Unix time of the last successful refresh of each cost gauge",
                labels=["gauge"],
            )
            for gauge in self.gauges:
                last_updated = gauge.last_updated
                if last_updated is not None:
                    family.add_metric([gauge.name], last_updated)
            yield family

    def describe(self):
        # Skip collect() at registration time; the gauge names are known up front
        for gauge in self.gauges:
            yield GaugeMetricFamily(
                gauge.definition.name, gauge.definition.documentation, labels=list(COST_LABELS)
            )
        if self.include_refresh_timestamps:
            yield GaugeMetricFamily(LAST_REFRESH_METRIC, "", labels=["gauge"])


def create_registry(
    gauges: Iterable[CostGauge], include_process_metrics: bool = False
) -> CollectorRegistry:
    """
    Build a dedicated registry for the exporter.

    Args:
        gauges: Cost gauges to expose
        include_process_metrics: Also expose process, platform and GC metrics

    Returns:
        CollectorRegistry ready to be rendered
    """
    registry = CollectorRegistry()
    registry.register(CostMetricsCollector(gauges))

    if include_process_metrics:
        ProcessCollector(registry=registry)
        PlatformCollector(registry=registry)
        GCCollector(registry=registry)

    return registry


def render_metrics(registry: CollectorRegistry) -> bytes:
    """Render the registry in the Prometheus text format."""
    return generate_latest(registry)


def save_metrics_to_file(metrics_text: bytes, filename: str) -> bool:
    """
    Save rendered metrics to a file.

    Returns:
        True if save was successful
    """
    try:
        with open(filename, "wb") as f:
            f.write(metrics_text)

        logger.info(f"Metrics saved to file: {filename}")
        return True

    except OSError as e:
        logger.error(f"Failed to save metrics to file: {e}")
        return False


__all__ = [
    "CONTENT_TYPE_LATEST",
    "CostGauge",
    "CostMetricsCollector",
    "GaugeDefinition",
    "create_registry",
    "render_metrics",
    "save_metrics_to_file",
]
