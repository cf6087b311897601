"""
Assembly of the cost exporter from configuration.

Wires the configured windows to their gauges, registers the gauges in a
dedicated registry and builds the refresh orchestrator and scheduler that
own them.
"""

import logging
from datetime import date, datetime

from prometheus_client import CollectorRegistry

from ..config.settings import ExporterConfig
from ..export.prometheus import CostGauge, create_registry, render_metrics
from ..providers.base import CostDataFetcher, ProviderFactory
from .refresh import CycleResult, RefreshJob, RefreshOrchestrator
from .scheduler import RefreshScheduler
from .windows import WindowKind

logger = logging.getLogger(__name__)


class CostExporter:
    """Gauges, registry and refresh machinery for one billing account."""

    def __init__(
        self,
        fetcher: CostDataFetcher,
        gauges: dict[WindowKind, CostGauge],
        metric: str = "UnblendedCost",
        fail_fast: bool = True,
        interval_seconds: float = 21600,
        include_process_metrics: bool = False,
    ):
        self.fetcher = fetcher
        self.gauges = gauges
        self.registry: CollectorRegistry = create_registry(
            gauges.values(), include_process_metrics=include_process_metrics
        )
        self.orchestrator = RefreshOrchestrator(
            fetcher,
            [RefreshJob(kind, gauge) for kind, gauge in gauges.items()],
            metric=metric,
            fail_fast=fail_fast,
        )
        self.interval_seconds = interval_seconds
        self.scheduler = RefreshScheduler(self.orchestrator, interval_seconds)

    @classmethod
    def from_config(
        cls, config: ExporterConfig, fetcher: CostDataFetcher | None = None
    ) -> "CostExporter":
        """
        Build an exporter from configuration.

        Args:
            config: Exporter configuration
            fetcher: Billing source to use instead of the configured provider
        """
        if fetcher is None:
            provider_config = {**config.get_provider_config(), "metric": config.cost_metric}
            fetcher = ProviderFactory.create_provider(config.provider, provider_config)

        gauges = {
            kind: CostGauge(definition) for kind, definition in config.gauge_definitions.items()
        }
        logger.info(
            "Exporting gauges: "
            + ", ".join(f"{kind.value}={gauge.name}" for kind, gauge in gauges.items())
        )

        return cls(
            fetcher,
            gauges,
            metric=config.cost_metric,
            fail_fast=config.fail_fast,
            interval_seconds=config.refresh_interval,
            include_process_metrics=config.include_process_metrics,
        )

    def refresh(self, now: datetime | date | None = None) -> CycleResult:
        """Run a single refresh cycle synchronously."""
        return self.orchestrator.run_cycle(now)

    def render(self) -> bytes:
        return render_metrics(self.registry)
