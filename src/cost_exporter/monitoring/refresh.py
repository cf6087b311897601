"""
Refresh cycles for the billing window gauges.

A cycle walks the configured windows in a fixed order. For each window it
computes the date range, fetches grouped costs, aggregates them and swaps
the window's gauge snapshot. A gauge is only touched after a successful
fetch, so a failing window keeps serving its previous values.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from ..export.prometheus import CostGauge
from ..providers.base import CostDataFetcher, FetchError, TimeGranularity, TimeRange
from .aggregator import UNBLENDED_COST, aggregate_cost_groups
from .windows import WindowKind, compute_range, granularity_for

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RefreshJob:
    """Refresh of one window into its gauge."""

    kind: WindowKind
    gauge: CostGauge

    @property
    def granularity(self) -> TimeGranularity:
        return granularity_for(self.kind)

    @property
    def label(self) -> str:
        return self.kind.value.replace("_", " ")

    def time_range(self, now: datetime | date) -> TimeRange:
        return compute_range(self.kind, now)


@dataclass
class CycleResult:
    """Outcome of one refresh cycle."""

    started_at: datetime | date
    updated: dict[WindowKind, int] = field(default_factory=dict)
    errors: dict[WindowKind, FetchError] = field(default_factory=dict)
    skipped: list[WindowKind] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.errors and not self.skipped

    @property
    def first_error(self) -> FetchError | None:
        return next(iter(self.errors.values()), None)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "started_at": self.started_at.isoformat(),
            "updated": {kind.value: count for kind, count in self.updated.items()},
            "errors": {kind.value: str(error) for kind, error in self.errors.items()},
            "skipped": [kind.value for kind in self.skipped],
            "succeeded": self.succeeded,
        }


class RefreshOrchestrator:
    """Runs the window refresh jobs against a cost data fetcher."""

    def __init__(
        self,
        fetcher: CostDataFetcher,
        jobs: Iterable[RefreshJob],
        metric: str = UNBLENDED_COST,
        fail_fast: bool = True,
    ):
        self.fetcher = fetcher
        self.jobs = list(jobs)
        self.metric = metric
        self.fail_fast = fail_fast

    def run_job(self, job: RefreshJob, now: datetime | date) -> int:
        """
        Refresh a single window.

        Returns:
            Number of label combinations installed in the gauge

        Raises:
            FetchError: If the billing source query fails; the gauge is untouched
        """
        time_range = job.time_range(now)
        logger.info(f"Fetching {job.label} cost data from {time_range.start} to {time_range.end}")

        try:
            groups = self.fetcher.fetch(time_range, job.granularity)
        except FetchError as e:
            logger.error(f"Failed to fetch {job.label} cost data: {e}")
            raise

        logger.info(f"Received {len(groups)} {job.label} cost groups")

        snapshot = aggregate_cost_groups(groups, self.metric)
        job.gauge.replace(snapshot)

        logger.info(
            f"Updated {len(snapshot)} {job.label} cost metrics for period {time_range}"
        )
        return len(snapshot)

    def run_cycle(self, now: datetime | date | None = None) -> CycleResult:
        """
        Refresh every window once, in order.

        With ``fail_fast`` the first fetch failure ends the cycle and the
        remaining windows wait for the next one. Otherwise each failure only
        affects its own window.
        """
        now = now or datetime.now()
        result = CycleResult(started_at=now)

        for index, job in enumerate(self.jobs):
            try:
                result.updated[job.kind] = self.run_job(job, now)
            except FetchError as e:
                result.errors[job.kind] = e
                if self.fail_fast:
                    result.skipped = [remaining.kind for remaining in self.jobs[index + 1 :]]
                    if result.skipped:
                        skipped = ", ".join(kind.value for kind in result.skipped)
                        logger.warning(f"Skipping remaining windows until next cycle: {skipped}")
                    break

        return result
