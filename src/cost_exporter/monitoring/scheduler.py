"""
Background scheduling of refresh cycles.

The first cycle runs during startup, before the exporter reports ready.
Later cycles run from an asyncio task every ``interval_seconds``. Cycles
execute in a worker thread because the billing SDK blocks, and scrapes must
keep being served while a fetch is in flight.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime

from .refresh import CycleResult, RefreshOrchestrator

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 6 * 60 * 60


def next_tick(scheduled: float, now: float, interval: float) -> float:
    """
    Return the next tick of a fixed schedule.

    Ticks stay ``interval`` apart regardless of how long a cycle takes. Ticks
    that passed while a slow cycle was running are dropped, not replayed.
    """
    scheduled += interval
    if scheduled < now:
        scheduled += ((now - scheduled) // interval + 1) * interval
    return scheduled


class RefreshScheduler:
    """Drives a RefreshOrchestrator on a fixed interval until stopped."""

    def __init__(
        self,
        orchestrator: RefreshOrchestrator,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        clock: Callable[[], datetime] = datetime.now,
    ):
        if interval_seconds <= 0:
            raise ValueError("Refresh interval must be positive")

        self.orchestrator = orchestrator
        self.interval_seconds = interval_seconds
        self.clock = clock
        self.last_result: CycleResult | None = None
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self, startup: bool = False) -> CycleResult | None:
        """
        Run one refresh cycle without raising.

        Failures are logged: as warnings during startup so the exporter
        still comes up with empty or stale gauges, as errors afterwards.
        """
        try:
            result = await asyncio.to_thread(self.orchestrator.run_cycle, self.clock())
        except Exception:
            logger.exception("Unexpected error during metrics refresh")
            return None

        self.last_result = result
        if not result.succeeded:
            if startup:
                logger.warning(f"Failed to update metrics on startup: {result.first_error}")
            else:
                logger.error(f"Error updating metrics: {result.first_error}")
        return result

    async def start(self) -> None:
        """Run the startup cycle, then launch the periodic loop."""
        if self.running:
            return

        self._stop_event.clear()
        logger.info("Updating metrics on startup...")
        await self.run_once(startup=True)
        self._task = asyncio.create_task(self._run_loop(), name="cost-refresh")

    async def _run_loop(self) -> None:
        logger.info(f"Refreshing cost metrics every {self.interval_seconds:g} seconds")
        loop = asyncio.get_running_loop()
        scheduled = loop.time()
        while not self._stop_event.is_set():
            scheduled = next_tick(scheduled, loop.time(), self.interval_seconds)
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=max(0.0, scheduled - loop.time())
                )
            except asyncio.TimeoutError:
                await self.run_once()
        logger.info("Metrics refresh loop stopped")

    def stop(self) -> None:
        """Signal the loop to exit; an in-flight cycle is allowed to finish."""
        self._stop_event.set()

    async def shutdown(self) -> None:
        """Stop the loop and wait for it to exit."""
        self.stop()
        if self._task is not None:
            await self._task
            self._task = None
