"""
Stale claim reaper.

A dispatcher that dies (or loses the store) mid-job leaves its claim in
processing. The reaper runs periodically and returns such jobs to pending,
which keeps delivery at-least-once.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from queuectl.errors import StoreUnavailable
from queuectl.observability.metrics import MetricsCollector, get_metrics
from queuectl.types.interfaces import JobStore
from queuectl.utils import utcnow

logger = logging.getLogger(__name__)


class Reaper:
    """
    Returns jobs stuck in processing to the queue.

    Runs periodically to:
    1. Find processing jobs not touched for `stale_after` seconds
    2. Return them to pending, eligible immediately
    3. Record metrics for monitoring
    """

    def __init__(
        self,
        store: JobStore,
        stale_after: float,
        interval: float = 30.0,
        clock: Callable[[], datetime] = utcnow,
        metrics: MetricsCollector | None = None,
    ):
        """
        Initialize the reaper.

        Args:
            store: Job store to recover from.
            stale_after: Seconds after which a claim is considered abandoned.
            interval: Seconds between reaper runs.
            clock: Source of "now".
            metrics: Prometheus collector.
        """
        self.store = store
        self.stale_after = stale_after
        self.interval = interval
        self._clock = clock
        self._metrics = metrics or get_metrics()
        self._running = False
        self._wakeup = asyncio.Event()

    async def start(self) -> None:
        """Start the reaper loop."""
        logger.info(f"Reaper starting with interval {self.interval}s")
        self._running = True
        self._wakeup.clear()

        while self._running:
            try:
                await self.run_once()
            except StoreUnavailable as e:
                logger.warning("Store unavailable, reaper skipping run", extra={"error": str(e)})
            except Exception as e:
                logger.exception(f"Error in reaper loop: {e}")

            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass

        logger.info("Reaper stopped")

    def stop(self) -> None:
        """Stop the reaper."""
        logger.info("Reaper stopping")
        self._running = False
        self._wakeup.set()

    async def run_once(self) -> int:
        """
        Run the reaper once (for testing or cron-style execution).

        Returns:
            Number of jobs recovered.
        """
        cutoff = self._clock() - timedelta(seconds=self.stale_after)
        count = await self.store.recover_stale(cutoff)

        if count > 0:
            self._metrics.record_jobs_recovered(count)
            logger.info(f"Recovered {count} stale jobs")

        return count
