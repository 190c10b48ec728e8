"""
Worker process for executing jobs.

Runs a pool of dispatchers plus the stale claim reaper against one store
until SIGINT or SIGTERM. Each dispatcher finishes its job in flight before
the process exits.
"""

import asyncio
import logging
import os
import signal

from queuectl.config import Settings, get_settings
from queuectl.db import Database, SqlJobStore
from queuectl.observability.logging import setup_logging
from queuectl.observability.metrics import setup_metrics
from queuectl.observability.tracing import instrument_sqlalchemy, setup_tracing
from queuectl.service import JobQueue
from queuectl.worker.dispatcher import DispatcherHandle
from queuectl.worker.reaper import Reaper

logger = logging.getLogger(__name__)


class WorkerPool:
    """
    A set of dispatchers and one reaper sharing a JobQueue.

    Dispatchers keep no shared in-memory state; the store coordinates them.
    """

    def __init__(self, queue: JobQueue, count: int = 1, reap: bool = True):
        """
        Initialize the pool.

        Args:
            queue: Queue service the dispatchers are started from.
            count: Number of concurrent dispatchers.
            reap: Also run the stale claim reaper.
        """
        if count < 1:
            raise ValueError(f"count must be >= 1, got {count}")
        self.queue = queue
        self.count = count
        self.reap = reap
        self._handles: list[DispatcherHandle] = []
        self._reaper: Reaper | None = None
        self._reaper_task: asyncio.Task | None = None

    @property
    def handles(self) -> list[DispatcherHandle]:
        return list(self._handles)

    async def start(self) -> None:
        """Start every dispatcher and the reaper."""
        for i in range(self.count):
            handle = await self.queue.start_dispatcher(
                dispatcher_id=f"{os.uname().nodename}-{os.getpid()}-{i + 1}"
            )
            self._handles.append(handle)
            logger.info("Started dispatcher", extra={"dispatcher_id": handle.dispatcher_id})

        if self.reap:
            self._reaper = self.queue.build_reaper()
            self._reaper_task = asyncio.create_task(self._reaper.start(), name="reaper")

    async def stop(self) -> None:
        """Stop every dispatcher gracefully, then the reaper."""
        logger.info(f"Stopping {len(self._handles)} dispatcher(s)")
        await asyncio.gather(*(handle.stop() for handle in self._handles))

        if self._reaper is not None and self._reaper_task is not None:
            self._reaper.stop()
            await self._reaper_task

        logger.info("All dispatchers stopped")


async def run_async(count: int | None = None, settings: Settings | None = None) -> None:
    """
    Run a worker pool until a shutdown signal arrives.

    Args:
        count: Number of dispatchers; settings.worker_count if None.
        settings: Settings to use; environment settings if None.
    """
    settings = settings or get_settings()
    setup_logging(settings)
    setup_metrics()

    db = Database.from_settings(settings)
    if settings.otel_enabled:
        setup_tracing(settings)
        instrument_sqlalchemy(db.engine)
    await db.create_schema()

    store = SqlJobStore(db)
    queue = JobQueue(store, settings, config_store=store)
    pool = WorkerPool(queue, count=count or settings.worker_count)

    shutdown = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, shutdown.set)

    try:
        await pool.start()
        await shutdown.wait()
        logger.info("Shutdown signal received")
        await pool.stop()
    finally:
        await db.close()


def run() -> None:
    """Run the worker."""
    asyncio.run(run_async())


if __name__ == "__main__":
    run()
