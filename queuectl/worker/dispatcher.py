"""
Dispatcher: the polling loop that drives jobs through their lifecycle.

One tick claims the oldest eligible job, runs its command and records the
outcome. Any number of dispatchers may run against the same store; the
store's atomic claim is the only coordination between them.
"""

import asyncio
import logging
import os
import time
from collections.abc import Callable, Iterable
from datetime import datetime
from uuid import uuid4

from queuectl.backoff import BackoffPolicy
from queuectl.constants import (
    DEFAULT_HEARTBEAT_INTERVAL_SECONDS,
    DEFAULT_POLL_INTERVAL_SECONDS,
    SPAN_CLAIM_JOB,
    SPAN_EXECUTE_JOB,
    SPAN_RECORD_OUTCOME,
    JobState,
)
from queuectl.db.models import Job
from queuectl.errors import ExecutionError, StoreUnavailable
from queuectl.lifecycle import Outcome
from queuectl.observability.metrics import MetricsCollector, get_metrics
from queuectl.observability.logging import bound_dispatcher
from queuectl.observability.tracing import get_tracer, job_span
from queuectl.types.events import JobEvent
from queuectl.types.interfaces import CommandExecutor, JobStore
from queuectl.utils import utcnow

logger = logging.getLogger(__name__)

EventListener = Callable[[JobEvent], None]


def default_dispatcher_id() -> str:
    return f"{os.uname().nodename}-{os.getpid()}-{uuid4().hex[:6]}"


class Dispatcher:
    """
    Job dispatcher that polls for and executes jobs.

    Features:
    - Atomic claim through the store, FIFO by creation time
    - Exponential backoff retries and dead-lettering
    - A structured event per outcome
    - Claim heartbeat while a command runs
    - Graceful stop: the job in flight finishes first
    """

    def __init__(
        self,
        store: JobStore,
        executor: CommandExecutor,
        backoff: BackoffPolicy | None = None,
        *,
        dispatcher_id: str | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        job_timeout: float | None = None,
        heartbeat_interval: float | None = DEFAULT_HEARTBEAT_INTERVAL_SECONDS,
        clock: Callable[[], datetime] = utcnow,
        metrics: MetricsCollector | None = None,
        listeners: Iterable[EventListener] = (),
    ):
        """
        Initialize the dispatcher.

        Args:
            store: Job store to claim from and record into.
            executor: Runs the claimed commands.
            backoff: Retry delay policy.
            dispatcher_id: Identifier recorded on claimed jobs.
            poll_interval: Seconds between polls when the queue is empty.
            job_timeout: Per-command timeout in seconds.
            heartbeat_interval: Seconds between claim refreshes while a
                command runs; None disables the heartbeat.
            clock: Source of "now" for eligibility and backoff.
            metrics: Prometheus collector.
            listeners: Callables receiving every JobEvent.
        """
        if poll_interval <= 0:
            raise ValueError(f"poll_interval must be > 0, got {poll_interval}")
        if heartbeat_interval is not None and heartbeat_interval <= 0:
            raise ValueError(f"heartbeat_interval must be > 0, got {heartbeat_interval}")

        self.store = store
        self.executor = executor
        self.backoff = backoff or BackoffPolicy()
        self.dispatcher_id = dispatcher_id or default_dispatcher_id()
        self.poll_interval = poll_interval
        self.job_timeout = job_timeout
        self.heartbeat_interval = heartbeat_interval
        self._clock = clock
        self._metrics = metrics or get_metrics()
        self._listeners = list(listeners)

        self._running = False
        self._wakeup = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._running

    async def run(self) -> None:
        """Poll until stop() is called. Per-job errors never end the loop."""
        self._running = True
        self._wakeup.clear()

        with bound_dispatcher(self.dispatcher_id):
            logger.info("Dispatcher starting", extra={"poll_interval": self.poll_interval})

            while self._running:
                try:
                    event = await self.tick()
                except Exception as e:
                    logger.exception(f"Error in dispatcher loop: {e}")
                    event = None

                # Only sleep when there was nothing to do
                if event is None and self._running:
                    await self._sleep(self.poll_interval)

            logger.info("Dispatcher stopped")

    def stop(self) -> None:
        """Ask the loop to exit after the job in flight, waking it if idle."""
        logger.info("Dispatcher stopping", extra={"dispatcher_id": self.dispatcher_id})
        self._running = False
        self._wakeup.set()

    async def tick(self) -> JobEvent | None:
        """
        Run one polling cycle.

        Returns:
            The JobEvent of the processed job, or None when no job was
            claimed or its outcome could not be recorded.
        """
        job = await self._claim()
        if job is None:
            return None

        self._metrics.record_job_claimed(self.dispatcher_id)
        logger.info(
            "Executing job",
            extra={
                "job_id": job.id,
                "dispatcher_id": self.dispatcher_id,
                "attempt": job.attempts + 1,
                "command": job.command,
            },
        )

        heartbeat = self._start_heartbeat(job)
        start = time.monotonic()
        try:
            outcome = await self._execute(job)
        finally:
            if heartbeat is not None:
                heartbeat.cancel()
                try:
                    await heartbeat
                except asyncio.CancelledError:
                    pass
        duration = time.monotonic() - start

        recorded = await self._record(job, outcome)
        if recorded is None:
            return None

        self._metrics.record_job_outcome(outcome.state.value, duration)
        event = self._event_for(job, outcome)
        self._emit(event)
        return event

    async def _claim(self) -> Job | None:
        with get_tracer().start_as_current_span(SPAN_CLAIM_JOB):
            try:
                return await self.store.claim_next(self._clock(), claimed_by=self.dispatcher_id)
            except StoreUnavailable as e:
                self._metrics.record_store_error("claim_next")
                logger.warning(
                    "Store unavailable, skipping tick",
                    extra={"dispatcher_id": self.dispatcher_id, "error": str(e)},
                )
                return None

    async def _execute(self, job: Job) -> Outcome:
        with job_span(SPAN_EXECUTE_JOB, job.id, attempt=job.attempts + 1, command=job.command):
            try:
                await self.executor.run(job.command, timeout=self.job_timeout)
            except ExecutionError as e:
                return Outcome.failure(job, e.reason, self.backoff, self._clock())
            except Exception as e:
                logger.exception(
                    "Exception executing job",
                    extra={"job_id": job.id, "error": str(e)},
                )
                return Outcome.failure(
                    job, f"Dispatcher exception: {e}", self.backoff, self._clock()
                )

            return Outcome.success(job)

    async def _record(self, job: Job, outcome: Outcome) -> Job | None:
        with job_span(SPAN_RECORD_OUTCOME, job.id, new_state=outcome.state.value):
            try:
                return await self.store.record_outcome(
                    job.id, outcome, claimed_by=self.dispatcher_id
                )
            except StoreUnavailable as e:
                # The job stays processing until the reaper returns it
                self._metrics.record_store_error("record_outcome")
                logger.error(
                    "Store unavailable, outcome lost",
                    extra={
                        "job_id": job.id,
                        "new_state": outcome.state.value,
                        "error": str(e),
                    },
                )
                return None

    def _start_heartbeat(self, job: Job) -> asyncio.Task | None:
        if self.heartbeat_interval is None:
            return None
        return asyncio.create_task(
            self._heartbeat_loop(job.id), name=f"heartbeat-{job.id}"
        )

    async def _heartbeat_loop(self, job_id: str) -> None:
        """
        Periodically refresh the claim on the running job.

        A refreshed claim never looks stale to the reaper, so a long command
        keeps its job for as long as it runs.
        """
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            try:
                held = await self.store.heartbeat(job_id, self.dispatcher_id)
            except StoreUnavailable as e:
                self._metrics.record_store_error("heartbeat")
                logger.warning(
                    "Store unavailable, heartbeat skipped",
                    extra={"job_id": job_id, "error": str(e)},
                )
                continue
            except Exception as e:
                logger.exception(f"Error in heartbeat loop: {e}")
                continue

            if not held:
                logger.warning(
                    "Claim lost while executing",
                    extra={"job_id": job_id, "dispatcher_id": self.dispatcher_id},
                )
                return
            logger.debug("Claim refreshed", extra={"job_id": job_id})

    def _event_for(self, job: Job, outcome: Outcome) -> JobEvent:
        if outcome.state == JobState.COMPLETED:
            return JobEvent.job_completed(job.id, outcome.attempts)
        if outcome.state == JobState.DEAD:
            return JobEvent.job_dead(job.id, outcome.attempts, outcome.last_error or "")
        return JobEvent.job_retry_scheduled(
            job.id,
            outcome.attempts,
            outcome.last_error or "",
            outcome.next_run_at,
        )

    def _emit(self, event: JobEvent) -> None:
        level = logging.WARNING if event.new_state == JobState.DEAD else logging.INFO
        logger.log(level, "Job transition", extra=event.log_fields())

        for listener in self._listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Job event listener failed", extra={"job_id": event.job_id})

    async def _sleep(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._wakeup.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass


class DispatcherHandle:
    """A running dispatcher and the task executing its loop."""

    def __init__(self, dispatcher: Dispatcher, task: asyncio.Task):
        self.dispatcher = dispatcher
        self._task = task

    @classmethod
    def start(cls, dispatcher: Dispatcher) -> "DispatcherHandle":
        """Schedule the dispatcher loop on the running event loop."""
        task = asyncio.create_task(
            dispatcher.run(), name=f"dispatcher-{dispatcher.dispatcher_id}"
        )
        return cls(dispatcher, task)

    @property
    def dispatcher_id(self) -> str:
        return self.dispatcher.dispatcher_id

    @property
    def running(self) -> bool:
        return not self._task.done()

    async def stop(self, timeout: float | None = None) -> None:
        """
        Stop the loop and wait for it to exit.

        Args:
            timeout: Seconds to wait for the job in flight before cancelling.
        """
        self.dispatcher.stop()
        try:
            await asyncio.wait_for(asyncio.shield(self._task), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Dispatcher did not stop in time, cancelling",
                extra={"dispatcher_id": self.dispatcher_id},
            )
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

    async def wait(self) -> None:
        await self._task
