"""
Queue service: the operations exposed to the CLI and the HTTP API.
"""

import logging

from queuectl.backoff import BackoffPolicy
from queuectl.config import RuntimeConfig, Settings
from queuectl.constants import CONFIG_KEYS, JobState
from queuectl.dlq import DeadLetterManager
from queuectl.errors import InvalidInput, JobNotFound
from queuectl.observability.metrics import MetricsCollector, get_metrics
from queuectl.types.events import JobEvent
from queuectl.types.interfaces import CommandExecutor, ConfigStore, JobStore
from queuectl.types.job import JobSummary
from queuectl.worker.dispatcher import Dispatcher, DispatcherHandle, EventListener
from queuectl.worker.executor import ShellExecutor
from queuectl.worker.reaper import Reaper

logger = logging.getLogger(__name__)


class JobQueue:
    """
    Facade over the job store, dispatchers and the DLQ.

    Holds no job state of its own; every instance built on the same store
    sees the same queue.
    """

    def __init__(
        self,
        store: JobStore,
        settings: Settings,
        *,
        config_store: ConfigStore | None = None,
        executor: CommandExecutor | None = None,
        metrics: MetricsCollector | None = None,
    ):
        """
        Initialize the queue service.

        Args:
            store: Job store.
            settings: Environment-sourced settings.
            config_store: Persisted runtime overrides, if any.
            executor: Command executor for dispatchers started here.
            metrics: Prometheus collector.
        """
        self.store = store
        self.settings = settings
        self.config_store = config_store
        self.executor = executor or ShellExecutor()
        self.dlq = DeadLetterManager(store)
        self.metrics = metrics or get_metrics()

    async def runtime_config(self) -> RuntimeConfig:
        """Effective tunables: settings overlaid with persisted overrides."""
        overrides = await self.config_store.get_config() if self.config_store else {}
        return RuntimeConfig.resolve(self.settings, overrides)

    async def enqueue(
        self,
        command: str,
        max_retries: int | None = None,
        job_id: str | None = None,
    ) -> str:
        """
        Submit a new job.

        Args:
            command: Shell command to execute.
            max_retries: Retry budget; the configured default if None.
            job_id: Optional caller-chosen id.

        Returns:
            The job id.

        Raises:
            InvalidInput: Empty or non-string command or id, negative
                max_retries, or a duplicate id.
            StoreUnavailable: The store could not accept the job.
        """
        if not isinstance(command, str) or not command.strip():
            raise InvalidInput("Command cannot be empty and must be a string.")
        if job_id is not None and (not isinstance(job_id, str) or not job_id.strip()):
            raise InvalidInput("Job id cannot be empty and must be a string.")
        if max_retries is None:
            max_retries = (await self.runtime_config()).default_max_retries
        if isinstance(max_retries, bool) or not isinstance(max_retries, int) or max_retries < 0:
            raise InvalidInput("max_retries must be a non-negative integer.")

        job = await self.store.create(
            command=command,
            max_retries=max_retries,
            job_id=job_id.strip() if job_id else None,
        )

        self.metrics.record_job_enqueued()
        logger.info("Job enqueued", extra=JobEvent.job_enqueued(job.id).log_fields())
        return job.id

    async def start_dispatcher(
        self,
        poll_interval: float | None = None,
        dispatcher_id: str | None = None,
        listeners: tuple[EventListener, ...] = (),
    ) -> DispatcherHandle:
        """
        Begin a polling loop on the running event loop.

        Args:
            poll_interval: Seconds between idle polls; configured value if None.
            dispatcher_id: Identifier recorded on claimed jobs.
            listeners: Callables receiving every JobEvent.

        Returns:
            A handle whose stop() ends the loop.
        """
        config = await self.runtime_config()
        dispatcher = Dispatcher(
            self.store,
            self.executor,
            BackoffPolicy(base=config.backoff_base, max_delay=config.backoff_max_seconds),
            dispatcher_id=dispatcher_id,
            poll_interval=poll_interval or config.poll_interval_seconds,
            job_timeout=config.job_timeout_seconds,
            heartbeat_interval=self.settings.heartbeat_interval_seconds,
            metrics=self.metrics,
            listeners=listeners,
        )
        return DispatcherHandle.start(dispatcher)

    def build_reaper(self) -> Reaper:
        return Reaper(
            self.store,
            stale_after=self.settings.reaper_stale_after_seconds,
            interval=self.settings.reaper_interval_seconds,
            metrics=self.metrics,
        )

    async def recover_stale(self) -> int:
        """Return abandoned processing jobs to pending once."""
        return await self.build_reaper().run_once()

    async def get_job(self, job_id: str) -> JobSummary:
        job = await self.store.find_by_id(job_id)
        if job is None:
            raise JobNotFound(job_id)
        return JobSummary.model_validate(job)

    async def list_jobs(
        self,
        state: JobState | str | None = None,
        limit: int | None = None,
    ) -> list[JobSummary]:
        """
        Jobs newest first, optionally filtered by state.

        Raises:
            InvalidInput: Unknown state name.
        """
        if state is not None:
            state = _parse_state(state)
        jobs = await self.store.list_by_state(state, limit=limit)
        return [JobSummary.model_validate(job) for job in jobs]

    async def status_summary(self) -> dict[str, int]:
        """Count of jobs per state; every state is present."""
        counts = await self.store.count_by_state()
        self.metrics.update_queue_depth(counts.get(JobState.PENDING.value, 0))
        return counts

    async def dlq_list(self, limit: int | None = None) -> list[JobSummary]:
        jobs = await self.dlq.list(limit=limit)
        return [JobSummary.model_validate(job) for job in jobs]

    async def dlq_retry(self, job_id: str) -> JobSummary:
        """
        Re-queue a dead job.

        Raises:
            NotInDlq: The job is missing or not dead.
        """
        job = await self.dlq.retry(job_id)
        logger.info("Job transition", extra=JobEvent.job_requeued(job.id).log_fields())
        return JobSummary.model_validate(job)

    async def get_config(self) -> dict[str, object]:
        """Effective runtime configuration."""
        return (await self.runtime_config()).model_dump()

    async def set_config(self, key: str, value: str) -> dict[str, object]:
        """
        Persist a runtime override after validating it.

        Raises:
            InvalidInput: Unknown key or invalid value.
        """
        if self.config_store is None:
            raise InvalidInput("This queue has no config store")
        if key not in CONFIG_KEYS:
            raise InvalidInput(
                f"Unknown config key {key!r}. Allowed keys: {', '.join(CONFIG_KEYS)}"
            )

        overrides = await self.config_store.get_config()
        overrides[key] = str(value)
        config = RuntimeConfig.resolve(self.settings, overrides)

        await self.config_store.set_config(key, str(value))
        return config.model_dump()

    async def unset_config(self, key: str) -> bool:
        """Drop a runtime override; the environment value applies again."""
        if self.config_store is None:
            raise InvalidInput("This queue has no config store")
        return await self.config_store.unset_config(key)


def _parse_state(state: JobState | str) -> JobState:
    try:
        return JobState(state)
    except ValueError as e:
        allowed = ", ".join(s.value for s in JobState)
        raise InvalidInput(f"Unknown state {state!r}. Allowed states: {allowed}") from e
