"""
Prometheus metrics collection.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from queuectl.constants import (
    METRIC_JOB_DURATION,
    METRIC_JOB_OUTCOMES,
    METRIC_JOBS_CLAIMED,
    METRIC_JOBS_ENQUEUED,
    METRIC_JOBS_RECOVERED,
    METRIC_QUEUE_DEPTH,
    METRIC_STORE_ERRORS,
)

# Global metrics instance
_metrics: "MetricsCollector | None" = None


class MetricsCollector:
    """
    Prometheus metrics collector for the job queue.

    Collects metrics for:
    - Queue depth
    - Job submissions, claims and outcomes
    - Command execution duration
    - Store failures
    - Stale claims recovered by the reaper
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize the metrics collector.

        Args:
            registry: Optional custom registry. Uses default if not provided.
        """
        self._registry = registry or REGISTRY

        self.queue_depth = Gauge(
            METRIC_QUEUE_DEPTH,
            "Number of pending jobs",
            registry=self._registry,
        )

        self.jobs_enqueued = Counter(
            METRIC_JOBS_ENQUEUED,
            "Total number of jobs enqueued",
            registry=self._registry,
        )

        self.jobs_claimed = Counter(
            METRIC_JOBS_CLAIMED,
            "Total number of jobs claimed",
            ["dispatcher_id"],
            registry=self._registry,
        )

        # Outcome counter: completed, pending (retry scheduled) or dead
        self.job_outcomes = Counter(
            METRIC_JOB_OUTCOMES,
            "Total number of execution outcomes by resulting state",
            ["state"],
            registry=self._registry,
        )

        self.job_duration = Histogram(
            METRIC_JOB_DURATION,
            "Command execution duration in seconds",
            ["state"],
            buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 600.0),
            registry=self._registry,
        )

        self.store_errors = Counter(
            METRIC_STORE_ERRORS,
            "Total number of failed store operations",
            ["operation"],
            registry=self._registry,
        )

        self.jobs_recovered = Counter(
            METRIC_JOBS_RECOVERED,
            "Total number of stale processing jobs returned to pending",
            registry=self._registry,
        )

    def record_job_enqueued(self) -> None:
        """Record a job submission."""
        self.jobs_enqueued.inc()

    def record_job_claimed(self, dispatcher_id: str) -> None:
        """Record a successful claim."""
        self.jobs_claimed.labels(dispatcher_id=dispatcher_id).inc()

    def record_job_outcome(self, state: str, duration_seconds: float) -> None:
        """Record the outcome of one execution attempt."""
        self.job_outcomes.labels(state=state).inc()
        self.job_duration.labels(state=state).observe(duration_seconds)

    def record_store_error(self, operation: str) -> None:
        """Record a store failure."""
        self.store_errors.labels(operation=operation).inc()

    def record_jobs_recovered(self, count: int) -> None:
        """Record stale jobs returned to the queue."""
        self.jobs_recovered.inc(count)

    def update_queue_depth(self, depth: int) -> None:
        """Update the pending job gauge."""
        self.queue_depth.set(depth)

    def get_metrics(self) -> bytes:
        """Get all metrics in Prometheus format."""
        return generate_latest(self._registry)

    def get_content_type(self) -> str:
        """Get the content type for metrics response."""
        return CONTENT_TYPE_LATEST


def setup_metrics() -> MetricsCollector:
    """
    Set up and return the metrics collector.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics


def get_metrics() -> MetricsCollector:
    """
    Get the metrics collector instance, creating it on first use.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    if _metrics is None:
        return setup_metrics()
    return _metrics
