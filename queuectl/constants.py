"""
Application constants.
Centralized location for all constant values used across the application.
"""

from enum import StrEnum


class JobState(StrEnum):
    """
    Job lifecycle states.

    State transitions:
    - PENDING -> PROCESSING (claimed by a dispatcher)
    - PROCESSING -> COMPLETED (command succeeded)
    - PROCESSING -> PENDING (command failed, retry scheduled with backoff)
    - PROCESSING -> DEAD (retry budget exhausted)
    - PROCESSING -> PENDING (stale claim recovered by the reaper)
    - DEAD -> PENDING (operator retry from the DLQ)

    FAILED is never persisted. It names the pending jobs that carry a
    last_error, i.e. retries waiting out their backoff.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    FAILED = "failed"
    COMPLETED = "completed"
    DEAD = "dead"


# Default values
DEFAULT_MAX_RETRIES = 3
DEFAULT_BACKOFF_BASE = 2.0
DEFAULT_POLL_INTERVAL_SECONDS = 1.0
DEFAULT_HEARTBEAT_INTERVAL_SECONDS = 30.0
MAX_ERROR_LENGTH = 2000

# Keys accepted by `queuectl config set`
CONFIG_KEYS: tuple[str, ...] = (
    "poll_interval_seconds",
    "backoff_base",
    "backoff_max_seconds",
    "default_max_retries",
    "job_timeout_seconds",
)

# API constants
API_V1_PREFIX = "/v1"

# Metrics names
METRIC_QUEUE_DEPTH = "queuectl_queue_depth"
METRIC_JOBS_ENQUEUED = "queuectl_jobs_enqueued_total"
METRIC_JOBS_CLAIMED = "queuectl_jobs_claimed_total"
METRIC_JOB_OUTCOMES = "queuectl_job_outcomes_total"
METRIC_JOB_DURATION = "queuectl_job_duration_seconds"
METRIC_STORE_ERRORS = "queuectl_store_errors_total"
METRIC_JOBS_RECOVERED = "queuectl_jobs_recovered_total"

# Trace span names
SPAN_CLAIM_JOB = "claim_job"
SPAN_EXECUTE_JOB = "execute_job"
SPAN_RECORD_OUTCOME = "record_outcome"

# Job event types
EVENT_JOB_ENQUEUED = "job.enqueued"
EVENT_JOB_COMPLETED = "job.completed"
EVENT_JOB_RETRY_SCHEDULED = "job.retry_scheduled"
EVENT_JOB_DEAD = "job.dead"
EVENT_JOB_REQUEUED = "job.requeued"
