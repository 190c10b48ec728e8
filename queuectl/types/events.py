"""
Event type definitions for job transitions.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel

from queuectl.constants import (
    EVENT_JOB_COMPLETED,
    EVENT_JOB_DEAD,
    EVENT_JOB_ENQUEUED,
    EVENT_JOB_REQUEUED,
    EVENT_JOB_RETRY_SCHEDULED,
    JobState,
)
from queuectl.utils import utcnow


class JobEvent(BaseModel):
    """
    Event emitted when a job changes state.
    Logged by the dispatcher and handed to any registered listeners.
    """

    event_type: str
    job_id: str
    previous_state: JobState | None
    new_state: JobState
    attempts: int
    reason: str | None = None
    next_run_at: datetime | None = None
    occurred_at: datetime

    @classmethod
    def job_enqueued(cls, job_id: str) -> "JobEvent":
        """Create a job enqueued event."""
        return cls(
            event_type=EVENT_JOB_ENQUEUED,
            job_id=job_id,
            previous_state=None,
            new_state=JobState.PENDING,
            attempts=0,
            occurred_at=utcnow(),
        )

    @classmethod
    def job_completed(cls, job_id: str, attempts: int) -> "JobEvent":
        """Create a job completed event."""
        return cls(
            event_type=EVENT_JOB_COMPLETED,
            job_id=job_id,
            previous_state=JobState.PROCESSING,
            new_state=JobState.COMPLETED,
            attempts=attempts,
            occurred_at=utcnow(),
        )

    @classmethod
    def job_retry_scheduled(
        cls,
        job_id: str,
        attempts: int,
        reason: str,
        next_run_at: datetime,
    ) -> "JobEvent":
        """Create an event for a failed attempt that will be retried."""
        return cls(
            event_type=EVENT_JOB_RETRY_SCHEDULED,
            job_id=job_id,
            previous_state=JobState.PROCESSING,
            new_state=JobState.PENDING,
            attempts=attempts,
            reason=reason,
            next_run_at=next_run_at,
            occurred_at=utcnow(),
        )

    @classmethod
    def job_dead(cls, job_id: str, attempts: int, reason: str) -> "JobEvent":
        """Create a job moved to DLQ event."""
        return cls(
            event_type=EVENT_JOB_DEAD,
            job_id=job_id,
            previous_state=JobState.PROCESSING,
            new_state=JobState.DEAD,
            attempts=attempts,
            reason=reason,
            occurred_at=utcnow(),
        )

    @classmethod
    def job_requeued(cls, job_id: str) -> "JobEvent":
        """Create an event for a dead job reset by an operator."""
        return cls(
            event_type=EVENT_JOB_REQUEUED,
            job_id=job_id,
            previous_state=JobState.DEAD,
            new_state=JobState.PENDING,
            attempts=0,
            occurred_at=utcnow(),
        )

    def log_fields(self) -> dict[str, Any]:
        """Flat fields for a structured log record."""
        return self.model_dump(mode="json", exclude_none=True)
