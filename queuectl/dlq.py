"""
Dead letter queue management.
"""

import logging
from typing import Sequence

from queuectl.constants import JobState
from queuectl.db.models import Job
from queuectl.errors import NotInDlq
from queuectl.types.interfaces import JobStore

logger = logging.getLogger(__name__)


class DeadLetterManager:
    """Thin view over the store for dead-lettered jobs."""

    def __init__(self, store: JobStore):
        self.store = store

    async def list(self, limit: int | None = None) -> Sequence[Job]:
        """Dead jobs, newest first."""
        return await self.store.list_by_state(JobState.DEAD, limit=limit)

    async def retry(self, job_id: str) -> Job:
        """
        Re-queue a dead job with attempts=0 and no last_error.

        Args:
            job_id: The job id.

        Returns:
            The job, now pending and eligible immediately.

        Raises:
            NotInDlq: If the job does not exist or is not dead. Nothing changes.
        """
        job = await self.store.find_by_id(job_id)
        if job is None:
            raise NotInDlq(job_id)
        if job.state != JobState.DEAD:
            raise NotInDlq(job_id, state=job.state.value)

        # Conditional on state='dead', so a concurrent retry cannot reset twice
        reset = await self.store.reset(job_id)
        if reset is None:
            raise NotInDlq(job_id)

        logger.info("Job retried from DLQ", extra={"job_id": job_id})
        return reset
