"""
Job repository for database operations.
Implements the core data access patterns for job management.
"""

import logging
from datetime import datetime
from typing import Sequence

from sqlalchemy import and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from queuectl.constants import JobState
from queuectl.db.models import ConfigEntry, Job, new_job_id
from queuectl.lifecycle import Outcome
from queuectl.utils import utcnow

logger = logging.getLogger(__name__)


class JobRepository:
    """
    Repository for job database operations within one session.

    Implements atomic operations for:
    - Job creation
    - Claiming with a single conditional UPDATE ... RETURNING
    - Outcome recording and heartbeats guarded by the holding claim
    - DLQ reset guarded by the dead state
    - Stale claim recovery
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize the repository with a database session.

        Args:
            session: The async database session.
        """
        self._session = session

    async def create_job(
        self,
        command: str,
        max_retries: int,
        job_id: str | None = None,
    ) -> Job:
        """
        Insert a new pending job, eligible immediately.

        Args:
            command: Shell command to run.
            max_retries: Retry budget.
            job_id: Optional caller-chosen id.

        Returns:
            The created Job.
        """
        now = utcnow()
        job = Job(
            id=job_id or new_job_id(),
            command=command,
            state=JobState.PENDING,
            attempts=0,
            max_retries=max_retries,
            last_error=None,
            next_run_at=now,
            created_at=now,
            updated_at=now,
        )
        self._session.add(job)
        await self._session.flush()

        logger.info(
            "Created new job",
            extra={"job_id": job.id, "max_retries": max_retries},
        )
        return job

    async def get_job(self, job_id: str) -> Job | None:
        """
        Get a job by ID.

        Args:
            job_id: The job id.

        Returns:
            The Job or None if not found.
        """
        stmt = select(Job).where(Job.id == job_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_jobs(
        self,
        state: JobState | None = None,
        limit: int | None = None,
    ) -> Sequence[Job]:
        """
        List jobs newest first, optionally filtered by state.

        FAILED selects pending jobs that carry a last_error.

        Args:
            state: Optional state filter.
            limit: Maximum number of jobs to return.

        Returns:
            The matching jobs.
        """
        stmt = select(Job).order_by(Job.created_at.desc(), Job.id.desc())

        if state == JobState.FAILED:
            stmt = stmt.where(
                and_(Job.state == JobState.PENDING, Job.last_error.is_not(None))
            )
        elif state is not None:
            stmt = stmt.where(Job.state == state)

        if limit is not None:
            stmt = stmt.limit(limit)

        result = await self._session.execute(stmt)
        return result.scalars().all()

    async def claim_next(
        self,
        now: datetime,
        claimed_by: str | None = None,
    ) -> Job | None:
        """
        Claim the oldest eligible pending job.

        This is the critical path for job distribution. The select and the
        state change happen in one UPDATE statement, guarded by
        state='pending', so two callers can never receive the same job.
        PostgreSQL additionally skips rows locked by concurrent claimers.

        Args:
            now: Eligibility cut-off for next_run_at.
            claimed_by: Identifier of the claiming dispatcher.

        Returns:
            The claimed Job (now processing) or None.
        """
        eligible = (
            select(Job.id)
            .where(
                and_(
                    Job.state == JobState.PENDING,
                    Job.next_run_at <= now,
                )
            )
            .order_by(Job.created_at.asc(), Job.id.asc())
            .limit(1)
        )
        if self._session.get_bind().dialect.name == "postgresql":
            eligible = eligible.with_for_update(skip_locked=True)

        stmt = (
            update(Job)
            .where(
                and_(
                    Job.id == eligible.scalar_subquery(),
                    Job.state == JobState.PENDING,
                )
            )
            .values(
                state=JobState.PROCESSING,
                claimed_by=claimed_by,
                updated_at=utcnow(),
            )
            .returning(Job)
        )

        result = await self._session.execute(stmt)
        job = result.scalar_one_or_none()

        if job is not None:
            logger.debug(
                "Claimed job",
                extra={"job_id": job.id, "claimed_by": claimed_by},
            )

        return job

    async def record_outcome(
        self,
        job_id: str,
        outcome: Outcome,
        claimed_by: str | None = None,
    ) -> Job | None:
        """
        Apply the result of an execution attempt.

        Only a job that is still processing under the same claim is updated.
        A claim that was recovered and handed to another dispatcher no longer
        matches, so a late outcome is dropped.

        Args:
            job_id: The job id.
            outcome: The transition to apply.
            claimed_by: Identifier of the dispatcher that ran the attempt.

        Returns:
            Updated Job or None if the claim is no longer held.
        """
        values: dict = {
            "state": outcome.state,
            "attempts": outcome.attempts,
            "claimed_by": None,
            "updated_at": utcnow(),
        }
        if outcome.last_error is not None:
            values["last_error"] = outcome.last_error
        if outcome.next_run_at is not None:
            values["next_run_at"] = outcome.next_run_at

        stmt = (
            update(Job)
            .where(
                and_(
                    Job.id == job_id,
                    Job.state == JobState.PROCESSING,
                    Job.claimed_by == claimed_by,
                )
            )
            .values(**values)
            .returning(Job)
        )

        result = await self._session.execute(stmt)
        job = result.scalar_one_or_none()

        if job is None:
            logger.warning(
                "Outcome not recorded, claim is no longer held",
                extra={
                    "job_id": job_id,
                    "claimed_by": claimed_by,
                    "new_state": outcome.state.value,
                },
            )

        return job

    async def touch_claim(self, job_id: str, claimed_by: str | None) -> bool:
        """
        Refresh updated_at on a claim still held by claimed_by (heartbeat).

        Args:
            job_id: The job id.
            claimed_by: Identifier of the dispatcher running the job.

        Returns:
            True if the claim is still held, False otherwise.
        """
        stmt = (
            update(Job)
            .where(
                and_(
                    Job.id == job_id,
                    Job.state == JobState.PROCESSING,
                    Job.claimed_by == claimed_by,
                )
            )
            .values(updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )

        result = await self._session.execute(stmt)
        return (result.rowcount or 0) > 0

    async def reset_dead(self, job_id: str) -> Job | None:
        """
        Move a dead job back to pending with a fresh retry budget.

        Args:
            job_id: The job id.

        Returns:
            Updated Job or None if not found or not dead.
        """
        now = utcnow()
        stmt = (
            update(Job)
            .where(
                and_(
                    Job.id == job_id,
                    Job.state == JobState.DEAD,
                )
            )
            .values(
                state=JobState.PENDING,
                attempts=0,
                last_error=None,
                next_run_at=now,
                claimed_by=None,
                updated_at=now,
            )
            .returning(Job)
        )

        result = await self._session.execute(stmt)
        job = result.scalar_one_or_none()

        if job:
            logger.info("Job reset from DLQ", extra={"job_id": job_id})

        return job

    async def recover_stale(self, older_than: datetime) -> int:
        """
        Return jobs stuck in processing to pending.

        A dispatcher that crashed or lost the store mid-job leaves its claim
        behind; those jobs become eligible again with attempts unchanged.

        Args:
            older_than: Claims last touched before this time are stale.

        Returns:
            Number of recovered jobs.
        """
        now = utcnow()
        stmt = (
            update(Job)
            .where(
                and_(
                    Job.state == JobState.PROCESSING,
                    Job.updated_at < older_than,
                )
            )
            .values(
                state=JobState.PENDING,
                claimed_by=None,
                next_run_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )

        result = await self._session.execute(stmt)
        count = result.rowcount or 0

        if count > 0:
            logger.info(f"Recovered {count} stale jobs")

        return count

    async def get_job_stats(self) -> dict[str, int]:
        """
        Get job counts by state.

        Every state is present. FAILED counts the pending jobs waiting on a
        backoff retry, so it is a subset of PENDING.

        Returns:
            Dictionary of state -> count.
        """
        stmt = select(Job.state, func.count()).group_by(Job.state)
        result = await self._session.execute(stmt)

        stats = {state.value: 0 for state in JobState}
        for state, count in result.all():
            stats[JobState(state).value] = count

        failed_stmt = (
            select(func.count())
            .select_from(Job)
            .where(and_(Job.state == JobState.PENDING, Job.last_error.is_not(None)))
        )
        failed = await self._session.execute(failed_stmt)
        stats[JobState.FAILED.value] = failed.scalar() or 0

        return stats


class ConfigRepository:
    """Persisted runtime configuration overrides."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_all(self) -> dict[str, str]:
        result = await self._session.execute(select(ConfigEntry))
        return {entry.key: entry.value for entry in result.scalars().all()}

    async def set(self, key: str, value: str) -> None:
        entry = await self._session.get(ConfigEntry, key)
        if entry is None:
            self._session.add(ConfigEntry(key=key, value=value))
        else:
            entry.value = value
        await self._session.flush()

    async def delete(self, key: str) -> bool:
        entry = await self._session.get(ConfigEntry, key)
        if entry is None:
            return False
        await self._session.delete(entry)
        await self._session.flush()
        return True
