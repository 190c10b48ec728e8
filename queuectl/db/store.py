"""
SQL-backed job store.

Every public method opens its own session, so each one commits or rolls
back as a single unit. No transaction spans two calls.
"""

import logging
from datetime import datetime
from typing import Sequence

from sqlalchemy.exc import IntegrityError

from queuectl.constants import JobState
from queuectl.db.connection import Database
from queuectl.db.models import Job
from queuectl.db.repository import ConfigRepository, JobRepository
from queuectl.errors import InvalidInput
from queuectl.lifecycle import Outcome

logger = logging.getLogger(__name__)


class SqlJobStore:
    """JobStore and ConfigStore over a Database."""

    def __init__(self, database: Database):
        self._db = database

    @property
    def database(self) -> Database:
        return self._db

    async def create(
        self,
        command: str,
        max_retries: int,
        job_id: str | None = None,
    ) -> Job:
        try:
            async with self._db.session() as session:
                return await JobRepository(session).create_job(
                    command=command,
                    max_retries=max_retries,
                    job_id=job_id,
                )
        except IntegrityError as e:
            raise InvalidInput(f"Job '{job_id}' already exists") from e

    async def claim_next(
        self,
        now: datetime,
        claimed_by: str | None = None,
    ) -> Job | None:
        async with self._db.session() as session:
            return await JobRepository(session).claim_next(now, claimed_by=claimed_by)

    async def record_outcome(
        self,
        job_id: str,
        outcome: Outcome,
        claimed_by: str | None = None,
    ) -> Job | None:
        async with self._db.session() as session:
            return await JobRepository(session).record_outcome(
                job_id, outcome, claimed_by=claimed_by
            )

    async def heartbeat(self, job_id: str, claimed_by: str | None) -> bool:
        async with self._db.session() as session:
            return await JobRepository(session).touch_claim(job_id, claimed_by)

    async def list_by_state(
        self,
        state: JobState | None = None,
        limit: int | None = None,
    ) -> Sequence[Job]:
        async with self._db.session() as session:
            return await JobRepository(session).list_jobs(state=state, limit=limit)

    async def find_by_id(self, job_id: str) -> Job | None:
        async with self._db.session() as session:
            return await JobRepository(session).get_job(job_id)

    async def reset(self, job_id: str) -> Job | None:
        async with self._db.session() as session:
            return await JobRepository(session).reset_dead(job_id)

    async def count_by_state(self) -> dict[str, int]:
        async with self._db.session() as session:
            return await JobRepository(session).get_job_stats()

    async def recover_stale(self, older_than: datetime) -> int:
        async with self._db.session() as session:
            return await JobRepository(session).recover_stale(older_than)

    async def get_config(self) -> dict[str, str]:
        async with self._db.session() as session:
            return await ConfigRepository(session).get_all()

    async def set_config(self, key: str, value: str) -> None:
        async with self._db.session() as session:
            await ConfigRepository(session).set(key, value)
        logger.info("Config updated", extra={"key": key, "value": value})

    async def unset_config(self, key: str) -> bool:
        async with self._db.session() as session:
            return await ConfigRepository(session).delete(key)
