"""
Integration tests for the SQL job store.
"""

import asyncio
from datetime import timedelta

import pytest

from queuectl.backoff import BackoffPolicy
from queuectl.constants import JobState
from queuectl.db import SqlJobStore
from queuectl.errors import InvalidInput
from queuectl.lifecycle import Outcome
from queuectl.utils import utcnow


class TestSqlJobStore:
    """Tests for SqlJobStore against SQLite."""

    async def test_create_job(self, store: SqlJobStore):
        job = await store.create(command="echo hi", max_retries=3)

        assert job.id
        assert job.state == JobState.PENDING
        assert job.attempts == 0
        assert job.max_retries == 3
        assert job.last_error is None
        assert job.next_run_at <= utcnow()

    async def test_create_with_id(self, store: SqlJobStore):
        job = await store.create(command="echo hi", max_retries=1, job_id="job1")

        assert job.id == "job1"
        assert (await store.find_by_id("job1")).command == "echo hi"

    async def test_duplicate_id_is_rejected(self, store: SqlJobStore):
        await store.create(command="echo one", max_retries=1, job_id="job1")

        with pytest.raises(InvalidInput, match="already exists"):
            await store.create(command="echo two", max_retries=1, job_id="job1")

        assert (await store.find_by_id("job1")).command == "echo one"

    async def test_find_missing(self, store: SqlJobStore):
        assert await store.find_by_id("nope") is None

    async def test_claim_marks_processing(self, store: SqlJobStore):
        created = await store.create(command="echo hi", max_retries=3)

        job = await store.claim_next(utcnow(), claimed_by="d1")

        assert job.id == created.id
        assert job.state == JobState.PROCESSING
        assert job.claimed_by == "d1"
        assert job.attempts == 0
        assert (await store.find_by_id(created.id)).state == JobState.PROCESSING

    async def test_claim_is_fifo(self, store: SqlJobStore):
        first = await store.create(command="echo 1", max_retries=3)
        second = await store.create(command="echo 2", max_retries=3)
        now = utcnow()

        assert (await store.claim_next(now)).id == first.id
        assert (await store.claim_next(now)).id == second.id
        assert await store.claim_next(now) is None

    async def test_claim_empty_queue(self, store: SqlJobStore):
        assert await store.claim_next(utcnow()) is None

    async def test_claim_skips_jobs_not_yet_eligible(self, store: SqlJobStore):
        created = await store.create(command="false", max_retries=3)
        claimed = await store.claim_next(utcnow())
        retry_at = utcnow() + timedelta(seconds=30)
        await store.record_outcome(
            claimed.id,
            Outcome(state=JobState.PENDING, attempts=1, last_error="boom", next_run_at=retry_at),
        )

        assert await store.claim_next(utcnow()) is None
        later = await store.claim_next(retry_at)
        assert later.id == created.id

    async def test_concurrent_claims_are_exclusive(self, store: SqlJobStore):
        created = await store.create(command="echo once", max_retries=3)
        now = utcnow()

        results = await asyncio.gather(
            *(store.claim_next(now, claimed_by=f"d{i}") for i in range(10))
        )

        claimed = [job for job in results if job is not None]
        assert len(claimed) == 1
        assert claimed[0].id == created.id

    async def test_concurrent_claims_share_out_jobs(self, store: SqlJobStore):
        for i in range(5):
            await store.create(command=f"echo {i}", max_retries=3)
        now = utcnow()

        results = await asyncio.gather(*(store.claim_next(now) for _ in range(8)))

        ids = [job.id for job in results if job is not None]
        assert len(ids) == 5
        assert len(set(ids)) == 5

    async def test_record_outcome_success(self, store: SqlJobStore):
        await store.create(command="echo hi", max_retries=3)
        job = await store.claim_next(utcnow(), claimed_by="d1")

        updated = await store.record_outcome(job.id, Outcome.success(job), claimed_by="d1")

        assert updated.state == JobState.COMPLETED
        assert updated.attempts == 1
        assert updated.claimed_by is None

    async def test_record_outcome_requires_processing(self, store: SqlJobStore):
        job = await store.create(command="echo hi", max_retries=3)

        assert await store.record_outcome(job.id, Outcome.success(job)) is None
        assert (await store.find_by_id(job.id)).state == JobState.PENDING

    async def test_record_outcome_requires_same_claim(self, store: SqlJobStore):
        await store.create(command="echo hi", max_retries=3)
        job = await store.claim_next(utcnow(), claimed_by="d1")

        assert await store.record_outcome(job.id, Outcome.success(job), claimed_by="d2") is None

        stored = await store.find_by_id(job.id)
        assert stored.state == JobState.PROCESSING
        assert stored.claimed_by == "d1"
        assert stored.attempts == 0

    async def test_heartbeat_refreshes_held_claim(self, store: SqlJobStore):
        await store.create(command="sleep 100", max_retries=3)
        job = await store.claim_next(utcnow(), claimed_by="d1")
        await asyncio.sleep(0.01)

        assert await store.heartbeat(job.id, "d1") is True

        stored = await store.find_by_id(job.id)
        assert stored.updated_at > job.updated_at
        assert stored.state == JobState.PROCESSING

    async def test_heartbeat_rejects_other_claims(self, store: SqlJobStore):
        created = await store.create(command="sleep 100", max_retries=3)

        assert await store.heartbeat(created.id, "d1") is False

        job = await store.claim_next(utcnow(), claimed_by="d1")
        assert await store.heartbeat(job.id, "d2") is False
        assert await store.heartbeat("missing", "d1") is False

    async def test_failed_view_lists_retrying_jobs(self, store: SqlJobStore):
        await store.create(command="echo ok", max_retries=3)
        failing = await store.create(command="false", max_retries=3)
        await store.claim_next(utcnow())
        claimed = await store.claim_next(utcnow())
        assert claimed.id == failing.id
        await store.record_outcome(
            claimed.id, Outcome.failure(claimed, "exit code 1", BackoffPolicy(), utcnow())
        )

        failed = await store.list_by_state(JobState.FAILED)
        assert [job.id for job in failed] == [failing.id]

    async def test_list_newest_first_with_limit(self, store: SqlJobStore):
        ids = [(await store.create(command=f"echo {i}", max_retries=3)).id for i in range(3)]

        jobs = await store.list_by_state()
        assert [job.id for job in jobs] == list(reversed(ids))

        limited = await store.list_by_state(limit=2)
        assert [job.id for job in limited] == [ids[2], ids[1]]

    async def test_count_by_state(self, store: SqlJobStore):
        await store.create(command="echo a", max_retries=3)
        await store.create(command="echo b", max_retries=3)
        job = await store.claim_next(utcnow())
        await store.record_outcome(job.id, Outcome.success(job))

        counts = await store.count_by_state()

        assert counts == {
            "pending": 1,
            "processing": 0,
            "failed": 0,
            "completed": 1,
            "dead": 0,
        }

    async def test_reset_only_dead_jobs(self, store: SqlJobStore):
        await store.create(command="false", max_retries=0)
        job = await store.claim_next(utcnow())
        await store.record_outcome(job.id, Outcome(state=JobState.DEAD, attempts=1, last_error="boom"))

        reset = await store.reset(job.id)

        assert reset.state == JobState.PENDING
        assert reset.attempts == 0
        assert reset.last_error is None
        assert await store.reset(job.id) is None

    async def test_recover_stale(self, store: SqlJobStore):
        created = await store.create(command="sleep 100", max_retries=3)
        await store.claim_next(utcnow(), claimed_by="gone")

        assert await store.recover_stale(utcnow() - timedelta(minutes=5)) == 0
        assert await store.recover_stale(utcnow() + timedelta(seconds=1)) == 1

        job = await store.find_by_id(created.id)
        assert job.state == JobState.PENDING
        assert job.attempts == 0
        assert job.claimed_by is None

    async def test_config_round_trip(self, store: SqlJobStore):
        await store.set_config("backoff_base", "3")
        await store.set_config("backoff_base", "4")

        assert await store.get_config() == {"backoff_base": "4"}
        assert await store.unset_config("backoff_base") is True
        assert await store.unset_config("backoff_base") is False
        assert await store.get_config() == {}
