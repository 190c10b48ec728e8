"""
Integration tests for the HTTP API.
"""

import importlib
import warnings
from datetime import timedelta

from httpx import AsyncClient

from queuectl.api import main as api_main
from queuectl.constants import JobState
from queuectl.db import SqlJobStore
from queuectl.errors import InvalidInput, JobNotFound, NotInDlq, StoreUnavailable
from queuectl.lifecycle import Outcome
from queuectl.utils import utcnow


class TestJobsAPI:
    """Tests for /v1/jobs."""

    async def test_enqueue_job(self, client: AsyncClient):
        response = await client.post("/v1/jobs", json={"command": "echo hi", "max_retries": 2})

        assert response.status_code == 201
        data = response.json()
        assert data["command"] == "echo hi"
        assert data["state"] == "pending"
        assert data["attempts"] == 0
        assert data["max_retries"] == 2

    async def test_enqueue_with_id(self, client: AsyncClient):
        response = await client.post("/v1/jobs", json={"command": "echo hi", "id": "job1"})

        assert response.status_code == 201
        assert response.json()["id"] == "job1"

        duplicate = await client.post("/v1/jobs", json={"command": "echo hi", "id": "job1"})
        assert duplicate.status_code == 422
        assert duplicate.json()["error"] == "InvalidInput"

    async def test_enqueue_empty_command(self, client: AsyncClient):
        response = await client.post("/v1/jobs", json={"command": " "})

        assert response.status_code == 422
        assert response.json()["error"] == "InvalidInput"

    async def test_enqueue_negative_retries(self, client: AsyncClient):
        response = await client.post("/v1/jobs", json={"command": "echo", "max_retries": -1})

        assert response.status_code == 422

    async def test_get_job(self, client: AsyncClient):
        created = (await client.post("/v1/jobs", json={"command": "echo hi"})).json()

        response = await client.get(f"/v1/jobs/{created['id']}")

        assert response.status_code == 200
        assert response.json()["id"] == created["id"]

    async def test_get_missing_job(self, client: AsyncClient):
        response = await client.get("/v1/jobs/nope")

        assert response.status_code == 404
        assert response.json()["error"] == "JobNotFound"

    async def test_list_jobs(self, client: AsyncClient):
        for i in range(3):
            await client.post("/v1/jobs", json={"command": f"echo {i}"})

        response = await client.get("/v1/jobs", params={"limit": 2})

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert [job["command"] for job in data["jobs"]] == ["echo 2", "echo 1"]

    async def test_list_jobs_by_state(self, client: AsyncClient):
        await client.post("/v1/jobs", json={"command": "echo hi"})

        pending = await client.get("/v1/jobs", params={"state": "pending"})
        completed = await client.get("/v1/jobs", params={"state": "completed"})
        invalid = await client.get("/v1/jobs", params={"state": "running"})

        assert pending.json()["total"] == 1
        assert completed.json()["total"] == 0
        assert invalid.status_code == 422

    async def test_stats_summary(self, client: AsyncClient):
        await client.post("/v1/jobs", json={"command": "echo hi"})

        response = await client.get("/v1/jobs/stats/summary")

        assert response.status_code == 200
        counts = response.json()["counts"]
        assert counts["pending"] == 1
        assert set(counts) == {state.value for state in JobState}


class TestDlqAPI:
    """Tests for /v1/dlq."""

    async def _dead_job(self, store: SqlJobStore) -> str:
        job = await store.create(command="false", max_retries=0)
        await store.claim_next(utcnow() + timedelta(seconds=1))
        await store.record_outcome(
            job.id, Outcome(state=JobState.DEAD, attempts=1, last_error="exit code 1")
        )
        return job.id

    async def test_list_and_retry(self, client: AsyncClient, store: SqlJobStore):
        job_id = await self._dead_job(store)

        listed = await client.get("/v1/dlq")
        assert [job["id"] for job in listed.json()["jobs"]] == [job_id]

        response = await client.post(f"/v1/dlq/{job_id}/retry")
        assert response.status_code == 200
        data = response.json()
        assert data["state"] == "pending"
        assert data["attempts"] == 0
        assert data["last_error"] is None

        assert (await client.get("/v1/dlq")).json()["total"] == 0

    async def test_retry_job_not_in_dlq(self, client: AsyncClient):
        created = (await client.post("/v1/jobs", json={"command": "echo hi"})).json()

        response = await client.post(f"/v1/dlq/{created['id']}/retry")

        assert response.status_code == 409
        assert response.json()["error"] == "NotInDlq"
        job = (await client.get(f"/v1/jobs/{created['id']}")).json()
        assert job["state"] == "pending"


class TestConfigAPI:
    """Tests for /v1/config."""

    async def test_get_set_unset(self, client: AsyncClient):
        initial = await client.get("/v1/config")
        assert initial.json()["backoff_base"] == 2.0

        updated = await client.put("/v1/config/backoff_base", json={"value": "3"})
        assert updated.status_code == 200
        assert updated.json()["backoff_base"] == 3.0

        removed = await client.delete("/v1/config/backoff_base")
        assert removed.status_code == 204
        assert (await client.get("/v1/config")).json()["backoff_base"] == 2.0

    async def test_invalid_value(self, client: AsyncClient):
        response = await client.put("/v1/config/backoff_base", json={"value": "0"})

        assert response.status_code == 422
        assert response.json()["error"] == "InvalidInput"


class TestHealthAPI:
    """Tests for health endpoints."""

    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "healthy"

    async def test_ready_and_live(self, client: AsyncClient):
        assert (await client.get("/ready")).json() == {"ready": True}
        assert (await client.get("/live")).json() == {"alive": True}

    async def test_health_reports_pending_jobs(self, client: AsyncClient):
        await client.post("/v1/jobs", json={"command": "echo hi"})

        assert (await client.get("/health")).json()["pending_jobs"] == 1

    async def test_metrics(self, client: AsyncClient):
        await client.post("/v1/jobs", json={"command": "echo hi"})

        response = await client.get("/metrics")

        assert response.status_code == 200
        assert "text/plain" in response.headers["content-type"]
        assert "queuectl_queue_depth 1.0" in response.text
        assert "queuectl_jobs_enqueued_total 1.0" in response.text


class TestErrorMapping:
    """Tests for the QueueError to HTTP status table."""

    def test_status_codes_without_deprecation_warnings(self):
        with warnings.catch_warnings():
            warnings.simplefilter("error", DeprecationWarning)
            module = importlib.reload(api_main)

        assert module.ERROR_STATUS == {
            InvalidInput: 422,
            JobNotFound: 404,
            NotInDlq: 409,
            StoreUnavailable: 503,
        }
