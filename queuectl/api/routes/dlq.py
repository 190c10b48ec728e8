"""
Dead letter queue routes.
"""

import logging

from fastapi import APIRouter, Query

from queuectl.api.deps import QueueDep
from queuectl.constants import API_V1_PREFIX
from queuectl.types.api import JobListResponse
from queuectl.types.job import JobSummary

logger = logging.getLogger(__name__)

router = APIRouter(prefix=f"{API_V1_PREFIX}/dlq", tags=["DLQ"])


@router.get(
    "",
    response_model=JobListResponse,
    summary="List dead jobs",
)
async def list_dead_jobs(
    queue: QueueDep,
    limit: int = Query(default=100, ge=1, le=1000),
) -> JobListResponse:
    jobs = await queue.dlq_list(limit=limit)
    return JobListResponse(jobs=jobs, total=len(jobs))


@router.post(
    "/{job_id}/retry",
    response_model=JobSummary,
    summary="Retry a job from DLQ",
    description="Reset a dead job to pending with a fresh retry budget.",
)
async def retry_dead_job(job_id: str, queue: QueueDep) -> JobSummary:
    """
    Retry a job from the DLQ.

    Args:
        job_id: The job id.
        queue: Queue service.

    Returns:
        The job, pending again.
    """
    job = await queue.dlq_retry(job_id)
    logger.info("Job retried from DLQ via API", extra={"job_id": job_id})
    return job
