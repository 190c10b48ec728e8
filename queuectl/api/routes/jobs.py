"""
Job management routes.
"""

import logging

from fastapi import APIRouter, Query, status

from queuectl.api.deps import QueueDep
from queuectl.constants import API_V1_PREFIX, JobState
from queuectl.types.api import EnqueueRequest, JobListResponse, StatusResponse
from queuectl.types.job import JobSummary

logger = logging.getLogger(__name__)

router = APIRouter(prefix=f"{API_V1_PREFIX}/jobs", tags=["Jobs"])


@router.post(
    "",
    response_model=JobSummary,
    status_code=status.HTTP_201_CREATED,
    summary="Enqueue a job",
    description="Add a shell command to the queue.",
)
async def enqueue_job(request: EnqueueRequest, queue: QueueDep) -> JobSummary:
    """
    Enqueue a new job.

    Args:
        request: Job creation request.
        queue: Queue service.

    Returns:
        The created job.
    """
    job_id = await queue.enqueue(
        command=request.command,
        max_retries=request.max_retries,
        job_id=request.id,
    )
    return await queue.get_job(job_id)


@router.get(
    "/stats/summary",
    response_model=StatusResponse,
    summary="Get job statistics",
    description="Count of jobs per state.",
)
async def get_job_stats(queue: QueueDep) -> StatusResponse:
    return StatusResponse(counts=await queue.status_summary())


@router.get(
    "/{job_id}",
    response_model=JobSummary,
    summary="Get job details",
)
async def get_job(job_id: str, queue: QueueDep) -> JobSummary:
    return await queue.get_job(job_id)


@router.get(
    "",
    response_model=JobListResponse,
    summary="List jobs",
    description="List jobs newest first with an optional state filter.",
)
async def list_jobs(
    queue: QueueDep,
    state: JobState | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=1000),
) -> JobListResponse:
    """
    List jobs.

    Args:
        queue: Queue service.
        state: Optional state filter.
        limit: Maximum number of jobs.

    Returns:
        JobListResponse with the matching jobs.
    """
    jobs = await queue.list_jobs(state=state, limit=limit)
    return JobListResponse(jobs=jobs, total=len(jobs))
