"""
API request and response type definitions.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from queuectl.types.job import JobSummary


class EnqueueRequest(BaseModel):
    """Request body for enqueuing a new job."""

    command: str = Field(..., description="Shell command to execute")
    max_retries: int | None = Field(
        default=None, ge=0, description="Retries before dead-lettering; config default if omitted"
    )
    id: str | None = Field(
        default=None, min_length=1, max_length=64, description="Optional caller-chosen job id"
    )


class JobListResponse(BaseModel):
    """List of jobs, newest first."""

    jobs: list[JobSummary]
    total: int


class StatusResponse(BaseModel):
    """Job counts by state."""

    counts: dict[str, int]


class ConfigUpdateRequest(BaseModel):
    """Request body for setting a runtime config override."""

    value: str


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    database: str
    pending_jobs: int | None = None
    timestamp: datetime


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str
    detail: str | None = None
