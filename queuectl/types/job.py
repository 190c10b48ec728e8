"""
Job-related type definitions for internal use.
"""

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, ConfigDict

from queuectl.constants import JobState


@dataclass
class CommandOutput:
    """
    Captured result of a successful command.
    Returned by command executors.
    """

    exit_code: int
    stdout: str
    stderr: str
    duration_seconds: float


class JobSummary(BaseModel):
    """
    Read model of a job.
    Used by the CLI, the HTTP API and the queue service.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str
    command: str
    state: JobState
    attempts: int
    max_retries: int
    last_error: str | None
    next_run_at: datetime
    claimed_by: str | None = None
    created_at: datetime
    updated_at: datetime

