"""
Type definitions for queuectl.
Contains input/output type definitions grouped by module.
"""

from queuectl.types.api import (
    ConfigUpdateRequest,
    EnqueueRequest,
    ErrorResponse,
    HealthResponse,
    JobListResponse,
    StatusResponse,
)
from queuectl.types.events import JobEvent
from queuectl.types.job import CommandOutput, JobSummary

__all__ = [
    # API types
    "EnqueueRequest",
    "JobListResponse",
    "StatusResponse",
    "ConfigUpdateRequest",
    "HealthResponse",
    "ErrorResponse",
    # Job types
    "CommandOutput",
    "JobSummary",
    # Event types
    "JobEvent",
]
