"""
Contracts of the collaborators the dispatcher depends on.
"""

from datetime import datetime
from typing import Protocol, Sequence, runtime_checkable

from queuectl.constants import JobState
from queuectl.db.models import Job
from queuectl.lifecycle import Outcome
from queuectl.types.job import CommandOutput


@runtime_checkable
class JobStore(Protocol):
    """
    Durable table of jobs.

    Each method is one atomic unit of work. Any method may raise
    StoreUnavailable on a transient backend failure.
    """

    async def create(
        self,
        command: str,
        max_retries: int,
        job_id: str | None = None,
    ) -> Job: ...

    async def claim_next(
        self,
        now: datetime,
        claimed_by: str | None = None,
    ) -> Job | None: ...

    async def record_outcome(
        self,
        job_id: str,
        outcome: Outcome,
        claimed_by: str | None = None,
    ) -> Job | None: ...

    async def heartbeat(self, job_id: str, claimed_by: str | None) -> bool: ...

    async def list_by_state(
        self,
        state: JobState | None = None,
        limit: int | None = None,
    ) -> Sequence[Job]: ...

    async def find_by_id(self, job_id: str) -> Job | None: ...

    async def reset(self, job_id: str) -> Job | None: ...

    async def count_by_state(self) -> dict[str, int]: ...

    async def recover_stale(self, older_than: datetime) -> int: ...


@runtime_checkable
class ConfigStore(Protocol):
    """Persisted runtime configuration overrides."""

    async def get_config(self) -> dict[str, str]: ...

    async def set_config(self, key: str, value: str) -> None: ...

    async def unset_config(self, key: str) -> bool: ...


@runtime_checkable
class CommandExecutor(Protocol):
    """
    Runs a command string.

    Returns the captured output on success and raises ExecutionError on a
    non-zero exit, a timeout or a spawn failure.
    """

    async def run(self, command: str, timeout: float | None = None) -> CommandOutput: ...
