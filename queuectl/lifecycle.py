"""
Job lifecycle state machine.

Every state change a job goes through is listed in ALLOWED_TRANSITIONS.
Outcome values describe the transition a dispatcher applies to a job it
has just executed.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from queuectl.backoff import BackoffPolicy
from queuectl.constants import JobState
from queuectl.errors import InvalidTransition
from queuectl.utils import truncate_error

ALLOWED_TRANSITIONS: dict[JobState, frozenset[JobState]] = {
    JobState.PENDING: frozenset({JobState.PROCESSING}),
    JobState.PROCESSING: frozenset(
        {JobState.COMPLETED, JobState.PENDING, JobState.DEAD}
    ),
    JobState.COMPLETED: frozenset(),
    JobState.DEAD: frozenset({JobState.PENDING}),
}

TERMINAL_STATES: frozenset[JobState] = frozenset({JobState.COMPLETED, JobState.DEAD})


def can_transition(current: JobState, target: JobState) -> bool:
    """Check whether the state machine allows current -> target."""
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def check_transition(current: JobState, target: JobState) -> None:
    """
    Validate a transition.

    Raises:
        InvalidTransition: If the state machine does not allow it.
    """
    if not can_transition(current, target):
        raise InvalidTransition(f"Cannot move job from {current} to {target}")


class AttemptCounts(Protocol):
    """The job fields an outcome is computed from."""

    attempts: int
    max_retries: int


@dataclass(frozen=True)
class Outcome:
    """
    Result of one execution attempt, ready to be recorded by the store.

    Attributes:
        state: State the job moves to (COMPLETED, PENDING or DEAD).
        attempts: Attempt count after this execution.
        last_error: Failure reason, None on success.
        next_run_at: Eligibility time of a scheduled retry.
    """

    state: JobState
    attempts: int
    last_error: str | None = None
    next_run_at: datetime | None = None

    def __post_init__(self) -> None:
        check_transition(JobState.PROCESSING, self.state)
        if self.state == JobState.PENDING and self.next_run_at is None:
            raise InvalidTransition("A retry outcome needs next_run_at")

    @classmethod
    def success(cls, job: AttemptCounts) -> "Outcome":
        return cls(state=JobState.COMPLETED, attempts=job.attempts + 1)

    @classmethod
    def failure(
        cls,
        job: AttemptCounts,
        reason: str,
        backoff: BackoffPolicy,
        now: datetime,
    ) -> "Outcome":
        """
        Outcome of a failed attempt: a backoff retry, or dead-lettering once
        the attempt count exceeds max_retries.
        """
        attempts = job.attempts + 1
        reason = truncate_error(reason) or "unknown error"

        if attempts > job.max_retries:
            return cls(state=JobState.DEAD, attempts=attempts, last_error=reason)

        return cls(
            state=JobState.PENDING,
            attempts=attempts,
            last_error=reason,
            next_run_at=backoff.next_run_at(attempts, now),
        )
