"""
Error taxonomy.

Request-level errors (InvalidInput, NotInDlq, JobNotFound, StoreUnavailable
outside a dispatch) propagate to callers. ExecutionError never leaves the
dispatcher: it is turned into a retry or dead-letter transition.
"""


class QueueError(Exception):
    """Base class for all queuectl errors."""


class InvalidInput(QueueError):
    """A request was malformed and has been rejected without side effects."""


class StoreUnavailable(QueueError):
    """The job store could not complete an operation. Usually transient."""


class JobNotFound(QueueError):
    """No job exists with the requested id."""

    def __init__(self, job_id: str):
        super().__init__(f"Job {job_id} not found")
        self.job_id = job_id


class NotInDlq(QueueError):
    """An operator tried to retry a job that is not dead-lettered."""

    def __init__(self, job_id: str, state: str | None = None):
        if state is None:
            message = f"Job {job_id} not found in DLQ"
        else:
            message = f"Job {job_id} is not in DLQ (current state: {state})"
        super().__init__(message)
        self.job_id = job_id
        self.state = state


class InvalidTransition(QueueError):
    """A lifecycle transition not allowed by the state machine."""


class ExecutionError(QueueError):
    """A command failed, timed out or could not be started."""

    def __init__(self, reason: str, exit_code: int | None = None):
        super().__init__(reason)
        self.reason = reason
        self.exit_code = exit_code
