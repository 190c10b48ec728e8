"""
Request dependencies.
"""

from typing import Annotated

from fastapi import Depends, Request

from queuectl.db import Database
from queuectl.service import JobQueue


def get_queue(request: Request) -> JobQueue:
    """The JobQueue attached to the application."""
    return request.app.state.queue


def get_database(request: Request) -> Database | None:
    return getattr(request.app.state, "database", None)


QueueDep = Annotated[JobQueue, Depends(get_queue)]
DatabaseDep = Annotated[Database | None, Depends(get_database)]
