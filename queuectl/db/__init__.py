"""
Database module.
Contains database connection, models, repositories and the SQL job store.
"""

from queuectl.db.connection import Database
from queuectl.db.models import Base, ConfigEntry, Job
from queuectl.db.store import SqlJobStore

__all__ = [
    "Database",
    "SqlJobStore",
    "Job",
    "ConfigEntry",
    "Base",
]
