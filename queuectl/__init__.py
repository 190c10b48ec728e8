"""
queuectl - persistent background job queue.

Shell-command jobs are stored durably, claimed atomically by one or more
dispatchers, retried with exponential backoff and dead-lettered once their
retry budget is spent.
"""

__version__ = "1.0.0"
