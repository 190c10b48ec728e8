"""
Small shared helpers.
"""

from datetime import datetime, timezone

from queuectl.constants import MAX_ERROR_LENGTH


def utcnow() -> datetime:
    """Naive UTC timestamp; the jobs table stores naive UTC on every backend."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def truncate_error(message: str, limit: int = MAX_ERROR_LENGTH) -> str:
    """Keep the tail of a failure message, where the useful part usually is."""
    message = message.strip()
    if len(message) <= limit:
        return message
    return "..." + message[-(limit - 3):]
