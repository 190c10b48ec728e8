"""
Retry backoff scheduling.

A job that fails its k-th attempt (1-indexed) becomes eligible again
`base ** k` seconds later. There is no ceiling unless `max_delay` is set.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from queuectl.constants import DEFAULT_BACKOFF_BASE


@dataclass(frozen=True)
class BackoffPolicy:
    """Exponential backoff with an optional cap."""

    base: float = DEFAULT_BACKOFF_BASE
    max_delay: float | None = None

    def __post_init__(self) -> None:
        if self.base < 1:
            raise ValueError(f"backoff base must be >= 1, got {self.base}")
        if self.max_delay is not None and self.max_delay <= 0:
            raise ValueError(f"backoff cap must be > 0, got {self.max_delay}")

    def delay(self, attempts: int) -> float:
        """
        Seconds to wait after the given failed attempt.

        Args:
            attempts: 1-indexed number of the attempt that just failed.

        Returns:
            Delay in seconds.
        """
        if attempts < 1:
            raise ValueError(f"attempts must be >= 1, got {attempts}")
        try:
            delay = float(self.base ** attempts)
        except OverflowError:
            delay = float("inf")
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return delay

    def next_run_at(self, attempts: int, now: datetime) -> datetime:
        """Timestamp at which a job that failed `attempts` times is eligible again."""
        delay = self.delay(attempts)
        try:
            return now + timedelta(seconds=delay)
        except OverflowError:
            return datetime.max
