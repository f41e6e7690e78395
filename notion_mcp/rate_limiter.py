"""
Token bucket rate limiting for outbound Notion API calls.

Notion's API allows approximately 3 requests per second on average,
with some burst capacity. A single TokenBucket is shared by every caller
in the process, including file watcher threads.
"""

import logging
import threading
import time
from typing import Optional

logger = logging.getLogger(__name__)


class Clock:
    """Time source used by the rate limiter, retry loop and watchers."""

    def monotonic(self) -> float:
        """Monotonic seconds for measuring intervals."""
        return time.monotonic()

    def time(self) -> float:
        """Wall-clock seconds since the epoch."""
        return time.time()

    def sleep(self, seconds: float) -> None:
        """Block the calling thread."""
        if seconds > 0:
            time.sleep(seconds)


class TokenBucket:
    """
    Rate limiter implementing the token bucket algorithm.

    Holds up to ``capacity`` permits, refilled continuously at
    ``refill_rate`` permits per second. The lock is held across the
    wait so concurrent callers are admitted one at a time.
    """

    def __init__(
        self,
        capacity: float = 3.0,
        refill_rate: float = 3.0,
        clock: Optional[Clock] = None
    ):
        """
        Initialize the bucket full.

        Args:
            capacity: Maximum permits held at once
            refill_rate: Permits regenerated per second
            clock: Time source (defaults to the system clock)
        """
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        if refill_rate <= 0:
            raise ValueError(f"refill_rate must be > 0, got {refill_rate}")

        self.capacity = float(capacity)
        self.refill_rate = float(refill_rate)
        self.clock = clock or Clock()
        self._lock = threading.Lock()
        self._tokens = self.capacity
        self._last_refill = self.clock.monotonic()

    @property
    def available_tokens(self) -> float:
        """Permits available as of the last acquire() call."""
        return self._tokens

    def _refill(self) -> None:
        now = self.clock.monotonic()
        elapsed = max(0.0, now - self._last_refill)
        self._tokens = min(self.capacity, self._tokens + elapsed * self.refill_rate)
        self._last_refill = now

    def acquire(self) -> float:
        """
        Block until a permit is available and consume it.

        Returns:
            Seconds spent waiting (0.0 when a permit was available)
        """
        with self._lock:
            self._refill()

            if self._tokens >= 1:
                self._tokens -= 1
                return 0.0

            wait_time = (1 - self._tokens) / self.refill_rate
            logger.debug(f"Rate limiting: sleeping {wait_time:.3f}s")
            self.clock.sleep(wait_time)

            # Pessimistic reset: the permit accrued during the wait is consumed
            self._tokens = 0.0
            self._last_refill = self.clock.monotonic()
            return wait_time
