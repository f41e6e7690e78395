"""
Request history for health checks and usage statistics.
"""

import threading
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, Optional

from .rate_limiter import Clock

TIME_WINDOWS = {
    "1h": 3600.0,
    "24h": 86400.0,
    "7d": 604800.0,
}
DEFAULT_TIME_WINDOW = "24h"

# Longest reportable window; older entries are dropped on record()
RETENTION_SECONDS = max(TIME_WINDOWS.values())


class UsageTracker:
    """
    Thread-safe log of admitted API requests.

    Timestamps are wall-clock seconds so they can be reported as ISO dates.
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        requests_per_second: float = 3.0
    ):
        self.clock = clock or Clock()
        self.requests_per_second = requests_per_second
        self._lock = threading.Lock()
        self._history: Deque[float] = deque()
        self._total = 0

    @property
    def total_requests(self) -> int:
        """Requests recorded since startup."""
        return self._total

    def record(self) -> None:
        """Record one request at the current time."""
        now = self.clock.time()
        cutoff = now - RETENTION_SECONDS
        with self._lock:
            self._history.append(now)
            self._total += 1
            while self._history and self._history[0] < cutoff:
                self._history.popleft()

    def count_since(self, seconds: float) -> int:
        """Number of requests within the last ``seconds``."""
        cutoff = self.clock.time() - seconds
        with self._lock:
            return sum(1 for ts in self._history if ts > cutoff)

    def last_request_time(self) -> Optional[str]:
        """ISO timestamp of the most recent request, if any."""
        with self._lock:
            if not self._history:
                return None
            last = self._history[-1]
        return datetime.fromtimestamp(last, tz=timezone.utc).isoformat()

    def rate_limit_status(self) -> Dict[str, Any]:
        """Summarize load over the last second."""
        last_second = self.count_since(1.0)
        approaching = last_second >= max(1, int(self.requests_per_second) - 1)
        return {
            "requestsInLastSecond": last_second,
            "requestsInLastHour": self.count_since(TIME_WINDOWS["1h"]),
            "rateLimitApproaching": approaching,
            "recommendation": "Slow down requests" if approaching else "Normal operation",
        }

    def statistics(self, time_window: str = DEFAULT_TIME_WINDOW) -> Dict[str, Any]:
        """
        Usage statistics for a named window.

        Args:
            time_window: One of "1h", "24h" or "7d"; unknown values fall back to 24h

        Returns:
            Dictionary with request counts and averages
        """
        if time_window not in TIME_WINDOWS:
            time_window = DEFAULT_TIME_WINDOW
        window_seconds = TIME_WINDOWS[time_window]
        count = self.count_since(window_seconds)

        return {
            "timeWindow": time_window,
            "requestCount": count,
            "averageRequestsPerMinute": count / (window_seconds / 60.0),
            "totalRequests": self._total,
            "lastRequestTime": self.last_request_time(),
            "rateLimitStatus": self.rate_limit_status(),
            "currentTime": datetime.fromtimestamp(
                self.clock.time(), tz=timezone.utc
            ).isoformat(),
        }
