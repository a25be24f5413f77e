"""Per-client fixed-window rate limiting for the API."""
from datetime import datetime, timedelta
from typing import Dict, Optional, Tuple
import threading

from cyberchat.core.clock import Clock, utcnow


class RateLimiter:
    """
    Per-client rate limiting.

    Tracks requests per client key per window. A client's counter resets
    when a request arrives after its window has elapsed.
    """

    def __init__(
        self,
        max_requests: int = 100,
        window_seconds: int = 15 * 60,
        clock: Optional[Clock] = None,
    ):
        """Initialize rate limiter."""
        self.max_requests = max_requests
        self.window = timedelta(seconds=window_seconds)
        self.clock = clock or utcnow
        self._lock = threading.Lock()
        # In-memory counter: {client_key: (count, window_start)}
        self._counters: Dict[str, Tuple[int, datetime]] = {}

    def check_and_increment(self, client_key: str) -> bool:
        """
        Check if client is within rate limit and increment counter.

        Returns:
            True if request allowed, False if rate limit exceeded
        """
        now = self.clock()

        with self._lock:
            if client_key not in self._counters:
                self._counters[client_key] = (1, now)
                return True

            count, window_start = self._counters[client_key]

            # Check if the window has elapsed
            if now - window_start >= self.window:
                self._counters[client_key] = (1, now)
                return True

            # Same window - check if under limit
            if count < self.max_requests:
                self._counters[client_key] = (count + 1, window_start)
                return True

            # Rate limit exceeded
            return False
