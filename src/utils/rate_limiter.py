"""
Rate limiting utility for inbound API traffic
"""
import time
from collections import deque
from threading import Lock
from typing import Callable, Deque, Dict, Optional
import logging

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Per-client rate limiter
    Uses sliding window algorithm
    """

    def __init__(self, max_requests: int, window_seconds: float = 900.0, clock: Optional[Callable[[], float]] = None):
        """
        Initialize rate limiter

        Args:
            max_requests: Maximum number of requests allowed per window and client (0 disables limiting)
            window_seconds: Length of the sliding window
            clock: Time source, defaults to time.monotonic
        """
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock or time.monotonic
        self._hits: Dict[str, Deque[float]] = {}
        self._last_prune = self._clock()
        self._lock = Lock()

    def _cleanup_old_requests(self, hits: Deque[float], current_time: float) -> None:
        """Remove requests older than the window"""
        while hits and current_time - hits[0] >= self.window_seconds:
            hits.popleft()

    def _prune_idle_clients(self, current_time: float) -> None:
        """Drop clients with no requests left in the window, at most once per window"""
        if current_time - self._last_prune < self.window_seconds:
            return
        self._last_prune = current_time
        for key in [k for k, hits in self._hits.items() if not hits or current_time - hits[-1] >= self.window_seconds]:
            del self._hits[key]

    def allow(self, key: str) -> bool:
        """
        Record a request for `key` and report whether it is within the limit.
        Rejected requests are not recorded.
        """
        if not self.max_requests:
            return True

        with self._lock:
            current_time = self._clock()
            self._prune_idle_clients(current_time)
            hits = self._hits.setdefault(key, deque())
            self._cleanup_old_requests(hits, current_time)
            if len(hits) >= self.max_requests:
                logger.debug("Rate limit reached for %s", key)
                return False
            hits.append(current_time)
            return True

    def retry_after(self, key: str) -> float:
        """Seconds until the oldest request for `key` leaves the window"""
        with self._lock:
            hits = self._hits.get(key)
            if not hits:
                return 0.0
            return max(0.0, self.window_seconds - (self._clock() - hits[0]))

    def get_stats(self, key: str) -> dict:
        """Get current rate limiter statistics for a client"""
        with self._lock:
            hits = self._hits.get(key) or deque()
            self._cleanup_old_requests(hits, self._clock())
            if not hits:
                self._hits.pop(key, None)
            return {
                'requests_in_window': len(hits),
                'limit': self.max_requests,
                'window_seconds': self.window_seconds,
            }
