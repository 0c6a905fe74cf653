"""
Rate Limiting Module.

Limits how many inbound events each channel identity may trigger within a
sliding window, so a single candidate cannot flood the extraction service.

Uses a sliding window of timestamps per identity.

Usage:
    limiter = IdentityRateLimiter(max_requests=10, window_seconds=60)

    if not limiter.check(identity):
        channel.send(identity, messages.rate_limited)
        return
"""

import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Optional

from src.common.config import Config


@dataclass
class RateLimitStats:
    """Statistics for rate limiting."""
    total_requests: int = 0
    rejected_requests: int = 0
    tracked_identities: int = 0


class RateLimitExceededError(Exception):
    """Raised when an identity exceeds its window and raising was requested."""

    def __init__(self, identity: str, current: int, limit: int):
        self.identity = identity
        self.current = current
        self.limit = limit
        super().__init__(f"Rate limit exceeded: {current}/{limit} in window")


class IdentityRateLimiter:
    """
    Thread-safe per-identity rate limiter using a sliding window.

    Each accepted request is recorded; rejected requests are not, so a
    flooding identity regains access once its window drains.
    """

    def __init__(
        self,
        max_requests: Optional[int] = None,
        window_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize rate limiter.

        Args:
            max_requests: Requests allowed per window (default from Config)
            window_seconds: Window length in seconds (default from Config)
            clock: Monotonic time source, injectable for tests
        """
        self.max_requests = max_requests if max_requests is not None else Config.RATE_LIMIT_REQUESTS
        self.window_seconds = (
            window_seconds if window_seconds is not None else Config.RATE_LIMIT_WINDOW_SECONDS
        )
        self._clock = clock
        self._windows: Dict[str, Deque[float]] = {}
        self._lock = threading.Lock()
        self._stats = RateLimitStats()

    def _clean_window(self, window: Deque[float], now: float) -> None:
        """Remove entries older than the window from the deque."""
        cutoff = now - self.window_seconds
        while window and window[0] <= cutoff:
            window.popleft()

    def check(self, identity: str) -> bool:
        """
        Record a request for an identity if allowed.

        Returns:
            True if the request is allowed, False if rate limited
        """
        with self._lock:
            now = self._clock()
            window = self._windows.setdefault(identity, deque())
            self._clean_window(window, now)

            if len(window) >= self.max_requests:
                self._stats.rejected_requests += 1
                return False

            window.append(now)
            self._stats.total_requests += 1
            return True

    def enforce(self, identity: str) -> None:
        """
        Like check(), but raises when limited.

        Raises:
            RateLimitExceededError: If the identity is over its limit
        """
        if not self.check(identity):
            raise RateLimitExceededError(identity, len(self._windows[identity]), self.max_requests)

    def prune(self) -> int:
        """Drop identities whose window is empty. Returns how many were dropped."""
        with self._lock:
            now = self._clock()
            stale = []
            for identity, window in self._windows.items():
                self._clean_window(window, now)
                if not window:
                    stale.append(identity)
            for identity in stale:
                del self._windows[identity]
            return len(stale)

    def get_stats(self) -> RateLimitStats:
        """Get rate limiting statistics."""
        with self._lock:
            return RateLimitStats(
                total_requests=self._stats.total_requests,
                rejected_requests=self._stats.rejected_requests,
                tracked_identities=len(self._windows),
            )

    def reset(self) -> None:
        """Reset all rate limit tracking."""
        with self._lock:
            self._windows.clear()
            self._stats = RateLimitStats()
