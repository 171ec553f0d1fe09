"""Sliding-window rate limiting.

Admissions are recorded as timestamps per key; a request is admitted only if
fewer than ``max_requests`` admissions fall inside the trailing window.
"""

import time
from collections import deque
from typing import Callable, Optional


class SlidingWindowRateLimiter:
    """Sliding-window admission control keyed by an arbitrary string.

    The limiter relies on event-loop atomicity: ``allow`` never awaits, so
    check-and-record cannot interleave with another coroutine.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialize the rate limiter.

        Args:
            clock: Monotonic time source in seconds
        """
        self._clock = clock
        self._admissions: dict[str, deque[float]] = {}

    def _prune(self, key: str, window: float, now: float) -> deque[float]:
        admissions = self._admissions.get(key)
        if admissions is None:
            return deque()
        while admissions and now - admissions[0] >= window:
            admissions.popleft()
        if not admissions:
            # Drop idle keys
            del self._admissions[key]
        return admissions

    def allow(self, key: str, max_requests: int, window: float) -> bool:
        """Admit a request if the key is under its limit.

        Args:
            key: Rate limit key (server name, client IP, ...)
            max_requests: Maximum admissions inside one window
            window: Window length in seconds

        Returns:
            True if admitted (and recorded), False if denied
        """
        now = self._clock()
        admissions = self._prune(key, window, now)
        if len(admissions) >= max_requests:
            return False
        admissions.append(now)
        self._admissions[key] = admissions
        return True

    def remaining(self, key: str, max_requests: int, window: float) -> int:
        """Get how many more requests the key may make in the current window."""
        admissions = self._prune(key, window, self._clock())
        return max(0, max_requests - len(admissions))

    def reset_time(self, key: str, window: float) -> float:
        """Get seconds until the oldest admission leaves the window.

        Args:
            key: Rate limit key
            window: Window length in seconds

        Returns:
            Seconds until a slot frees up (0.0 if the key has no admissions)
        """
        now = self._clock()
        admissions = self._prune(key, window, now)
        if not admissions:
            return 0.0
        return max(0.0, window - (now - admissions[0]))

    def tracked_keys(self) -> list[str]:
        """List keys that still have admissions inside their window."""
        return list(self._admissions)

    def reset(self, key: Optional[str] = None) -> None:
        """Forget admissions for one key, or for all keys."""
        if key is None:
            self._admissions.clear()
        else:
            self._admissions.pop(key, None)
