import time
from collections import defaultdict

from fastapi import Depends, Request

from media_api.errors import RateLimited


class SlidingWindowCounter:
    """In-memory sliding window rate limiter.

    Every ``sweep_interval`` calls, keys with no hits inside the longest
    window seen so far are dropped.
    """

    def __init__(self, sweep_interval: int = 1000):
        self._windows: dict[str, list[float]] = defaultdict(list)
        self._sweep_interval = sweep_interval
        self._max_window = 0.0
        self._calls = 0

    def __len__(self) -> int:
        return len(self._windows)

    def _sweep(self, now: float) -> None:
        cutoff = now - self._max_window
        stale = [key for key, hits in self._windows.items() if not hits or hits[-1] <= cutoff]
        for key in stale:
            del self._windows[key]

    def is_allowed(self, key: str, limit: int, window_seconds: float) -> tuple[bool, int, int]:
        now = time.monotonic()
        self._max_window = max(self._max_window, window_seconds)
        self._calls += 1
        if self._calls % self._sweep_interval == 0:
            self._sweep(now)

        cutoff = now - window_seconds
        self._windows[key] = [t for t in self._windows[key] if t > cutoff]

        if len(self._windows[key]) >= limit:
            retry_after = int(self._windows[key][0] - cutoff) + 1
            return False, max(retry_after, 1), 0

        self._windows[key].append(now)
        return True, 0, limit - len(self._windows[key])


def rate_limit(limit: int, window_seconds: int, key_prefix: str = "endpoint"):
    """Rate limit dependency keyed by client IP."""

    async def _check(request: Request) -> None:
        limiter: SlidingWindowCounter = request.app.state.rate_limiter
        client_ip = request.client.host if request.client else "unknown"
        allowed, retry_after, _remaining = limiter.is_allowed(
            f"{key_prefix}:ip:{client_ip}", limit, window_seconds
        )
        if not allowed:
            raise RateLimited(retry_after=retry_after)

    return Depends(_check)
