"""In-process sliding window rate limiting."""
from __future__ import annotations

import threading
import time
from collections import deque


class SlidingWindowRateLimiter:
    """Count hits per key over the trailing ``window_seconds``.

    State lives in process memory and is lost on restart; each replica keeps
    its own counters. Idle keys are swept at most once per window.
    """

    def __init__(self, window_seconds: float = 60.0) -> None:
        self.window_seconds = window_seconds
        self._hits: dict[str, deque[float]] = {}
        self._next_sweep: float | None = None
        self._lock = threading.Lock()

    def allow(self, key: str, limit: int, *, now: float | None = None) -> bool:
        """Record a hit for ``key`` and return whether it is within ``limit``."""

        current = time.monotonic() if now is None else now
        cutoff = current - self.window_seconds
        with self._lock:
            self._maybe_sweep(current, cutoff)
            hits = self._hits.setdefault(key, deque())
            while hits and hits[0] <= cutoff:
                hits.popleft()
            if len(hits) >= limit:
                return False
            hits.append(current)
            return True

    def _maybe_sweep(self, current: float, cutoff: float) -> None:
        if self._next_sweep is not None and current < self._next_sweep:
            return
        self._next_sweep = current + self.window_seconds
        for key, hits in list(self._hits.items()):
            if not hits or hits[-1] <= cutoff:
                del self._hits[key]

    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._hits)

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
            self._next_sweep = None


webhook_rate_limiter = SlidingWindowRateLimiter(window_seconds=60.0)

__all__ = ["SlidingWindowRateLimiter", "webhook_rate_limiter"]
