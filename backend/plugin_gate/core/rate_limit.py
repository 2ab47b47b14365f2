# plugin_gate/core/rate_limit.py
"""
Per-IP sliding-window rate limiter for the public endpoints.

Each bucket key is "<ip>:<route>" and holds the timestamps of the requests seen
inside the current window. A request is allowed while the window holds fewer
than ``max_requests`` entries.
"""
import asyncio
import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Optional

logger = logging.getLogger("uvicorn.error")


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    count: int          # requests in the window, including this one when allowed
    limit: int
    retry_after: float  # seconds until the oldest request leaves the window (0 when allowed)


class SlidingWindowRateLimiter:
    """Thread-safe in-memory limiter; one instance is shared on ``app.state``."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: Dict[str, Deque[float]] = {}
        self._spans: Dict[str, float] = {}
        self._sweeper: Optional[asyncio.Task] = None

    def hit(self, key: str, max_requests: int, window_seconds: float) -> RateLimitDecision:
        now = self._clock()
        window_start = now - window_seconds
        with self._lock:
            window = self._windows.setdefault(key, deque())
            self._spans[key] = window_seconds
            while window and window[0] <= window_start:
                window.popleft()

            if len(window) >= max_requests:
                retry_after = window[0] + window_seconds - now
                return RateLimitDecision(False, len(window), max_requests, max(retry_after, 0.0))

            window.append(now)
            return RateLimitDecision(True, len(window), max_requests, 0.0)

    def sweep(self) -> int:
        """Drop buckets whose requests have all left their window."""
        now = self._clock()
        with self._lock:
            stale = [
                key for key, window in self._windows.items()
                if not window or window[-1] <= now - self._spans.get(key, 0)
            ]
            for key in stale:
                self._windows.pop(key, None)
                self._spans.pop(key, None)
        return len(stale)

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()
            self._spans.clear()

    async def _sweep_forever(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            dropped = self.sweep()
            if dropped:
                logger.debug("[rate-limit] dropped %d idle bucket(s)", dropped)

    def start_sweeper(self, interval: float) -> None:
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_forever(interval))

    async def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None
