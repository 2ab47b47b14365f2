# plugin_gate/core/ip_sessions.py
"""
In-memory IP session cache.

After a full license validation succeeds, the client IP is remembered together
with the license key for a bounded time. Cheap, high-frequency checks
(`/check-ip`) read this cache instead of re-running device admission.

The cache is an injectable object (one instance lives on ``app.state``) so tests
can build isolated instances and drive time through the ``clock`` argument.
"""
import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

logger = logging.getLogger("uvicorn.error")


@dataclass(frozen=True)
class IpSession:
    """A validated license key remembered for one client IP."""
    ip: str
    license_key: str
    expires_at: float  # clock() value after which the session is dead
    remaining: float   # seconds left at the time of the read


class IpSessionCache:
    """
    Thread-safe TTL map: client IP -> (license key, expiry).

    - put() overwrites any previous session for the IP and resets the TTL
    - get() drops expired entries lazily
    - sweep() / the background sweeper bound memory without reads
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, tuple[str, float]] = {}
        self._sweeper: Optional[asyncio.Task] = None

    def put(self, ip: str, license_key: str, ttl: Optional[float] = None) -> IpSession:
        ttl = self.ttl_seconds if ttl is None else ttl
        expires_at = self._clock() + ttl
        with self._lock:
            self._entries[ip] = (license_key, expires_at)
        return IpSession(ip=ip, license_key=license_key, expires_at=expires_at, remaining=ttl)

    def get(self, ip: str) -> Optional[IpSession]:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(ip)
            if entry is None:
                return None
            license_key, expires_at = entry
            if now > expires_at:
                del self._entries[ip]
                return None
        return IpSession(ip=ip, license_key=license_key, expires_at=expires_at, remaining=expires_at - now)

    def evict(self, ip: str) -> bool:
        with self._lock:
            return self._entries.pop(ip, None) is not None

    def sweep(self) -> int:
        """Remove every expired entry; returns how many were dropped."""
        now = self._clock()
        with self._lock:
            dead = [ip for ip, (_, expires_at) in self._entries.items() if now > expires_at]
            for ip in dead:
                del self._entries[ip]
        return len(dead)

    def snapshot(self) -> List[IpSession]:
        """Live sessions, for the admin "active sessions" view."""
        now = self._clock()
        with self._lock:
            items = list(self._entries.items())
        return [
            IpSession(ip=ip, license_key=key, expires_at=expires_at, remaining=expires_at - now)
            for ip, (key, expires_at) in items
            if now <= expires_at
        ]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # -------- background sweep --------
    async def _sweep_forever(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            dropped = self.sweep()
            if dropped:
                logger.info("[ip-sessions] swept %d expired session(s)", dropped)

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
