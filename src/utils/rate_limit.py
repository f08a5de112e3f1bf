"""Rate limiting and per-key serialization utilities."""

import asyncio
import time
from collections import deque
from contextlib import asynccontextmanager
from typing import AsyncIterator, Hashable


class RateLimiter:
    """Sliding-window rate limiter shared by concurrent callers."""

    def __init__(self, requests_per_minute: int = 10, period: float = 60.0):
        """Initialize rate limiter.

        Args:
            requests_per_minute: Maximum requests allowed per period.
            period: Window length in seconds.
        """
        if requests_per_minute <= 0:
            raise ValueError("requests_per_minute must be positive")
        self.requests_per_minute = requests_per_minute
        self.period = period
        self.min_interval = period / requests_per_minute
        self._timestamps: deque[float] = deque(maxlen=requests_per_minute)
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Wait until a request slot is available."""
        # Callers queue on the lock so the window is never over-committed
        async with self._lock:
            now = time.monotonic()

            while self._timestamps and now - self._timestamps[0] > self.period:
                self._timestamps.popleft()

            if len(self._timestamps) >= self.requests_per_minute:
                sleep_time = self.period - (now - self._timestamps[0])
                if sleep_time > 0:
                    await asyncio.sleep(sleep_time)

            if self._timestamps:
                elapsed = time.monotonic() - self._timestamps[-1]
                if elapsed < self.min_interval:
                    await asyncio.sleep(self.min_interval - elapsed)

            self._timestamps.append(time.monotonic())

    async def __aenter__(self) -> "RateLimiter":
        await self.acquire()
        return self

    async def __aexit__(self, *exc_info) -> None:
        return None


class KeyedLock:
    """One asyncio lock per key, dropped once nobody holds or waits on it.

    Used to serialize the whole enrich -> score -> gate -> enroll sequence
    for a single prospect while different prospects run in parallel.
    """

    def __init__(self):
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._waiters: dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    def is_locked(self, key: Hashable) -> bool:
        lock = self._locks.get(key)
        return bool(lock and lock.locked())
