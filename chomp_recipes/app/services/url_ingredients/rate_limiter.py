"""Per-identity fixed-window rate limiting.

The window table lives in a ``RateLimitStore``. ``MemoryRateLimitStore`` is
process-local and suitable for single-instance deployments; a shared store
only needs to implement the same three methods.

Lifecycle: a ``RateLimiter`` starts with an empty table, ``start()`` launches
the periodic sweep of expired windows and ``stop()`` cancels it.
"""

import asyncio
import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol

from pydantic import BaseModel

from chomp_recipes.app.core.config import get_settings

logger = logging.getLogger(__name__)

DEFAULT_MAX_REQUESTS = 30
DEFAULT_WINDOW_SECONDS = 60.0
DEFAULT_SWEEP_INTERVAL_SECONDS = 60.0

Clock = Callable[[], float]


@dataclass
class RateLimitWindow:
    count: int
    reset_at: float


class RateLimitStore(Protocol):
    async def increment(self, key: str, window_seconds: float) -> RateLimitWindow: ...

    async def reset(self, key: str) -> None: ...

    async def sweep(self) -> int: ...


class MemoryRateLimitStore:
    """In-memory window table.

    The read-increment-write for a key happens under a lock, so concurrent
    requests for one identity never observe a stale count.
    """

    def __init__(self, clock: Clock = time.monotonic) -> None:
        self._clock = clock
        self._entries: Dict[str, RateLimitWindow] = {}
        self._lock = threading.Lock()

    async def increment(self, key: str, window_seconds: float) -> RateLimitWindow:
        now = self._clock()
        with self._lock:
            existing = self._entries.get(key)
            if existing is None or existing.reset_at <= now:
                existing = RateLimitWindow(count=1, reset_at=now + window_seconds)
                self._entries[key] = existing
            else:
                existing.count += 1
            return RateLimitWindow(count=existing.count, reset_at=existing.reset_at)

    async def reset(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    async def sweep(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.reset_at <= now]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class RateLimitDecision(BaseModel):
    allowed: bool
    limit: int
    remaining: Optional[int] = None
    reset_at: Optional[float] = None
    reset_seconds: Optional[int] = None

    def headers(self) -> Dict[str, str]:
        """Rate-limit response headers; empty when the store failed open."""
        if self.remaining is None or self.reset_seconds is None:
            return {}
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_seconds),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.reset_seconds)
        return headers


class RateLimiter:
    def __init__(
        self,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        store: Optional[RateLimitStore] = None,
        clock: Clock = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.sweep_interval_seconds = sweep_interval_seconds
        self._clock = clock
        self.store = store if store is not None else MemoryRateLimitStore(clock=clock)
        self._sweep_task: Optional[asyncio.Task] = None

    @classmethod
    def from_settings(cls) -> "RateLimiter":
        settings = get_settings()
        return cls(
            max_requests=settings.rate_limit_max_requests,
            window_seconds=settings.rate_limit_window_seconds,
            sweep_interval_seconds=settings.rate_limit_sweep_interval_seconds,
        )

    @staticmethod
    def key_for(identity: str) -> str:
        return f"rate_limit:{identity}"

    async def check(self, identity: str) -> RateLimitDecision:
        try:
            window = await self.store.increment(self.key_for(identity), self.window_seconds)
        except Exception as exc:  # noqa: BLE001
            # Store failures fail open.
            logger.warning("Rate limit store failed for identity=%s; allowing request: %s", identity, exc)
            return RateLimitDecision(allowed=True, limit=self.max_requests)

        remaining = max(0, self.max_requests - window.count)
        reset_seconds = max(1, math.ceil(window.reset_at - self._clock()))
        allowed = window.count <= self.max_requests
        if not allowed:
            logger.info("Rate limit exceeded for identity=%s (count=%d)", identity, window.count)
        return RateLimitDecision(
            allowed=allowed,
            limit=self.max_requests,
            remaining=remaining,
            reset_at=window.reset_at,
            reset_seconds=reset_seconds,
        )

    async def reset(self, identity: str) -> None:
        await self.store.reset(self.key_for(identity))

    async def sweep(self) -> int:
        removed = await self.store.sweep()
        if removed:
            logger.debug("Rate limit sweep removed %d expired windows", removed)
        return removed

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_seconds)
            try:
                await self.sweep()
            except Exception:  # noqa: BLE001
                logger.exception("Rate limit sweep failed")

    def start(self) -> None:
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = asyncio.get_running_loop().create_task(self._sweep_loop())

    async def stop(self) -> None:
        task, self._sweep_task = self._sweep_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    @property
    def running(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()
