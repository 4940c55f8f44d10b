"""In-memory sliding-window rate limiter for order placement."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field
from threading import Lock

logger = logging.getLogger(__name__)


@dataclass
class RateLimitConfig:
    """Configuration for rate limiting."""

    max_requests: int = 10
    window_seconds: int = 900
    cleanup_interval_seconds: int = 300

    @classmethod
    def from_settings(cls) -> "RateLimitConfig":
        """Create config from application settings."""
        from storefront.core.config import get_settings
        settings = get_settings()
        return cls(
            max_requests=settings.order_rate_limit_requests,
            window_seconds=settings.order_rate_limit_window_seconds,
        )


@dataclass
class RequestRecord:
    """Timestamps of recent requests for one key."""

    timestamps: list[float] = field(default_factory=list)

    def prune_old(self, window_seconds: int) -> None:
        """Remove timestamps older than the window."""
        cutoff = time.time() - window_seconds
        self.timestamps = [ts for ts in self.timestamps if ts > cutoff]

    def seconds_until_available(self, window_seconds: int) -> int:
        """Seconds until the oldest request in the window expires."""
        if not self.timestamps:
            return 0
        oldest = min(self.timestamps)
        return max(0, int(oldest + window_seconds - time.time()) + 1)


class InMemoryRateLimiter:
    """Thread-safe per-key request counter with automatic cleanup."""

    def __init__(self, config: RateLimitConfig | None = None) -> None:
        self.config = config or RateLimitConfig()
        self._storage: dict[str, RequestRecord] = defaultdict(RequestRecord)
        self._lock = Lock()
        self._cleanup_task: asyncio.Task | None = None

    async def start_cleanup_task(self) -> None:
        """Start background cleanup task."""
        if self._cleanup_task is None:
            self._cleanup_task = asyncio.create_task(self._cleanup_loop())
            logger.info("Rate limiter cleanup task started")

    async def stop_cleanup_task(self) -> None:
        """Stop background cleanup task."""
        if self._cleanup_task:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None
            logger.info("Rate limiter cleanup task stopped")

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.cleanup_interval_seconds)
            count = self.cleanup()
            if count > 0:
                logger.debug("Rate limiter cleaned up %d idle keys", count)

    def check_and_increment(self, key: str) -> tuple[bool, int, int]:
        """Check the limit for a key and record the request if allowed.

        Args:
            key: Unique identifier (e.g. ``order:<user_id>``).

        Returns:
            Tuple of (allowed, remaining_requests, retry_after_seconds).
        """
        window = self.config.window_seconds
        max_requests = self.config.max_requests

        with self._lock:
            record = self._storage[key]
            record.prune_old(window)

            if len(record.timestamps) >= max_requests:
                return (False, 0, record.seconds_until_available(window))

            record.timestamps.append(time.time())
            return (True, max_requests - len(record.timestamps), 0)

    def cleanup(self) -> int:
        """Remove keys with no requests inside the window."""
        window = self.config.window_seconds
        with self._lock:
            idle = []
            for key, record in self._storage.items():
                record.prune_old(window)
                if not record.timestamps:
                    idle.append(key)
            for key in idle:
                del self._storage[key]
            return len(idle)

    def reset(self) -> None:
        """Forget every recorded request."""
        with self._lock:
            self._storage.clear()


# Global singleton instance
_rate_limiter: InMemoryRateLimiter | None = None


def get_rate_limiter() -> InMemoryRateLimiter:
    """Get or create the global rate limiter instance."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = InMemoryRateLimiter(RateLimitConfig.from_settings())
    return _rate_limiter


async def init_rate_limiter() -> InMemoryRateLimiter:
    """Initialize rate limiter with cleanup task. Call at app startup."""
    limiter = get_rate_limiter()
    await limiter.start_cleanup_task()
    return limiter


async def shutdown_rate_limiter() -> None:
    """Shutdown rate limiter cleanup task. Call at app shutdown."""
    global _rate_limiter
    if _rate_limiter:
        await _rate_limiter.stop_cleanup_task()
