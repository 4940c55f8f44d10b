"""In-memory key/value cache with per-entry TTL.

Holds the accept-orders feature flag and cached order statistics.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """A cached value with optional expiration."""

    value: Any
    expires_at: float | None

    def is_expired(self) -> bool:
        """Check if this entry has expired."""
        return self.expires_at is not None and time.time() > self.expires_at


@dataclass
class CacheConfig:
    """Configuration for the cache."""

    max_size: int = 1000  # Maximum cached entries
    default_ttl_seconds: int | None = 3600
    cleanup_interval_seconds: int = 60

    @classmethod
    def from_settings(cls) -> "CacheConfig":
        """Create config from application settings."""
        from storefront.core.config import get_settings
        settings = get_settings()
        return cls(
            max_size=settings.cache_max_size,
            default_ttl_seconds=settings.cache_default_ttl,
        )


class TTLCache:
    """Thread-safe in-memory cache with get/set/delete and expiry."""

    def __init__(self, config: CacheConfig | None = None) -> None:
        """Initialize the cache.

        Args:
            config: Optional cache configuration.
        """
        self.config = config or CacheConfig()
        self._cache: dict[str, CacheEntry] = {}
        self._lock = Lock()
        self._cleanup_task: asyncio.Task | None = None

    async def start_cleanup_task(self) -> None:
        """Start background cleanup task."""
        if self._cleanup_task is None:
            self._cleanup_task = asyncio.create_task(self._cleanup_loop())
            logger.info("Cache cleanup task started")

    async def stop_cleanup_task(self) -> None:
        """Stop background cleanup task."""
        if self._cleanup_task:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None
            logger.info("Cache cleanup task stopped")

    async def _cleanup_loop(self) -> None:
        """Background loop to cleanup expired entries."""
        while True:
            await asyncio.sleep(self.config.cleanup_interval_seconds)
            count = self.cleanup()
            if count > 0:
                logger.debug("Cache cleaned up %d expired entries", count)

    def get(self, key: str) -> Any | None:
        """Get a cached value.

        Args:
            key: Cache key.

        Returns:
            The cached value, or None if missing or expired.
        """
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return None

            if entry.is_expired():
                del self._cache[key]
                return None

            return entry.value

    def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        """Cache a value.

        Args:
            key: Cache key.
            value: Value to store.
            ttl_seconds: Lifetime in seconds; falls back to the configured default.
        """
        ttl = ttl_seconds if ttl_seconds is not None else self.config.default_ttl_seconds
        expires_at = time.time() + ttl if ttl else None

        with self._lock:
            if key not in self._cache and len(self._cache) >= self.config.max_size:
                self._evict_oldest()
            self._cache[key] = CacheEntry(value=value, expires_at=expires_at)

    def delete(self, key: str) -> bool:
        """Remove a key.

        Returns:
            True if the key was present.
        """
        with self._lock:
            return self._cache.pop(key, None) is not None

    def _evict_oldest(self) -> None:
        """Evict entries to make room. Must be called with lock held."""
        expired_keys = [k for k, v in self._cache.items() if v.is_expired()]
        for key in expired_keys:
            del self._cache[key]

        # If still at capacity, drop the soonest-to-expire 10%
        if len(self._cache) >= self.config.max_size:
            sorted_entries = sorted(
                self._cache.items(),
                key=lambda x: x[1].expires_at if x[1].expires_at is not None else float("inf"),
            )
            to_remove = max(1, len(self._cache) // 10)
            for key, _ in sorted_entries[:to_remove]:
                del self._cache[key]
            logger.debug("Evicted %d entries from cache", to_remove)

    def cleanup(self) -> int:
        """Remove all expired entries.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            expired_keys = [k for k, v in self._cache.items() if v.is_expired()]
            for key in expired_keys:
                del self._cache[key]
            return len(expired_keys)

    def clear(self) -> int:
        """Clear all cached entries.

        Returns:
            Number of entries cleared.
        """
        with self._lock:
            count = len(self._cache)
            self._cache.clear()
            return count
