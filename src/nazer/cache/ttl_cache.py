"""
Expiring key/value cache for short-lived lookups.

Entries expire lazily on read and are also purged by a background sweep task,
so keys that are never read again do not accumulate. There is no size-based
eviction; the cache only holds small lookups (quarantine state, bot rights,
trigger configuration) that go stale quickly anyway.
"""

from __future__ import annotations

import asyncio
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Hashable, List, Optional, TypeVar

from nazer.util.logger import get_logger

logger = get_logger("ttl_cache")

T = TypeVar("T")


@dataclass(slots=True)
class CacheEntry(Generic[T]):
    value: T
    stored_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.stored_at > self.ttl


class TTLCache:
    """
    TTL-based cache with lazy expiry and a periodic sweep.

    Args:
        default_ttl: Lifetime in seconds used when ``set`` gets no explicit ttl.
        sweep_interval: Seconds between background purges of expired entries.
        clock: Monotonic time source; injectable for tests.
    """

    def __init__(
        self,
        default_ttl: float = 300.0,
        sweep_interval: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if default_ttl <= 0:
            raise ValueError("default_ttl must be positive")
        if sweep_interval <= 0:
            raise ValueError("sweep_interval must be positive")
        self._entries: Dict[Hashable, CacheEntry[Any]] = {}
        self._lock = threading.RLock()
        self._default_ttl = float(default_ttl)
        self._sweep_interval = float(sweep_interval)
        self._clock = clock
        self._sweep_task: asyncio.Task | None = None

    @property
    def default_ttl(self) -> float:
        return self._default_ttl

    # ------------------------------------------------------------------
    # Map operations
    # ------------------------------------------------------------------

    def set(self, key: Hashable, value: Any, ttl: Optional[float] = None) -> None:
        """Store ``value`` under ``key`` for ``ttl`` seconds (default ttl if omitted)."""
        lifetime = self._default_ttl if ttl is None else float(ttl)
        if lifetime <= 0:
            raise ValueError("ttl must be positive")
        entry = CacheEntry(value=value, stored_at=self._clock(), ttl=lifetime)
        with self._lock:
            self._entries[key] = entry
        logger.debug("[CACHE] Set key: %s (ttl=%.1fs)", key, lifetime)

    def get(self, key: Hashable, default: Any = None) -> Any:
        """
        Return the cached value, or ``default`` on a miss.

        An entry older than its ttl is removed here and reported as a miss.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            if entry.is_expired(self._clock()):
                del self._entries[key]
                logger.debug("[CACHE] Expired key: %s", key)
                return default
            return entry.value

    def delete(self, key: Hashable) -> bool:
        """Drop ``key``; returns True if it was present."""
        with self._lock:
            removed = self._entries.pop(key, None) is not None
        if removed:
            logger.debug("[CACHE] Invalidated key: %s", key)
        return removed

    def clear(self) -> int:
        """Drop every entry and return how many there were."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.debug("[CACHE] Cleared all %d entries", count)
        return count

    def stats(self) -> Dict[str, Any]:
        """Return the number of stored entries and their keys.

        Expired entries that have not been swept yet are still counted.
        """
        with self._lock:
            keys: List[Hashable] = list(self._entries.keys())
        return {"count": len(keys), "keys": keys}

    def purge_expired(self) -> int:
        """Remove every entry whose ttl has elapsed; returns the number removed."""
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug("[CACHE] Swept %d expired entries", len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # ------------------------------------------------------------------
    # Background sweep
    # ------------------------------------------------------------------

    async def _sweep_loop(self) -> None:
        logger.info("[CACHE] Starting sweep (interval=%.1fs)", self._sweep_interval)
        try:
            while True:
                await asyncio.sleep(self._sweep_interval)
                try:
                    self.purge_expired()
                except Exception as exc:
                    logger.error("[CACHE] Sweep failed: %s", exc)
        except asyncio.CancelledError:
            logger.info("[CACHE] Sweep cancelled")
            raise

    def start_sweeper(self) -> None:
        """Start the background sweep task if it is not already running."""
        if self._sweep_task and not self._sweep_task.done():
            logger.warning("[CACHE] Sweep task already running")
            return
        self._sweep_task = asyncio.get_running_loop().create_task(
            self._sweep_loop(), name="nazer-cache-sweep"
        )

    @property
    def sweeper_running(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    async def shutdown(self) -> None:
        """Stop the sweep task. Cached entries are kept."""
        if self._sweep_task and not self._sweep_task.done():
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
        self._sweep_task = None
