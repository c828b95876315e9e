"""
Cache statistics tracking.

Counts hits, misses and failed loads of the series cache.
"""

from threading import RLock
from typing import Any

from loguru import logger


class CacheStatistics:
    """Thread-safe hit/miss/failure counters."""

    def __init__(self) -> None:
        self._stats_lock = RLock()
        self._hits = 0
        self._misses = 0
        self._load_failures = 0

    def record_hit(self) -> None:
        with self._stats_lock:
            self._hits += 1

    def record_miss(self) -> None:
        with self._stats_lock:
            self._misses += 1

    def record_load_failure(self) -> None:
        """Record a miss whose load raised; nothing was cached."""
        with self._stats_lock:
            self._load_failures += 1

    def get_hit_rate(self) -> float:
        """Fraction of lookups served from the cache."""
        with self._stats_lock:
            total = self._hits + self._misses
            return self._hits / total if total else 0.0

    def get_stats(self, cache_size: int | None = None, max_size: int | None = None) -> dict[str, Any]:
        """Current counters, with the cache occupancy when given."""
        with self._stats_lock:
            stats: dict[str, Any] = {
                "hits": self._hits,
                "misses": self._misses,
                "load_failures": self._load_failures,
                "hit_rate": round(self.get_hit_rate(), 4),
            }
        if cache_size is not None:
            stats["cache_size"] = cache_size
        if max_size is not None:
            stats["max_size"] = max_size
        return stats

    def reset_stats(self) -> None:
        with self._stats_lock:
            hits, misses = self._hits, self._misses
            self._hits = self._misses = self._load_failures = 0
        logger.debug(f"Cache statistics reset: {hits} hits, {misses} misses cleared")
