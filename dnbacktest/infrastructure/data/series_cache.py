"""
Read-through cache of loaded time series.

Shared between concurrent backtests. Entries are immutable TimeSeries
objects, and the lock only guards dictionary access: a load in progress
never blocks lookups or loads of other keys.
"""

from collections.abc import Awaitable, Callable
from threading import RLock
from typing import Any

from cachetools import LRUCache
from loguru import logger

from dnbacktest.core.constants import DEFAULT_SERIES_CACHE_SIZE
from dnbacktest.core.enums import DataSource
from dnbacktest.core.exceptions.backtest import ConfigurationError
from dnbacktest.core.models.market import TimeSeries

from .cache_statistics import CacheStatistics

# (source name, asset, start ms, end ms)
SeriesKey = tuple[str, str, int, int]
CachedSeries = tuple[TimeSeries, DataSource]


class SeriesCache:
    """LRU cache of (series, origin) pairs keyed by source, asset and window."""

    def __init__(self, cache_size: int = DEFAULT_SERIES_CACHE_SIZE) -> None:
        if cache_size <= 0:
            raise ConfigurationError("Cache size must be positive")
        self._cache: LRUCache[SeriesKey, CachedSeries] = LRUCache(maxsize=cache_size)
        self._lock = RLock()
        self._statistics = CacheStatistics()

    @staticmethod
    def build_key(source: str, asset: str, start_ms: int, end_ms: int) -> SeriesKey:
        return (source, asset.lower(), start_ms, end_ms)

    def get(self, key: SeriesKey) -> CachedSeries | None:
        with self._lock:
            entry = self._cache.get(key)
        if entry is None:
            self._statistics.record_miss()
            logger.debug(f"Series cache miss for {key[1]} ({key[0]})")
        else:
            self._statistics.record_hit()
            logger.debug(f"Series cache hit for {key[1]} ({key[0]})")
        return entry

    def set(self, key: SeriesKey, series: TimeSeries, data_source: DataSource) -> None:
        with self._lock:
            self._cache[key] = (series, data_source)

    async def get_or_load(
        self, key: SeriesKey, loader: Callable[[], Awaitable[CachedSeries]]
    ) -> CachedSeries:
        """Return the cached entry or await ``loader`` and cache its result.

        Two concurrent misses on the same key both load; the later result
        replaces the earlier one, which is equivalent for immutable series.
        """
        cached = self.get(key)
        if cached is not None:
            return cached
        try:
            series, data_source = await loader()
        except Exception:
            self._statistics.record_load_failure()
            raise
        self.set(key, series, data_source)
        return series, data_source

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._cache

    def clear(self) -> None:
        with self._lock:
            count = len(self._cache)
            self._cache.clear()
        logger.debug(f"Series cache cleared ({count} entries)")

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            size = len(self._cache)
        return self._statistics.get_stats(cache_size=size, max_size=int(self._cache.maxsize))
