"""
Historical data provider.

Loads validated series from the configured source and falls back to the
synthetic generator on any upstream failure. The fallback is never an
exception for the caller, but it is logged and reported on the returned
LoadedSeries.
"""

import asyncio
from collections.abc import Sequence

import requests
from loguru import logger

from dnbacktest.core.enums import DataSource
from dnbacktest.core.exceptions.backtest import DataError
from dnbacktest.core.interfaces.data import IHistoricalDataSource, ISeriesProvider
from dnbacktest.core.models.market import LoadedSeries, TimeSeries
from dnbacktest.core.utils.cancellation import CancellationToken, check_cancelled

from .series_cache import CachedSeries, SeriesCache
from .series_validator import SeriesValidator
from .synthetic_source import SyntheticDataSource

# Failures of a real source that trigger the synthetic fallback
UPSTREAM_ERRORS = (DataError, requests.RequestException, ValueError, KeyError, TypeError, OSError)


class HistoricalDataProvider(ISeriesProvider):
    """
    Read-through, fallback-aware access to historical series.

    Args:
        source: Primary data source
        fallback: Source used when the primary one fails
        cache: Series cache shared by every backtest using this provider
        validator: Checks applied to every loaded series
    """

    def __init__(
        self,
        source: IHistoricalDataSource | None = None,
        fallback: IHistoricalDataSource | None = None,
        cache: SeriesCache | None = None,
        validator: SeriesValidator | None = None,
    ) -> None:
        self.fallback = fallback or SyntheticDataSource()
        self.source = source or self.fallback
        self.cache = cache if cache is not None else SeriesCache()
        self.validator = validator or SeriesValidator()

    async def get_series(
        self,
        asset: str,
        start_ms: int,
        end_ms: int,
        cancellation: CancellationToken | None = None,
    ) -> LoadedSeries:
        check_cancelled(cancellation, f"loading {asset}")
        key = SeriesCache.build_key(self.source.name, asset, start_ms, end_ms)
        series, data_source = await self.cache.get_or_load(
            key, lambda: self._load(asset, start_ms, end_ms, cancellation)
        )
        return LoadedSeries(asset=asset, series=series, data_source=data_source)

    async def get_many(
        self,
        assets: Sequence[str],
        start_ms: int,
        end_ms: int,
        cancellation: CancellationToken | None = None,
    ) -> dict[str, LoadedSeries]:
        loaded = await asyncio.gather(
            *(self.get_series(asset, start_ms, end_ms, cancellation) for asset in assets)
        )
        return {item.asset: item for item in loaded}

    async def _load(
        self,
        asset: str,
        start_ms: int,
        end_ms: int,
        cancellation: CancellationToken | None,
    ) -> CachedSeries:
        try:
            return await self._load_from(self.source, asset, start_ms, end_ms, cancellation)
        except UPSTREAM_ERRORS as e:
            if self.source is self.fallback:
                raise
            logger.warning(
                f"Falling back to {self.fallback.name} data for {asset}: "
                f"{self.source.name} source failed ({type(e).__name__}: {e})"
            )

        check_cancelled(cancellation, f"fallback for {asset}")
        return await self._load_from(self.fallback, asset, start_ms, end_ms, cancellation)

    async def _load_from(
        self,
        source: IHistoricalDataSource,
        asset: str,
        start_ms: int,
        end_ms: int,
        cancellation: CancellationToken | None,
    ) -> tuple[TimeSeries, DataSource]:
        samples = await source.get_series(asset, start_ms, end_ms, cancellation=cancellation)
        self.validator.validate(asset, samples)
        logger.info(f"Loaded {len(samples)} {source.name} samples for {asset}")
        return TimeSeries(asset, samples), source.data_source
