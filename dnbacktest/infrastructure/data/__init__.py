"""
Historical data infrastructure.

This module provides the data sources, the series cache and the
fallback-aware provider the backtester loads market data through.
"""

from .csv_source import CsvDataSource
from .factory import create_data_source
from .live_source import LiveExchangeDataSource
from .memory_source import InMemoryDataSource
from .provider import HistoricalDataProvider
from .series_cache import SeriesCache
from .series_validator import SeriesValidator
from .synthetic_source import SyntheticDataSource

__all__ = [
    "CsvDataSource",
    "HistoricalDataProvider",
    "InMemoryDataSource",
    "LiveExchangeDataSource",
    "SeriesCache",
    "SeriesValidator",
    "SyntheticDataSource",
    "create_data_source",
]
