"""
Data source selection by name.
"""

from typing import Any

from dnbacktest.core.exceptions.backtest import ConfigurationError
from dnbacktest.core.interfaces.data import IHistoricalDataSource

from .csv_source import CsvDataSource
from .live_source import LiveExchangeDataSource
from .synthetic_source import SyntheticDataSource

DATA_SOURCES: dict[str, type[IHistoricalDataSource]] = {
    SyntheticDataSource.name: SyntheticDataSource,
    LiveExchangeDataSource.name: LiveExchangeDataSource,
    CsvDataSource.name: CsvDataSource,
}


def create_data_source(name: str, **options: Any) -> IHistoricalDataSource:
    """
    Build a data source from its configuration name.

    Args:
        name: "synthetic", "live" or "csv"
        **options: Keyword arguments of the source's constructor

    Raises:
        ConfigurationError: If the name is unknown or the options are invalid
    """
    source_class = DATA_SOURCES.get(name.lower())
    if source_class is None:
        raise ConfigurationError(
            f"Unknown data source: {name}. Available sources: {', '.join(DATA_SOURCES)}"
        )
    try:
        return source_class(**options)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid options for {name} data source: {e}") from e
