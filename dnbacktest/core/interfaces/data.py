"""
Data access and metrics interfaces.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import TYPE_CHECKING

import pandas as pd

from dnbacktest.core.enums import DataSource
from dnbacktest.core.models.market import HistoricalSample, LoadedSeries

if TYPE_CHECKING:
    from dnbacktest.core.utils.cancellation import CancellationToken


class IHistoricalDataSource(ABC):
    """Abstract interface for a source of historical price/funding samples."""

    #: Registry name used by configuration (e.g. "live", "synthetic")
    name: str = "abstract"
    #: Origin reported on results for series served by this source
    data_source: DataSource = DataSource.SYNTHETIC

    @abstractmethod
    async def get_series(
        self,
        asset: str,
        start_ms: int,
        end_ms: int,
        cancellation: "CancellationToken | None" = None,
    ) -> list[HistoricalSample]:
        """Load samples for ``asset`` covering ``[start_ms, end_ms]``.

        Sources that make several requests check ``cancellation`` between them.

        Raises:
            DataError: If the source cannot provide usable data
        """
        pass


class ISeriesProvider(ABC):
    """Abstract interface for the provider the backtester loads series through.

    Implementations never raise for upstream data failures; they fall back
    to lower-fidelity data and report it on the returned LoadedSeries.
    """

    @abstractmethod
    async def get_series(
        self,
        asset: str,
        start_ms: int,
        end_ms: int,
        cancellation: "CancellationToken | None" = None,
    ) -> LoadedSeries:
        """Load one asset."""
        pass

    @abstractmethod
    async def get_many(
        self,
        assets: Sequence[str],
        start_ms: int,
        end_ms: int,
        cancellation: "CancellationToken | None" = None,
    ) -> dict[str, LoadedSeries]:
        """Load several assets concurrently, keyed by asset."""
        pass


class IMetricsCalculator(ABC):
    """Abstract interface for performance metrics calculation."""

    @abstractmethod
    def calculate_returns(self, portfolio_history: pd.DataFrame) -> dict[str, float]:
        """Calculate return metrics."""
        pass

    @abstractmethod
    def calculate_risk_metrics(self, portfolio_history: pd.DataFrame) -> dict[str, float]:
        """Calculate risk-adjusted metrics."""
        pass
