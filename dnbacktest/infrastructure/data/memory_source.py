"""
In-memory historical data source for caller-supplied samples.
"""

from collections.abc import Iterable, Mapping

from dnbacktest.core.enums import DataSource
from dnbacktest.core.exceptions.backtest import DataError
from dnbacktest.core.interfaces.data import IHistoricalDataSource
from dnbacktest.core.models.market import HistoricalSample
from dnbacktest.core.utils.cancellation import CancellationToken


class InMemoryDataSource(IHistoricalDataSource):
    """Serves fixed sample lists, filtered to the requested window.

    Useful for fixtures and for replaying data fetched elsewhere.
    """

    name = "memory"
    data_source = DataSource.MEMORY

    def __init__(self, series: Mapping[str, Iterable[HistoricalSample]]) -> None:
        self._series = {
            asset: sorted(samples, key=lambda s: s.timestamp) for asset, samples in series.items()
        }
        self.requests: list[tuple[str, int, int]] = []

    async def get_series(
        self,
        asset: str,
        start_ms: int,
        end_ms: int,
        cancellation: CancellationToken | None = None,
    ) -> list[HistoricalSample]:
        self.requests.append((asset, start_ms, end_ms))
        if asset not in self._series:
            raise DataError(f"No in-memory series for {asset}")
        return [s for s in self._series[asset] if start_ms <= s.timestamp <= end_ms]
