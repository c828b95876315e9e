"""
CSV historical data source.

Reads one file per asset, ``<directory>/<asset>.csv``, with columns
``timestamp`` (epoch ms), ``price`` and optional ``volume`` and
``funding_rate``. Empty cells in the optional columns mean "no value".
"""

import asyncio
import re
from pathlib import Path

import pandas as pd
from loguru import logger

from dnbacktest.core.enums import DataSource
from dnbacktest.core.exceptions.backtest import DataError
from dnbacktest.core.interfaces.data import IHistoricalDataSource
from dnbacktest.core.models.market import HistoricalSample
from dnbacktest.core.utils.cancellation import CancellationToken

REQUIRED_COLUMNS = ("timestamp", "price")

_SAFE_COMPONENT = re.compile(r"^[A-Za-z0-9_.-]+$")


def sanitize_asset(asset: str) -> str:
    """Validate an asset name used as a file name component."""
    if not asset or not _SAFE_COMPONENT.match(asset) or ".." in asset:
        raise DataError(f"Invalid asset name for file lookup: {asset!r}")
    return asset


class CsvDataSource(IHistoricalDataSource):
    """Loads per-asset CSV files with pandas."""

    name = "csv"
    data_source = DataSource.CSV

    def __init__(self, directory: str | Path = "data") -> None:
        self.directory = Path(directory)

    def path_for(self, asset: str) -> Path:
        return self.directory / f"{sanitize_asset(asset)}.csv"

    async def get_series(
        self,
        asset: str,
        start_ms: int,
        end_ms: int,
        cancellation: CancellationToken | None = None,
    ) -> list[HistoricalSample]:
        file_path = self.path_for(asset)
        if not file_path.exists():
            raise DataError(f"Data file not found: {file_path}")

        loop = asyncio.get_running_loop()
        try:
            frame = await loop.run_in_executor(None, self._read_csv, file_path)
        except pd.errors.EmptyDataError as e:
            raise DataError(f"Empty data file: {file_path.name}") from e
        except (pd.errors.ParserError, ValueError, TypeError) as e:
            logger.error(f"CSV parsing error ({type(e).__name__}) in {file_path.name}: {e}")
            raise DataError(f"Failed to parse CSV file: {file_path.name}") from e

        window = frame[(frame["timestamp"] >= start_ms) & (frame["timestamp"] <= end_ms)]
        logger.debug(f"Loaded {len(window)} of {len(frame)} rows from {file_path.name}")
        return [self._to_sample(row, asset) for row in window.to_dict("records")]

    @staticmethod
    def _read_csv(file_path: Path) -> pd.DataFrame:
        frame = pd.read_csv(file_path)
        missing = set(REQUIRED_COLUMNS) - set(frame.columns)
        if missing:
            raise DataError(f"Missing required columns in {file_path.name}: {sorted(missing)}")
        frame["timestamp"] = frame["timestamp"].astype("int64")
        frame["price"] = frame["price"].astype("float64")
        for column in ("volume", "funding_rate"):
            if column in frame.columns:
                frame[column] = pd.to_numeric(frame[column], errors="coerce")
        return frame.sort_values("timestamp")

    @staticmethod
    def _optional(row: dict, column: str) -> float | None:
        value = row.get(column)
        if value is None or pd.isna(value):
            return None
        return float(value)

    def _to_sample(self, row: dict, asset: str) -> HistoricalSample:
        exchange = row.get("exchange")
        return HistoricalSample(
            timestamp=int(row["timestamp"]),
            price=float(row["price"]),
            volume=self._optional(row, "volume"),
            funding_rate=self._optional(row, "funding_rate"),
            asset=asset,
            exchange=str(exchange) if isinstance(exchange, str) and exchange else None,
        )
