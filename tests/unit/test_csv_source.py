"""
Unit tests for the CSV data source.
"""

import pytest

from dnbacktest.core.enums import DataSource
from dnbacktest.core.exceptions.backtest import DataError
from dnbacktest.infrastructure.data import CsvDataSource, HistoricalDataProvider, SyntheticDataSource
from dnbacktest.infrastructure.data.csv_source import sanitize_asset

HOUR = 3_600_000
T0 = 1_704_067_200_000


class TestSanitizeAsset:
    """Tests for asset name sanitization."""

    def test_should_accept_plain_names(self) -> None:
        """Test valid names."""
        assert sanitize_asset("usd-coin") == "usd-coin"
        assert sanitize_asset("BTC_1") == "BTC_1"

    @pytest.mark.parametrize("name", ["", "../etc/passwd", "a/b", "sol ana", ".."])
    def test_should_reject_path_like_names(self, name) -> None:
        """Test path traversal and separators."""
        with pytest.raises(DataError, match="Invalid asset name"):
            sanitize_asset(name)


class TestCsvDataSource:
    """Tests for CsvDataSource."""

    @pytest.fixture
    def data_dir(self, tmp_path):
        """Create a directory with one well-formed and one broken file."""
        rows = ["timestamp,price,volume,funding_rate,exchange"]
        for h in range(25):
            rate = "0.0001" if h % 8 == 0 else ""
            rows.append(f"{T0 + h * HOUR},{100 + h},{1000 + h},{rate},binance")
        (tmp_path / "solana.csv").write_text("\n".join(rows) + "\n")
        (tmp_path / "broken.csv").write_text("time,close\n1,2\n")
        (tmp_path / "empty.csv").write_text("")
        return tmp_path

    @pytest.mark.asyncio
    async def test_should_load_rows_in_window(self, data_dir) -> None:
        """Test window filtering and column mapping."""
        source = CsvDataSource(data_dir)
        samples = await source.get_series("solana", T0 + HOUR, T0 + 8 * HOUR)

        assert len(samples) == 8
        assert samples[0].price == 101.0
        assert samples[0].funding_rate is None
        assert samples[-1].funding_rate == 0.0001
        assert samples[-1].volume == 1008.0
        assert samples[-1].exchange == "binance"
        assert samples[-1].asset == "solana"

    @pytest.mark.asyncio
    async def test_should_raise_for_missing_file(self, data_dir) -> None:
        """Test missing asset file."""
        with pytest.raises(DataError, match="not found"):
            await CsvDataSource(data_dir).get_series("bitcoin", T0, T0 + HOUR)

    @pytest.mark.asyncio
    async def test_should_raise_for_missing_columns(self, data_dir) -> None:
        """Test required columns."""
        with pytest.raises(DataError, match="Missing required columns"):
            await CsvDataSource(data_dir).get_series("broken", T0, T0 + HOUR)

    @pytest.mark.asyncio
    async def test_should_raise_for_empty_file(self, data_dir) -> None:
        """Test empty file."""
        with pytest.raises(DataError, match="Empty data file"):
            await CsvDataSource(data_dir).get_series("empty", T0, T0 + HOUR)

    def test_should_report_csv_origin(self, data_dir) -> None:
        """Test registry name and origin."""
        source = CsvDataSource(data_dir)
        assert source.name == "csv"
        assert source.data_source == DataSource.CSV
        assert source.path_for("solana") == data_dir / "solana.csv"

    @pytest.mark.asyncio
    async def test_should_fall_back_for_missing_file_through_provider(self, data_dir) -> None:
        """Test provider fallback for a CSV miss."""
        provider = HistoricalDataProvider(source=CsvDataSource(data_dir), fallback=SyntheticDataSource(seed=1))
        loaded = await provider.get_series("ethereum", T0, T0 + 24 * HOUR)
        assert loaded.is_synthetic

        real = await provider.get_series("solana", T0, T0 + 24 * HOUR)
        assert real.data_source == DataSource.CSV
