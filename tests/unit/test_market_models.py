"""
Unit tests for market data models: samples, time series and predictions.
"""

import math

import pytest

from dnbacktest.core.enums import DataSource, RecommendedAction
from dnbacktest.core.exceptions.backtest import ValidationError
from dnbacktest.core.models.market import (
    FundingRatePrediction,
    FundingRateSnapshot,
    HistoricalSample,
    LoadedSeries,
    TimeSeries,
)

HOUR = 3_600_000


def make_prediction(**overrides) -> FundingRatePrediction:
    fields = {
        "asset": "solana",
        "exchange": "binance",
        "current_rate": 0.0001,
        "hourly_rates": tuple([0.0001] * 24),
        "confidence": 0.8,
        "expected_annualized_yield": 0.1,
        "volatility_score": 1.0,
        "recommended_action": RecommendedAction.NEUTRAL,
        "explanation": "flat",
    }
    fields.update(overrides)
    return FundingRatePrediction(**fields)


class TestHistoricalSample:
    """Tests for HistoricalSample."""

    def test_should_report_funding_presence(self) -> None:
        """Test has_funding property."""
        assert HistoricalSample(0, 1.0, funding_rate=0.0).has_funding
        assert not HistoricalSample(0, 1.0).has_funding

    def test_should_convert_to_dict(self) -> None:
        """Test dictionary export."""
        data = HistoricalSample(5, 2.0, volume=3.0, funding_rate=0.001, asset="sol").to_dict()
        assert data == {
            "timestamp": 5,
            "price": 2.0,
            "volume": 3.0,
            "funding_rate": 0.001,
            "asset": "sol",
            "exchange": None,
        }


class TestTimeSeries:
    """Tests for TimeSeries lookups."""

    @pytest.fixture
    def series(self) -> TimeSeries:
        """Irregular series with funding every other point, given out of order."""
        samples = [
            HistoricalSample(8 * HOUR, 108.0, volume=30.0, funding_rate=0.0003),
            HistoricalSample(0, 100.0, volume=10.0, funding_rate=0.0001),
            HistoricalSample(3 * HOUR, 103.0, volume=20.0),
            HistoricalSample(20 * HOUR, 120.0),
        ]
        return TimeSeries("solana", samples)

    def test_should_sort_samples(self, series) -> None:
        """Test samples are ordered by timestamp."""
        assert [s.timestamp for s in series] == [0, 3 * HOUR, 8 * HOUR, 20 * HOUR]
        assert series.start == 0
        assert series.end == 20 * HOUR
        assert len(series) == 4

    def test_should_find_nearest_sample(self, series) -> None:
        """Test nearest lookup at, between and beyond samples."""
        assert series.nearest(3 * HOUR).price == 103.0
        assert series.nearest(7 * HOUR).price == 108.0
        assert series.nearest(-HOUR).price == 100.0
        assert series.nearest(100 * HOUR).price == 120.0

    def test_should_break_ties_to_earlier_sample(self) -> None:
        """Test equidistant lookups."""
        series = TimeSeries("x", [HistoricalSample(0, 1.0), HistoricalSample(2 * HOUR, 2.0)])
        assert series.nearest(HOUR).price == 1.0

    def test_should_respect_max_distance(self, series) -> None:
        """Test distance limit."""
        assert series.nearest(14 * HOUR, max_distance_ms=2 * HOUR) is None
        assert series.nearest(9 * HOUR, max_distance_ms=2 * HOUR).price == 108.0

    def test_should_find_nearest_funding_sample(self, series) -> None:
        """Test funding lookup skips samples without a rate."""
        assert series.nearest_funding(3 * HOUR).funding_rate == 0.0001
        assert series.nearest_funding(5 * HOUR).funding_rate == 0.0003
        assert series.nearest_funding(20 * HOUR, max_distance_ms=4 * HOUR) is None

    def test_should_return_none_for_empty_series(self) -> None:
        """Test empty series lookups."""
        empty = TimeSeries("x", [])
        assert not empty
        assert empty.nearest(0) is None
        assert empty.nearest_funding(0) is None
        assert empty.start is None
        assert empty.average_volume() is None

    def test_should_slice_windows(self, series) -> None:
        """Test inclusive windows."""
        assert [s.price for s in series.window(3 * HOUR, 8 * HOUR)] == [103.0, 108.0]
        assert series.prices(0, 3 * HOUR) == [100.0, 103.0]
        assert series.funding_rates(0, 20 * HOUR) == [0.0001, 0.0003]

    def test_should_average_volume(self, series) -> None:
        """Test whole-series and windowed volume averages."""
        assert series.average_volume() == 20.0
        assert series.average_volume(3 * HOUR, 8 * HOUR) == 25.0
        assert series.average_volume(20 * HOUR, 20 * HOUR) is None


class TestFundingRateSnapshot:
    """Tests for FundingRateSnapshot."""

    def test_should_build_history_key(self) -> None:
        """Test asset-exchange key."""
        snapshot = FundingRateSnapshot("solana", "SOL-PERP", 0.0001, 0.1095, 0, "binance")
        assert snapshot.history_key == "solana-binance"


class TestFundingRatePrediction:
    """Tests for FundingRatePrediction invariants."""

    def test_should_compute_derived_scores(self) -> None:
        """Test mean and opportunity score."""
        prediction = make_prediction(confidence=0.5, expected_annualized_yield=0.2)
        assert math.isclose(prediction.mean_predicted_rate, 0.0001)
        assert math.isclose(prediction.opportunity_score, 0.1)

    @pytest.mark.parametrize("confidence", [-0.1, 1.1])
    def test_should_reject_confidence_out_of_range(self, confidence) -> None:
        """Test confidence bounds."""
        with pytest.raises(ValidationError, match="confidence"):
            make_prediction(confidence=confidence)

    def test_should_reject_volatility_score_out_of_range(self) -> None:
        """Test volatility score bounds."""
        with pytest.raises(ValidationError, match="volatility_score"):
            make_prediction(volatility_score=11.0)

    def test_should_reject_empty_or_non_finite_rates(self) -> None:
        """Test hourly rate checks."""
        with pytest.raises(ValidationError, match="empty"):
            make_prediction(hourly_rates=())
        with pytest.raises(ValidationError, match="finite"):
            make_prediction(hourly_rates=(0.1, math.nan))

    def test_should_convert_to_dict(self) -> None:
        """Test dictionary export."""
        data = make_prediction(recommended_action=RecommendedAction.SHORT).to_dict()
        assert data["recommended_action"] == "short"
        assert len(data["hourly_rates"]) == 24
        assert data["source"] == "statistical"


class TestLoadedSeries:
    """Tests for LoadedSeries."""

    def test_should_flag_synthetic_origin(self) -> None:
        """Test is_synthetic property."""
        series = TimeSeries("x", [HistoricalSample(0, 1.0)])
        assert LoadedSeries("x", series, DataSource.SYNTHETIC).is_synthetic
        assert not LoadedSeries("x", series, DataSource.LIVE).is_synthetic
