"""
Unit tests for the statistical funding-rate predictor.
"""

import numpy as np
import pytest

from dnbacktest.core.enums import RecommendedAction
from dnbacktest.core.models.market import AssetFeatures, FundingRateSnapshot, HistoricalSample
from dnbacktest.core.models.settings import PredictorSettings
from dnbacktest.core.prediction.statistical import StatisticalFundingRatePredictor, history_key

HOUR = 3_600_000


def snapshot(rate: float, asset: str = "solana", exchange: str = "binance") -> FundingRateSnapshot:
    return FundingRateSnapshot(
        asset=asset,
        symbol=f"{asset.upper()}-PERP",
        rate=rate,
        annualized_rate=rate * 3 * 365,
        next_payment_timestamp=0,
        exchange=exchange,
    )


def features(asset: str = "solana") -> AssetFeatures:
    return AssetFeatures(asset=asset, price=100.0, volume=1_000_000.0, volatility=0.02)


def funding_samples(rates, asset="solana", exchange="binance") -> list[HistoricalSample]:
    return [
        HistoricalSample(i * 8 * HOUR, 100.0, funding_rate=r, asset=asset, exchange=exchange)
        for i, r in enumerate(rates)
    ]


class TestPredictorHistory:
    """Tests for funding history management."""

    def test_should_key_history_by_asset_and_exchange(self) -> None:
        """Test history keys."""
        predictor = StatisticalFundingRatePredictor(rng=np.random.default_rng(0))
        predictor.add_history(funding_samples([0.0001, 0.0002]))
        predictor.add_history(funding_samples([0.0003], exchange="okx"))

        assert history_key("solana", "binance") == "solana-binance"
        assert len(predictor.history("solana", "binance")) == 2
        assert len(predictor.history("solana", "okx")) == 1
        assert predictor.history("bitcoin", "binance") == []

    def test_should_skip_unusable_samples(self) -> None:
        """Test samples without funding, asset or exchange are ignored."""
        predictor = StatisticalFundingRatePredictor()
        added = predictor.add_history(
            [
                HistoricalSample(0, 1.0, asset="solana", exchange="binance"),
                HistoricalSample(1, 1.0, funding_rate=0.1, exchange="binance"),
                HistoricalSample(2, 1.0, funding_rate=0.1, asset="solana"),
            ]
        )
        assert added == 0

    def test_should_only_append_newer_samples(self) -> None:
        """Test history stays append-only and ordered."""
        predictor = StatisticalFundingRatePredictor()
        samples = funding_samples([0.0001, 0.0002, 0.0003])
        assert predictor.add_history(samples) == 3
        assert predictor.add_history(samples[:2]) == 0
        assert [s.funding_rate for s in predictor.history("solana", "binance")] == [0.0001, 0.0002, 0.0003]

    def test_should_return_history_copy(self) -> None:
        """Test callers cannot mutate held history."""
        predictor = StatisticalFundingRatePredictor()
        predictor.add_history(funding_samples([0.0001]))
        predictor.history("solana", "binance").clear()
        assert len(predictor.history("solana", "binance")) == 1


class TestPredictorForecast:
    """Tests for forecasts."""

    def test_should_have_full_confidence_with_constant_history(self) -> None:
        """Test zero variance gives confidence 1 and a flat forecast."""
        predictor = StatisticalFundingRatePredictor(rng=np.random.default_rng(1))
        predictor.add_history(funding_samples([0.0005] * 10))

        prediction = predictor.forecast(snapshot(0.0005))

        assert prediction.confidence == 1.0
        assert len(prediction.hourly_rates) == 24
        assert all(rate == pytest.approx(0.0005) for rate in prediction.hourly_rates)
        assert prediction.volatility_score == 0.0
        assert prediction.expected_annualized_yield == pytest.approx(0.0005 * 3 * 365)
        assert prediction.source == "statistical"

    def test_should_use_seed_variance_without_history(self) -> None:
        """Test forecasting with no held history."""
        predictor = StatisticalFundingRatePredictor(rng=np.random.default_rng(2))
        prediction = predictor.forecast(snapshot(0.0002))

        expected_confidence = 1.0 / (1.0 + np.sqrt(0.0001) * 10)
        assert prediction.confidence == pytest.approx(expected_confidence)
        assert prediction.volatility_score == pytest.approx(1.0)
        assert "0 samples" in prediction.explanation

    def test_should_be_reproducible_with_same_seed(self) -> None:
        """Test injected random source makes forecasts deterministic."""
        history = funding_samples([0.0001, -0.0002, 0.0004, 0.0001])
        first = StatisticalFundingRatePredictor(rng=np.random.default_rng(7))
        second = StatisticalFundingRatePredictor(rng=np.random.default_rng(7))
        first.add_history(history)
        second.add_history(history)

        assert first.forecast(snapshot(0.0002)).hourly_rates == second.forecast(snapshot(0.0002)).hourly_rates

    def test_should_bound_confidence_and_volatility_score(self) -> None:
        """Test outputs stay in their ranges for volatile history."""
        predictor = StatisticalFundingRatePredictor(rng=np.random.default_rng(3))
        predictor.add_history(funding_samples([0.5, -0.5, 0.5, -0.5]))
        prediction = predictor.forecast(snapshot(0.1))

        assert 0.0 <= prediction.confidence <= 1.0
        assert prediction.volatility_score == 10.0


class TestPredictorRecommendation:
    """Tests for recommended actions."""

    @pytest.fixture
    def predictor(self) -> StatisticalFundingRatePredictor:
        """Create predictor with default thresholds."""
        return StatisticalFundingRatePredictor(rng=np.random.default_rng(0))

    def test_should_recommend_short_for_high_positive_rates(self, predictor) -> None:
        """Test short threshold."""
        assert predictor._recommend(0.02, 0.0) == RecommendedAction.SHORT

    def test_should_recommend_long_for_negative_rates(self, predictor) -> None:
        """Test long threshold."""
        assert predictor._recommend(-0.02, 0.0) == RecommendedAction.LONG

    def test_should_check_direction_before_volatility(self, predictor) -> None:
        """Test that a strong direction wins over high volatility."""
        assert predictor._recommend(0.02, 0.5) == RecommendedAction.SHORT
        assert predictor._recommend(-0.02, 0.5) == RecommendedAction.LONG

    def test_should_avoid_volatile_flat_rates(self, predictor) -> None:
        """Test avoid threshold."""
        assert predictor._recommend(0.0, 0.06) == RecommendedAction.AVOID

    def test_should_stay_neutral_otherwise(self, predictor) -> None:
        """Test neutral default."""
        assert predictor._recommend(0.0001, 0.001) == RecommendedAction.NEUTRAL

    def test_should_respect_custom_thresholds(self) -> None:
        """Test configurable thresholds."""
        predictor = StatisticalFundingRatePredictor(
            PredictorSettings(short_threshold=0.0001, long_threshold=-0.0001)
        )
        predictor.add_history(funding_samples([0.0005] * 5))
        assert predictor.forecast(snapshot(0.0005)).recommended_action == RecommendedAction.SHORT


class TestPredictorPredict:
    """Tests for the async predict interface."""

    @pytest.mark.asyncio
    async def test_should_predict_each_rate_with_features(self) -> None:
        """Test one prediction per snapshot with features."""
        predictor = StatisticalFundingRatePredictor(rng=np.random.default_rng(0))
        predictions = await predictor.predict(
            [snapshot(0.0001), snapshot(0.0002, asset="bitcoin")],
            [features("solana")],
        )
        assert [p.asset for p in predictions] == ["solana"]

    @pytest.mark.asyncio
    async def test_should_return_empty_list_without_rates(self) -> None:
        """Test empty input."""
        predictor = StatisticalFundingRatePredictor()
        assert await predictor.predict([], [features()]) == []
