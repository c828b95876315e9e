"""
Statistical funding-rate predictor.

Forecasts the next hourly funding rates with a mean-reverting random walk
around the historical mean of each asset/exchange pair:

    next = current + kappa * (mean - current) + noise + trend

where noise is volatility-scaled uniform noise and trend extrapolates the
most recent change in the observed history.
"""

import math
from collections import defaultdict
from collections.abc import Iterable

import numpy as np
from loguru import logger

from dnbacktest.core.constants import DAYS_PER_YEAR
from dnbacktest.core.enums import RecommendedAction
from dnbacktest.core.interfaces.prediction import IFundingRatePredictor
from dnbacktest.core.models.market import (
    AssetFeatures,
    FundingRatePrediction,
    FundingRateSnapshot,
    HistoricalSample,
)
from dnbacktest.core.models.settings import PredictorSettings


def history_key(asset: str, exchange: str) -> str:
    """Key of the funding history for an asset/exchange pair."""
    return f"{asset}-{exchange}"


class StatisticalFundingRatePredictor(IFundingRatePredictor):
    """Mean-reverting random-walk forecaster.

    Holds an append-only funding history per ``asset-exchange`` key. The
    random source is injected so that forecasts are reproducible.
    """

    def __init__(
        self,
        settings: PredictorSettings | None = None,
        rng: np.random.Generator | None = None,
    ) -> None:
        self.settings = settings or PredictorSettings()
        self._rng = rng if rng is not None else np.random.default_rng()
        self._history: dict[str, list[HistoricalSample]] = defaultdict(list)

    def add_history(self, samples: Iterable[HistoricalSample]) -> int:
        """Append funding observations, keyed by their asset and exchange.

        Samples without a funding rate, asset or exchange are ignored, as
        are samples not newer than the last one held for their key.
        """
        added = 0
        for sample in samples:
            if sample.funding_rate is None or not sample.asset or not sample.exchange:
                continue
            series = self._history[history_key(sample.asset, sample.exchange)]
            if series and sample.timestamp <= series[-1].timestamp:
                continue
            series.append(sample)
            added += 1
        return added

    def history(self, asset: str, exchange: str) -> list[HistoricalSample]:
        return list(self._history.get(history_key(asset, exchange), []))

    def _statistics(self, rates: list[float], current_rate: float) -> tuple[float, float]:
        if not rates:
            return current_rate, self.settings.seed_variance
        values = np.asarray(rates, dtype=float)
        return float(values.mean()), float(values.var())

    def _trend(self, rates: list[float]) -> float:
        if len(rates) < 2:
            return 0.0
        lookback = max(0, len(rates) - 1 - self.settings.trend_lookback)
        return self.settings.trend_weight * (rates[-1] - rates[lookback])

    def _recommend(self, mean_rate: float, volatility: float) -> RecommendedAction:
        # Direction is checked before the volatility guard
        if mean_rate > self.settings.short_threshold:
            return RecommendedAction.SHORT
        if mean_rate < self.settings.long_threshold:
            return RecommendedAction.LONG
        if volatility > self.settings.avoid_volatility:
            return RecommendedAction.AVOID
        return RecommendedAction.NEUTRAL

    def forecast(self, snapshot: FundingRateSnapshot) -> FundingRatePrediction:
        """Forecast a single asset/exchange pair from its held history."""
        s = self.settings
        rates = [
            sample.funding_rate
            for sample in self._history.get(snapshot.history_key, [])
            if sample.funding_rate is not None
        ]
        mean, variance = self._statistics(rates, snapshot.rate)
        volatility = math.sqrt(variance)
        trend = self._trend(rates)

        hourly: list[float] = []
        current = snapshot.rate
        for _ in range(s.horizon_hours):
            noise = volatility * self._rng.uniform(-1.0, 1.0) * s.noise_scale
            current = current + s.reversion_speed * (mean - current) + noise + trend
            hourly.append(current)

        mean_predicted = sum(hourly) / len(hourly)
        confidence = 1.0 / (1.0 + volatility * s.confidence_scale)
        action = self._recommend(mean_predicted, volatility)

        return FundingRatePrediction(
            asset=snapshot.asset,
            exchange=snapshot.exchange,
            current_rate=snapshot.rate,
            hourly_rates=tuple(hourly),
            confidence=confidence,
            expected_annualized_yield=abs(mean_predicted) * s.settlements_per_day * DAYS_PER_YEAR,
            volatility_score=min(s.max_volatility_score, volatility * 100),
            recommended_action=action,
            explanation=(
                f"Historical mean {mean:.6f} over {len(rates)} samples, volatility "
                f"{volatility:.6f}; forecast mean {mean_predicted:.6f} suggests {action.value}"
            ),
            source="statistical",
        )

    async def predict(
        self,
        current_rates: list[FundingRateSnapshot],
        market_features: list[AssetFeatures],
    ) -> list[FundingRatePrediction]:
        features = {f.asset: f for f in market_features}
        predictions = []
        for snapshot in current_rates:
            if snapshot.asset not in features:
                logger.debug(f"No market features for {snapshot.asset}, skipping prediction")
                continue
            predictions.append(self.forecast(snapshot))
        return predictions
