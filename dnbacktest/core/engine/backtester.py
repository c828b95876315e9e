"""
Backtest orchestrator.

Loads the series a strategy needs, steps a simulator through the date
range one period at a time, optionally blends in funding-rate predictions
and turns the accumulated value series into a BacktestResult.

A StrategyBacktester holds configuration only. All per-run state lives in
a _RunState created inside each backtest() call, so one instance can run
any number of backtests concurrently.
"""

import asyncio
import math
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import UTC, date, datetime, timedelta

import numpy as np
from loguru import logger

from dnbacktest.core.constants import MS_PER_DAY, MS_PER_HOUR
from dnbacktest.core.engine.metrics import MetricsCalculator, beta, monthly_returns
from dnbacktest.core.engine.simulators import (
    MarketView,
    SimulationContext,
    StepResult,
    get_simulator,
)
from dnbacktest.core.enums import Stance, StrategyKind
from dnbacktest.core.exceptions.backtest import StrategyError
from dnbacktest.core.interfaces.data import ISeriesProvider
from dnbacktest.core.interfaces.prediction import IFundingRatePredictor
from dnbacktest.core.models.backtest import (
    BacktestResult,
    DailyReturn,
    ExposureStats,
    FundingRatePoint,
    FundingStrategyMetrics,
    PredictionMetrics,
)
from dnbacktest.core.models.market import (
    AssetFeatures,
    FundingRatePrediction,
    FundingRateSnapshot,
    HistoricalSample,
    TimeSeries,
)
from dnbacktest.core.models.settings import BacktestSettings
from dnbacktest.core.models.strategy import StrategyConfig
from dnbacktest.core.prediction.statistical import StatisticalFundingRatePredictor
from dnbacktest.core.types.financial import ZERO, annualize_funding_rate, safe_divide
from dnbacktest.core.utils.cancellation import CancellationToken, check_cancelled
from dnbacktest.core.utils.validation import validate_date_range

PredictorFactory = Callable[[np.random.Generator], IFundingRatePredictor]

# Exchange tag for funding samples that arrive without one
DEFAULT_EXCHANGE = "aggregate"


def to_utc_datetime(value: date | datetime) -> datetime:
    """Midnight UTC for dates; naive datetimes are taken as UTC."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    return datetime(value.year, value.month, value.day, tzinfo=UTC)


def to_epoch_ms(value: datetime) -> int:
    return int(value.timestamp() * 1000)


@dataclass
class _RunState:
    """Mutable accumulators of a single backtest call."""

    value: float
    last_rebalance: int
    stance: Stance = Stance.NEUTRAL
    daily: list[DailyReturn] = field(default_factory=list)
    dates: list[date] = field(default_factory=list)
    benchmark_prices: list[float] = field(default_factory=list)
    net_exposures: list[float] = field(default_factory=list)
    hedge_ratios: list[float] = field(default_factory=list)
    # Funding counters
    rate_sum: float = 0.0
    rate_count: int = 0
    cumulative_rate: float = 0.0
    funding_collected: float = 0.0
    switches: int = 0
    long_days: int = 0
    short_days: int = 0
    funding_history: list[FundingRatePoint] = field(default_factory=list)
    # Prediction tracking
    fed_until: dict[str, int] = field(default_factory=dict)
    predictions_made: int = 0
    confidence_sum: float = 0.0
    directional_predictions: int = 0
    correct_predictions: int = 0
    profit_improvement: float = 0.0

    @property
    def returns(self) -> list[float]:
        return [d.period_return for d in self.daily]

    @property
    def values(self) -> list[float]:
        return [d.value for d in self.daily]


class StrategyBacktester:
    """Runs delta-neutral strategy backtests over historical or synthetic series.

    Args:
        provider: Source of the historical series (with synthetic fallback)
        settings: Simulation and metric parameters
        seed: Seed of the per-run random source; None draws fresh entropy
        predictor_factory: Builds the funding-rate predictor of an
            AI-enhanced run from its random generator
    """

    def __init__(
        self,
        provider: ISeriesProvider,
        settings: BacktestSettings | None = None,
        seed: int | None = None,
        predictor_factory: PredictorFactory | None = None,
    ) -> None:
        self.provider = provider
        self.settings = settings or BacktestSettings()
        self.seed = seed
        self._predictor_factory = predictor_factory or self._default_predictor
        self.metrics = MetricsCalculator(
            risk_free_rate=self.settings.risk_free_rate,
            periods_per_year=self.settings.periods_per_year,
            days_per_year=self.settings.days_per_year,
        )

    def _default_predictor(self, rng: np.random.Generator) -> IFundingRatePredictor:
        return StatisticalFundingRatePredictor(self.settings.predictor, rng)

    def run_backtest(
        self,
        strategy: StrategyConfig,
        start_date: date | datetime,
        end_date: date | datetime,
        use_ai_enhancement: bool = False,
        cancellation: CancellationToken | None = None,
    ) -> BacktestResult:
        """Synchronous wrapper around :meth:`backtest`."""
        return asyncio.run(
            self.backtest(strategy, start_date, end_date, use_ai_enhancement, cancellation)
        )

    async def backtest(
        self,
        strategy: StrategyConfig,
        start_date: date | datetime,
        end_date: date | datetime,
        use_ai_enhancement: bool = False,
        cancellation: CancellationToken | None = None,
    ) -> BacktestResult:
        """Backtest a strategy from ``start_date`` to ``end_date`` inclusive.

        Args:
            strategy: Strategy to simulate, never modified
            start_date: First simulated period
            end_date: Last simulated period, strictly after ``start_date``
            use_ai_enhancement: Blend funding-rate predictions into returns
            cancellation: Token checked before every period

        Returns:
            Fully populated BacktestResult

        Raises:
            ValidationError: If the strategy or the date range is invalid;
                raised before any data is requested
            BacktestCancelledError: If the token is cancelled mid-run
        """
        strategy.validate()
        validate_date_range(start_date, end_date, self.settings.max_duration_days)

        start_dt = to_utc_datetime(start_date)
        end_dt = to_utc_datetime(end_date)
        start_ms, end_ms = to_epoch_ms(start_dt), to_epoch_ms(end_dt)
        assets = strategy.required_assets()

        logger.info(
            f"Starting backtest {strategy.strategy_id} ({strategy.kind.value}) "
            f"{start_dt.date()} -> {end_dt.date()} on {', '.join(assets)}"
            f"{' with AI enhancement' if use_ai_enhancement else ''}"
        )

        check_cancelled(cancellation, "data loading")
        loaded = await self.provider.get_many(assets, start_ms, end_ms, cancellation=cancellation)
        data_sources = {asset: loaded[asset].data_source for asset in assets}
        market = MarketView({asset: loaded[asset].series for asset in assets}, assets[0])

        sim_seq, predictor_seq = np.random.SeedSequence(self.seed).spawn(2)
        rng = np.random.default_rng(sim_seq)
        predictor = (
            self._predictor_factory(np.random.default_rng(predictor_seq))
            if use_ai_enhancement
            else None
        )

        simulator = get_simulator(strategy.kind)
        state = _RunState(value=strategy.usdc_allocated, last_rebalance=start_ms)
        period = self.settings.period
        period_ms = int(period.total_seconds() * 1000)

        current = start_dt
        while current <= end_dt:
            check_cancelled(cancellation, f"period {current.date()}")
            timestamp = to_epoch_ms(current)
            context = SimulationContext(
                strategy=strategy,
                timestamp=timestamp,
                portfolio_value=state.value,
                last_rebalance=state.last_rebalance,
                previous_stance=state.stance,
                period=period,
                market=market,
                rng=rng,
                settings=self.settings,
            )
            step = simulator(context)
            new_value = step.portfolio_value

            if predictor is not None:
                new_value = await self._apply_prediction(
                    predictor, context, step, state, period_ms
                )
            if not math.isfinite(new_value):
                raise StrategyError(
                    f"{strategy.kind.value} simulator produced a non-finite portfolio value "
                    f"on {current.date()}"
                )

            self._record_step(state, current, timestamp, step, new_value, market)
            current += period

        result = self._build_result(
            strategy, start_dt, end_dt, state, data_sources, predictor is not None
        )
        logger.success(
            f"Backtest {strategy.strategy_id} finished: {len(state.daily)} periods, "
            f"total return {result.total_return:.4%}, max drawdown {result.max_drawdown:.4%}"
        )
        return result

    def _record_step(
        self,
        state: _RunState,
        current: datetime,
        timestamp: int,
        step: StepResult,
        new_value: float,
        market: MarketView,
    ) -> None:
        period_return = safe_divide(new_value, state.value, fallback=1.0) - 1.0
        day = current.date()
        state.daily.append(DailyReturn(day.isoformat(), new_value, period_return))
        state.dates.append(day)
        state.value = new_value

        benchmark = market.primary.nearest(timestamp)
        if benchmark is not None:
            state.benchmark_prices.append(benchmark.price)
        state.net_exposures.append(step.net_exposure)
        state.hedge_ratios.append(step.hedge_ratio)

        if step.rebalanced:
            state.last_rebalance = timestamp
        state.stance = step.stance

        if step.funding_rate is None:
            return
        state.rate_sum += step.funding_rate
        state.rate_count += 1
        state.cumulative_rate += step.funding_rate
        state.funding_history.append(
            FundingRatePoint(day.isoformat(), step.funding_rate, state.cumulative_rate)
        )
        state.funding_collected += step.funding_collected
        if step.switched:
            state.switches += 1
        if step.stance == Stance.LONG:
            state.long_days += 1
        elif step.stance == Stance.SHORT:
            state.short_days += 1

    def _feed_history(
        self, predictor: IFundingRatePredictor, market: MarketView, timestamp: int, state: _RunState
    ) -> None:
        """Give the predictor every funding sample up to (and at) ``timestamp``."""
        for asset, series in market.items():
            since = state.fed_until.get(asset)
            lower = series.start if since is None else since + 1
            if lower is None or lower > timestamp:
                continue
            samples = [
                _tag(sample, asset) for sample in series.window(lower, timestamp) if sample.has_funding
            ]
            predictor.add_history(samples)
            state.fed_until[asset] = timestamp

    def _features(self, asset: str, series: TimeSeries, timestamp: int) -> AssetFeatures | None:
        sample = series.nearest(timestamp)
        if sample is None:
            return None
        lookback = timestamp - self.settings.volatility_lookback_days * MS_PER_DAY
        prices = series.prices(lookback, timestamp)
        volatility = 0.0
        if len(prices) > 1:
            changes = np.diff(np.asarray(prices, dtype=float)) / np.asarray(prices[:-1], dtype=float)
            volatility = float(np.std(changes))
        return AssetFeatures(
            asset=asset,
            price=sample.price,
            volume=sample.volume or 0.0,
            volatility=volatility if math.isfinite(volatility) else 0.0,
        )

    async def _apply_prediction(
        self,
        predictor: IFundingRatePredictor,
        context: SimulationContext,
        step: StepResult,
        state: _RunState,
        period_ms: int,
    ) -> float:
        """Blend the best prediction into the simulator's return.

        The realized funding rate one period ahead is only used to score
        the prediction, never to change the return.
        """
        market = context.market
        timestamp = context.timestamp
        self._feed_history(predictor, market, timestamp, state)

        max_age = int(self.settings.funding.max_sample_age_hours * MS_PER_HOUR)
        snapshots: list[FundingRateSnapshot] = []
        features: list[AssetFeatures] = []
        for asset, series in market.items():
            sample = series.nearest_funding(timestamp, max_distance_ms=max_age)
            if sample is None or sample.timestamp > timestamp:
                continue
            snapshots.append(
                FundingRateSnapshot(
                    asset=asset,
                    symbol=f"{asset.upper()}-PERP",
                    rate=sample.funding_rate,
                    annualized_rate=annualize_funding_rate(sample.funding_rate),
                    next_payment_timestamp=sample.timestamp
                    + self.settings.funding.settlement_hours * MS_PER_HOUR,
                    exchange=sample.exchange or DEFAULT_EXCHANGE,
                )
            )
            feature = self._features(asset, series, timestamp)
            if feature is not None:
                features.append(feature)

        if not snapshots:
            return step.portfolio_value

        predictions = await predictor.predict(snapshots, features)
        if not predictions:
            return step.portfolio_value

        best = max(predictions, key=lambda p: p.opportunity_score)
        baseline = safe_divide(step.portfolio_value, context.portfolio_value, fallback=1.0) - 1.0
        adjusted = baseline * (1.0 + best.confidence * self.settings.ai_blend_weight)

        state.predictions_made += 1
        state.confidence_sum += best.confidence
        state.profit_improvement += context.portfolio_value * (adjusted - baseline)
        self._score_prediction(best, context, state, period_ms)

        logger.debug(
            f"Prediction for {best.asset}: {best.recommended_action.value} "
            f"(confidence {best.confidence:.3f}), return {baseline:.6f} -> {adjusted:.6f}"
        )
        return context.portfolio_value * (1.0 + adjusted)

    def _score_prediction(
        self,
        prediction: FundingRatePrediction,
        context: SimulationContext,
        state: _RunState,
        period_ms: int,
    ) -> None:
        expected_sign = prediction.recommended_action.expected_funding_sign()
        if expected_sign == 0:
            return
        series = context.market.get(prediction.asset)
        if series is None:
            return
        max_age = int(self.settings.funding.max_sample_age_hours * MS_PER_HOUR)
        realized = series.nearest_funding(context.timestamp + period_ms, max_distance_ms=max_age)
        if realized is None or realized.funding_rate == 0:
            return
        state.directional_predictions += 1
        if (realized.funding_rate > 0) == (expected_sign > 0):
            state.correct_predictions += 1

    def _build_result(
        self,
        strategy: StrategyConfig,
        start_dt: datetime,
        end_dt: datetime,
        state: _RunState,
        data_sources: dict,
        ai_enhanced: bool,
    ) -> BacktestResult:
        initial = strategy.usdc_allocated
        returns = state.returns
        values = state.values
        elapsed_days = (end_dt - start_dt) / timedelta(days=1)
        metrics = self.metrics.calculate(initial, values, returns, elapsed_days)

        prices = state.benchmark_prices
        benchmark_returns = [
            safe_divide(prices[i], prices[i - 1], fallback=1.0) - 1.0 for i in range(1, len(prices))
        ]
        beta_to_market = beta(returns[1:], benchmark_returns) if len(prices) == len(returns) else ZERO

        exposures = state.net_exposures
        exposure_stats = ExposureStats(
            avg_net_exposure=safe_divide(sum(exposures), len(exposures)),
            max_net_exposure=max(exposures, default=ZERO),
            avg_hedge_ratio=safe_divide(sum(state.hedge_ratios), len(state.hedge_ratios)),
        )

        strategy_metrics = None
        if strategy.kind == StrategyKind.FUNDING_RATE:
            strategy_metrics = FundingStrategyMetrics(
                avg_funding_rate=safe_divide(state.rate_sum, state.rate_count),
                total_funding_collected=state.funding_collected,
                position_switches=state.switches,
                long_short_ratio=long_short_ratio(state.long_days, state.short_days),
                long_days=state.long_days,
                short_days=state.short_days,
            )

        prediction_metrics = None
        if ai_enhanced:
            prediction_metrics = PredictionMetrics(
                accuracy_score=safe_divide(state.correct_predictions, state.directional_predictions),
                profit_improvement=safe_divide(state.profit_improvement, initial),
                average_confidence=safe_divide(state.confidence_sum, state.predictions_made),
                predictions_made=state.predictions_made,
            )

        return BacktestResult(
            strategy_id=strategy.strategy_id,
            strategy_name=strategy.name,
            strategy_kind=strategy.kind,
            start_date=start_dt.date(),
            end_date=end_dt.date(),
            initial_value=initial,
            final_value=state.value,
            total_return=metrics.total_return,
            annualized_return=metrics.annualized_return,
            sharpe_ratio=metrics.sharpe_ratio,
            sortino_ratio=metrics.sortino_ratio,
            calmar_ratio=metrics.calmar_ratio,
            volatility=metrics.volatility,
            max_drawdown=metrics.max_drawdown,
            win_rate=metrics.win_rate,
            beta_to_market=beta_to_market,
            exposure_stats=exposure_stats,
            daily_returns=list(state.daily),
            monthly_returns=monthly_returns(state.dates, returns),
            strategy_metrics=strategy_metrics,
            funding_rate_history=list(state.funding_history),
            ai_enhanced=ai_enhanced,
            prediction_metrics=prediction_metrics,
            data_sources=data_sources,
        )


def long_short_ratio(long_days: int, short_days: int) -> float:
    """Long days per short day; the long-day count without short days, 1.0 with neither."""
    if short_days:
        return long_days / short_days
    if long_days:
        return float(long_days)
    return 1.0


def _tag(sample: HistoricalSample, asset: str) -> HistoricalSample:
    if sample.asset == asset and sample.exchange:
        return sample
    return replace(sample, asset=asset, exchange=sample.exchange or DEFAULT_EXCHANGE)
