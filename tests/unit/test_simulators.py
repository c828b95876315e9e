"""
Unit tests for the strategy simulators.

A fixed random source returning the midpoint of every requested interval
makes each step deterministic.
"""

from datetime import timedelta

import numpy as np
import pytest

from dnbacktest.core.engine.simulators import (
    MarketView,
    SimulationContext,
    get_simulator,
    simulate_basis_trade,
    simulate_funding_rate,
    simulate_generic,
)
from dnbacktest.core.enums import Stance, StrategyKind
from dnbacktest.core.models.market import HistoricalSample, TimeSeries
from dnbacktest.core.models.settings import BacktestSettings
from dnbacktest.core.models.strategy import StrategyConfig

HOUR = 3_600_000
T0 = 1_704_067_200_000  # 2024-01-01T00:00:00Z


class MidpointRandom:
    """Stand-in for np.random.Generator.uniform returning interval midpoints."""

    def uniform(self, low: float = 0.0, high: float = 1.0) -> float:
        return (low + high) / 2


def funding_series(rate: float | None, asset: str = "solana", volume: float | None = None) -> TimeSeries:
    samples = [
        HistoricalSample(T0 + h * HOUR, 100.0, volume=volume, funding_rate=rate if h % 8 == 0 else None)
        for h in range(0, 48)
    ]
    return TimeSeries(asset, samples)


def make_context(
    series: TimeSeries,
    kind: StrategyKind = StrategyKind.FUNDING_RATE,
    timestamp: int = T0,
    last_rebalance: int = T0,
    previous_stance: Stance = Stance.NEUTRAL,
    hedge_ratio: float = 1.0,
    value: float = 100_000.0,
    rng=None,
) -> SimulationContext:
    strategy = StrategyConfig(
        strategy_id="s1",
        name="sim",
        kind=kind,
        usdc_allocated=value,
        max_leverage=3.0,
        hedge_ratio=hedge_ratio,
    )
    return SimulationContext(
        strategy=strategy,
        timestamp=timestamp,
        portfolio_value=value,
        last_rebalance=last_rebalance,
        previous_stance=previous_stance,
        period=timedelta(days=1),
        market=MarketView({series.asset: series}, series.asset),
        rng=rng or MidpointRandom(),
        settings=BacktestSettings(),
    )


class TestMarketView:
    """Tests for MarketView."""

    def test_should_expose_primary_series(self) -> None:
        """Test primary asset access."""
        sol = funding_series(0.0001)
        btc = funding_series(0.0001, asset="bitcoin")
        view = MarketView({"solana": sol, "bitcoin": btc}, "solana")

        assert view.primary is sol
        assert view.assets == ("solana", "bitcoin")
        assert view.get("bitcoin") is btc
        assert view.get("ethereum") is None

    def test_should_require_primary_series(self) -> None:
        """Test missing primary asset."""
        with pytest.raises(KeyError):
            MarketView({"bitcoin": funding_series(0.0001, asset="bitcoin")}, "solana")


class TestFundingRateSimulator:
    """Tests for the funding-rate arbitrage simulator."""

    def test_should_accrue_funding_between_rebalances(self) -> None:
        """Test reduced-efficiency accrual when no rebalance is due."""
        step = simulate_funding_rate(make_context(funding_series(0.0005)))

        expected = 0.0005 * 3 * 3 * 0.9  # rate * leverage * settlements per day * efficiency
        assert step.portfolio_value == pytest.approx(100_000.0 * (1 + expected))
        assert not step.rebalanced
        assert step.stance == Stance.SHORT
        assert step.funding_rate == 0.0005
        assert step.funding_collected == pytest.approx(100_000.0 * expected)

    def test_should_rebalance_after_settlement_period(self) -> None:
        """Test full rebalance with costs and impacts."""
        context = make_context(funding_series(0.0005), timestamp=T0 + 8 * HOUR, last_rebalance=T0)
        step = simulate_funding_rate(context)

        funding = 0.0005 * 3 * 3
        price_impact = -(0.5 * (0.5 - 0.4) * 0.01 * 3)
        hedge_impact = -price_impact * 1.0 * (1 - 0.02 * 0.5)
        costs = 0.0005 * 2 + 0.001 * 2
        assert step.rebalanced
        assert step.portfolio_value == pytest.approx(100_000.0 * (1 + funding + price_impact + hedge_impact - costs))
        assert step.funding_collected == pytest.approx(100_000.0 * funding)

    def test_should_rebalance_immediately_for_high_rates(self) -> None:
        """Test the high-rate override."""
        step = simulate_funding_rate(make_context(funding_series(0.002)))
        assert step.rebalanced

    def test_should_go_long_into_negative_funding(self) -> None:
        """Test long stance and its impact direction."""
        context = make_context(funding_series(-0.0005), timestamp=T0 + 8 * HOUR)
        step = simulate_funding_rate(context)

        price_impact = 0.5 * (0.5 - 0.6) * 0.01 * 3
        hedge_impact = -price_impact * (1 - 0.02 * 0.5)
        expected = 0.0005 * 9 + price_impact + hedge_impact - 0.003
        assert step.stance == Stance.LONG
        assert step.portfolio_value == pytest.approx(100_000.0 * (1 + expected))

    def test_should_apply_neutral_drag_for_zero_rate(self) -> None:
        """Test neutral stance."""
        step = simulate_funding_rate(make_context(funding_series(0.0), previous_stance=Stance.SHORT))

        assert step.stance == Stance.NEUTRAL
        assert not step.switched
        assert step.funding_rate == 0.0
        assert step.net_exposure == 0.0
        assert step.portfolio_value == pytest.approx(100_000.0 * (1 - 0.0001))

    def test_should_leave_value_unchanged_without_funding_sample(self) -> None:
        """Test a gap in funding data."""
        series = funding_series(0.0005)
        context = make_context(series, timestamp=T0 + 100 * HOUR, previous_stance=Stance.LONG)
        step = simulate_funding_rate(context)

        assert step.portfolio_value == 100_000.0
        assert step.funding_rate is None
        assert step.stance == Stance.LONG
        assert not step.rebalanced
        assert step.funding_collected == 0.0

    def test_should_count_switch_between_directional_stances(self) -> None:
        """Test switch detection."""
        series = funding_series(-0.0005)
        assert simulate_funding_rate(make_context(series, previous_stance=Stance.SHORT)).switched
        assert not simulate_funding_rate(make_context(series, previous_stance=Stance.LONG)).switched
        assert not simulate_funding_rate(make_context(series, previous_stance=Stance.NEUTRAL)).switched

    def test_should_report_residual_exposure(self) -> None:
        """Test net exposure from a partial hedge."""
        step = simulate_funding_rate(make_context(funding_series(0.0005), hedge_ratio=0.8))
        assert step.net_exposure == pytest.approx(0.2)
        assert step.hedge_ratio == 0.8

    def test_should_not_modify_context(self) -> None:
        """Test simulators are pure functions of their context."""
        context = make_context(funding_series(0.0005), rng=np.random.default_rng(5))
        before = (context.portfolio_value, context.last_rebalance, context.previous_stance)
        simulate_funding_rate(context)
        assert (context.portfolio_value, context.last_rebalance, context.previous_stance) == before


class TestBasisTradeSimulator:
    """Tests for the basis-trade simulator."""

    def test_should_accrue_target_yield_without_volume_data(self) -> None:
        """Test expected daily yield at the midpoint of the noise band."""
        step = simulate_basis_trade(make_context(funding_series(None), kind=StrategyKind.BASIS_TRADE))

        assert step.portfolio_value == pytest.approx(100_000.0 * (1 + 0.10 / 365))
        assert step.funding_rate is None
        assert not step.rebalanced

    def test_should_scale_with_recent_volume(self) -> None:
        """Test volume factor raises the expected return."""
        quiet = [HistoricalSample(T0 - d * 24 * HOUR, 100.0, volume=1.0) for d in range(30, 8, -1)]
        busy = [HistoricalSample(T0 - d * 24 * HOUR, 100.0, volume=10.0) for d in range(7, -1, -1)]
        series = TimeSeries("bitcoin", quiet + busy)
        step = simulate_basis_trade(make_context(series, kind=StrategyKind.BASIS_TRADE))

        assert step.portfolio_value > 100_000.0 * (1 + 0.10 / 365)

    def test_should_stay_within_noise_band(self) -> None:
        """Test bounded returns with a real random source."""
        series = funding_series(None)
        for seed in range(20):
            context = make_context(series, kind=StrategyKind.BASIS_TRADE, rng=np.random.default_rng(seed))
            period_return = simulate_basis_trade(context).portfolio_value / 100_000.0 - 1
            assert abs(period_return) <= 0.10 / 365 * 2.5 + 1e-12


class TestGenericSimulator:
    """Tests for the blended simulator."""

    def test_should_blend_without_funding_leg(self) -> None:
        """Test funding leg contributes nothing without a sample."""
        context = make_context(funding_series(None), kind=StrategyKind.LP_HEDGED)
        step = simulate_generic(context)

        expected = 0.4 * 0.10 / 365 + 0.2 * 0.04 / 365
        assert step.portfolio_value == pytest.approx(100_000.0 * (1 + expected))
        assert step.funding_rate is None

    def test_should_blend_funding_leg(self) -> None:
        """Test funding leg weight."""
        context = make_context(funding_series(0.0005), kind=StrategyKind.MULTI_PROTOCOL)
        step = simulate_generic(context)

        funding_like = 0.0005 * 9 * 0.9
        expected = 0.4 * 0.10 / 365 + 0.4 * funding_like + 0.2 * 0.04 / 365
        assert step.portfolio_value == pytest.approx(100_000.0 * (1 + expected))
        assert step.funding_rate == 0.0005


class TestSimulatorRegistry:
    """Tests for simulator selection."""

    def test_should_map_every_kind(self) -> None:
        """Test every kind resolves to a simulator."""
        assert get_simulator(StrategyKind.FUNDING_RATE) is simulate_funding_rate
        assert get_simulator(StrategyKind.BASIS_TRADE) is simulate_basis_trade
        for kind in (StrategyKind.STAKING_HEDGED, StrategyKind.LP_HEDGED, StrategyKind.MULTI_PROTOCOL):
            assert get_simulator(kind) is simulate_generic
