"""
Strategy simulators.

Each simulator advances portfolio value by one period from an immutable
SimulationContext and returns a StepResult. Simulators hold no state
between calls; everything they need (previous stance, last rebalance
time, market data, random source) is passed in the context.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import timedelta
from types import MappingProxyType

import numpy as np

from dnbacktest.core.constants import MS_PER_DAY, MS_PER_HOUR
from dnbacktest.core.enums import Stance, StrategyKind
from dnbacktest.core.interfaces.strategy import StrategySimulator
from dnbacktest.core.models.market import HistoricalSample, TimeSeries
from dnbacktest.core.models.settings import BacktestSettings
from dnbacktest.core.models.strategy import StrategyConfig


class MarketView:
    """Read-only view of the loaded series, primary asset first."""

    def __init__(self, series: Mapping[str, TimeSeries], primary_asset: str) -> None:
        if primary_asset not in series:
            raise KeyError(f"Primary asset {primary_asset} has no series")
        self._series = MappingProxyType(dict(series))
        self.primary_asset = primary_asset

    @property
    def assets(self) -> tuple[str, ...]:
        return tuple(self._series)

    @property
    def primary(self) -> TimeSeries:
        return self._series[self.primary_asset]

    def get(self, asset: str) -> TimeSeries | None:
        return self._series.get(asset)

    def items(self):
        return self._series.items()


@dataclass(frozen=True)
class SimulationContext:
    """Inputs of one simulation step."""

    strategy: StrategyConfig
    timestamp: int  # Epoch milliseconds of the step
    portfolio_value: float
    last_rebalance: int  # Epoch milliseconds
    previous_stance: Stance
    period: timedelta
    market: MarketView
    rng: np.random.Generator
    settings: BacktestSettings

    @property
    def period_hours(self) -> float:
        return self.period.total_seconds() / 3600

    @property
    def period_days(self) -> float:
        return self.period.total_seconds() / 86400


@dataclass(frozen=True)
class StepResult:
    """Portfolio state after one step plus the funding side channel."""

    portfolio_value: float
    rebalanced: bool = False
    funding_rate: float | None = None  # None when no funding sample covered the step
    stance: Stance = Stance.NEUTRAL
    switched: bool = False
    funding_collected: float = 0.0  # Currency units
    net_exposure: float = 0.0
    hedge_ratio: float = 0.0


def _net_exposure(strategy: StrategyConfig, stance: Stance | None = None) -> float:
    if stance is not None and not stance.is_directional:
        return 0.0
    return abs(1.0 - strategy.hedge_ratio)


def _volume_factor(context: SimulationContext) -> float:
    """Recent volume relative to the whole-series average, averaged over assets."""
    s = context.settings.basis
    window_start = context.timestamp - s.volume_lookback_days * MS_PER_DAY
    ratios = []
    for _, series in context.market.items():
        overall = series.average_volume()
        recent = series.average_volume(window_start, context.timestamp)
        if overall and recent is not None:
            ratios.append(recent / overall)
    if not ratios:
        return 1.0
    factor = sum(ratios) / len(ratios)
    return min(s.max_volume_factor, max(s.min_volume_factor, factor))


def _basis_return(context: SimulationContext) -> float:
    s = context.settings.basis
    days_per_year = context.settings.days_per_year
    vf = _volume_factor(context)
    expected = (
        s.target_annual_yield / days_per_year * context.period_days
        * (1.0 + s.volume_sensitivity * (vf - 1.0))
    )
    return expected * (1.0 + context.rng.uniform(-1.0, 1.0) * s.noise_scale * vf)


def simulate_basis_trade(context: SimulationContext) -> StepResult:
    """Stochastic yield accrual around a fixed target annual yield.

    Higher recent trading volume widens the noise band and slightly raises
    the expected return.
    """
    period_return = _basis_return(context)
    return StepResult(
        portfolio_value=context.portfolio_value * (1.0 + period_return),
        net_exposure=_net_exposure(context.strategy),
        hedge_ratio=context.strategy.hedge_ratio,
    )


def current_funding_sample(context: SimulationContext) -> HistoricalSample | None:
    """Nearest funding sample of the primary asset within the allowed age."""
    max_age = int(context.settings.funding.max_sample_age_hours * MS_PER_HOUR)
    return context.market.primary.nearest_funding(context.timestamp, max_distance_ms=max_age)


def simulate_funding_rate(context: SimulationContext) -> StepResult:
    """Perpetual funding-rate arbitrage.

    Short into positive funding, long into negative funding, flat at zero.
    A full rebalance (with trading costs and hedge slippage) happens once a
    settlement period has elapsed since the last one, or immediately when
    the rate exceeds the high-rate override. Between rebalances funding is
    accrued at reduced efficiency. Without a funding sample for the step
    the portfolio value is left unchanged.
    """
    s = context.settings.funding
    strategy = context.strategy
    value = context.portfolio_value

    sample = current_funding_sample(context)
    if sample is None:
        return StepResult(
            portfolio_value=value,
            stance=context.previous_stance,
            net_exposure=_net_exposure(strategy, context.previous_stance),
            hedge_ratio=strategy.hedge_ratio,
        )

    rate = sample.funding_rate
    stance = Stance.from_funding_rate(rate)
    switched = (
        context.previous_stance.is_directional
        and stance.is_directional
        and stance != context.previous_stance
    )
    rng = context.rng

    if not stance.is_directional:
        period_return = s.neutral_drag + rng.uniform(-s.market_noise, s.market_noise)
        return StepResult(
            portfolio_value=value * (1.0 + period_return),
            funding_rate=rate,
            stance=stance,
            switched=False,
            hedge_ratio=strategy.hedge_ratio,
        )

    elapsed_ms = context.timestamp - context.last_rebalance
    rebalance = elapsed_ms >= s.settlement_hours * MS_PER_HOUR or abs(rate) > s.high_rate_override

    leverage = strategy.max_leverage
    settlements = context.period_hours / s.settlement_hours
    funding_profit = abs(rate) * leverage * settlements

    if rebalance:
        trading_cost = value * s.fee_rate * 2 + value * s.slippage_rate * 2
        bias = s.short_impact_bias if stance == Stance.SHORT else s.long_impact_bias
        impact = s.impact_scale * (rng.uniform() - bias) * s.impact_unit * leverage
        price_impact = -impact if stance == Stance.SHORT else impact
        hedge_impact = -price_impact * strategy.hedge_ratio * (1.0 - s.hedge_slippage * rng.uniform())
        funding = funding_profit
        period_return = funding + price_impact + hedge_impact - trading_cost / value
    else:
        funding = funding_profit * s.between_rebalance_efficiency
        period_return = funding

    period_return += rng.uniform(-s.market_noise, s.market_noise)

    return StepResult(
        portfolio_value=value * (1.0 + period_return),
        rebalanced=rebalance,
        funding_rate=rate,
        stance=stance,
        switched=switched,
        funding_collected=value * funding,
        net_exposure=_net_exposure(strategy, stance),
        hedge_ratio=strategy.hedge_ratio,
    )


def simulate_generic(context: SimulationContext) -> StepResult:
    """Fixed-weight blend of basis-like, funding-like and static yield.

    Used for kinds without a dedicated simulator so every kind produces a
    result. The funding-like leg contributes nothing when the reference
    asset has no funding sample for the step.
    """
    s = context.settings.generic
    basis_like = _basis_return(context)
    funding_step = simulate_funding_rate(context)
    funding_like = 0.0
    if funding_step.funding_rate is not None:
        funding_like = funding_step.portfolio_value / context.portfolio_value - 1.0
    static_yield = s.static_annual_yield / context.settings.days_per_year * context.period_days

    period_return = (
        s.basis_weight * basis_like + s.funding_weight * funding_like + s.static_weight * static_yield
    )
    return StepResult(
        portfolio_value=context.portfolio_value * (1.0 + period_return),
        rebalanced=funding_step.rebalanced,
        funding_rate=funding_step.funding_rate,
        stance=funding_step.stance,
        switched=funding_step.switched,
        funding_collected=funding_step.funding_collected * s.funding_weight,
        net_exposure=_net_exposure(context.strategy),
        hedge_ratio=context.strategy.hedge_ratio,
    )


SIMULATORS: dict[StrategyKind, StrategySimulator] = {
    StrategyKind.BASIS_TRADE: simulate_basis_trade,
    StrategyKind.FUNDING_RATE: simulate_funding_rate,
    StrategyKind.STAKING_HEDGED: simulate_generic,
    StrategyKind.LP_HEDGED: simulate_generic,
    StrategyKind.MULTI_PROTOCOL: simulate_generic,
}


def get_simulator(kind: StrategyKind) -> StrategySimulator:
    """Simulator for a strategy kind, the generic blend when none is dedicated."""
    return SIMULATORS.get(kind, simulate_generic)
