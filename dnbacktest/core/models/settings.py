"""
Engine configuration.

Every tunable constant of the predictor and the strategy simulators lives
in a frozen dataclass here with its default value, so behaviour only
changes through explicit configuration.
"""

import os
from dataclasses import dataclass, field
from datetime import timedelta

from dnbacktest.core.constants import (
    AI_BLEND_WEIGHT,
    DAYS_PER_YEAR,
    FUNDING_INTERVAL_HOURS,
    FUNDING_SETTLEMENTS_PER_DAY,
    HTTP_TIMEOUT_SECONDS,
    MAX_BACKTEST_DURATION_DAYS,
    RISK_FREE_RATE,
    VOLATILITY_LOOKBACK_DAYS,
)
from dnbacktest.core.exceptions.backtest import ConfigurationError


@dataclass(frozen=True)
class PredictorSettings:
    """Statistical funding-rate predictor parameters.

    Action thresholds are checked in order: short, long, then avoid.
    """

    horizon_hours: int = 24
    reversion_speed: float = 0.1  # kappa in next = current + kappa * (mean - current)
    trend_weight: float = 0.2
    trend_lookback: int = 2  # Trend term compares h[-1] with h[-1 - lookback]
    noise_scale: float = 0.5
    seed_variance: float = 0.0001  # Variance assumed when no history exists
    confidence_scale: float = 10.0
    short_threshold: float = 0.01
    long_threshold: float = -0.01
    avoid_volatility: float = 0.05
    settlements_per_day: int = FUNDING_SETTLEMENTS_PER_DAY
    max_volatility_score: float = 10.0

    def __post_init__(self) -> None:
        if self.horizon_hours <= 0:
            raise ConfigurationError("horizon_hours must be positive")
        if self.seed_variance < 0:
            raise ConfigurationError("seed_variance must be non-negative")
        if self.long_threshold > self.short_threshold:
            raise ConfigurationError("long_threshold must not exceed short_threshold")


@dataclass(frozen=True)
class FundingSimulatorSettings:
    """Funding-rate arbitrage simulator parameters.

    The price/hedge impact constants are placeholder calibration values,
    not fitted to real funding or hedging data.
    """

    settlement_hours: int = FUNDING_INTERVAL_HOURS
    high_rate_override: float = 0.001  # |rate| above this forces an immediate rebalance
    fee_rate: float = 0.0005  # 0.05% per trade
    slippage_rate: float = 0.001  # 0.1% per trade
    between_rebalance_efficiency: float = 0.9
    neutral_drag: float = -0.0001
    market_noise: float = 0.001  # Uniform noise in [-market_noise, market_noise)
    impact_scale: float = 0.5
    impact_unit: float = 0.01
    short_impact_bias: float = 0.4  # Price impact centre for a short stance
    long_impact_bias: float = 0.6  # Price impact centre for a long stance
    hedge_slippage: float = 0.02  # Max fraction of the price impact the hedge misses
    max_sample_age_hours: float = FUNDING_INTERVAL_HOURS / 2

    def __post_init__(self) -> None:
        if self.settlement_hours <= 0:
            raise ConfigurationError("settlement_hours must be positive")
        if not 0.0 <= self.hedge_slippage <= 1.0:
            raise ConfigurationError("hedge_slippage must be between 0 and 1")
        if self.max_sample_age_hours < 0:
            raise ConfigurationError("max_sample_age_hours must be non-negative")


@dataclass(frozen=True)
class BasisSimulatorSettings:
    """Basis-trade yield accrual parameters."""

    target_annual_yield: float = 0.10
    volume_sensitivity: float = 0.1
    noise_scale: float = 1.5
    min_volume_factor: float = 0.5
    max_volume_factor: float = 2.0
    volume_lookback_days: int = VOLATILITY_LOOKBACK_DAYS


@dataclass(frozen=True)
class GenericSimulatorSettings:
    """Fixed-weight blend used for kinds without a dedicated simulator."""

    basis_weight: float = 0.4
    funding_weight: float = 0.4
    static_weight: float = 0.2
    static_annual_yield: float = 0.04

    def __post_init__(self) -> None:
        total = self.basis_weight + self.funding_weight + self.static_weight
        if abs(total - 1.0) > 1e-9:
            raise ConfigurationError(f"blend weights must sum to 1, got {total}")


@dataclass(frozen=True)
class BacktestSettings:
    """Orchestrator parameters."""

    period: timedelta = timedelta(days=1)
    risk_free_rate: float = RISK_FREE_RATE
    days_per_year: int = DAYS_PER_YEAR
    ai_blend_weight: float = AI_BLEND_WEIGHT
    volatility_lookback_days: int = VOLATILITY_LOOKBACK_DAYS
    max_duration_days: int = MAX_BACKTEST_DURATION_DAYS
    funding: FundingSimulatorSettings = field(default_factory=FundingSimulatorSettings)
    basis: BasisSimulatorSettings = field(default_factory=BasisSimulatorSettings)
    generic: GenericSimulatorSettings = field(default_factory=GenericSimulatorSettings)
    predictor: PredictorSettings = field(default_factory=PredictorSettings)

    def __post_init__(self) -> None:
        if self.period <= timedelta(0):
            raise ConfigurationError("period must be positive")

    @property
    def period_days(self) -> float:
        return self.period.total_seconds() / 86400

    @property
    def periods_per_year(self) -> float:
        return self.days_per_year / self.period_days


@dataclass(frozen=True)
class EngineSettings:
    """Process-level settings for the API and CLI entry points."""

    data_source: str = "synthetic"
    data_dir: str = "data"
    seed: int | None = None
    predictor_api_key: str | None = None
    predictor_endpoint: str = "https://api.openai.com/v1/chat/completions"
    predictor_model: str = "gpt-4-turbo"
    http_timeout_seconds: float = HTTP_TIMEOUT_SECONDS

    @classmethod
    def from_env(cls) -> "EngineSettings":
        """Build settings from ``DNB_*`` environment variables."""
        seed = os.environ.get("DNB_SEED")
        try:
            parsed_seed = int(seed) if seed else None
            timeout = float(os.environ.get("DNB_HTTP_TIMEOUT", HTTP_TIMEOUT_SECONDS))
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric environment setting: {e}") from e
        return cls(
            data_source=os.environ.get("DNB_DATA_SOURCE", "synthetic"),
            data_dir=os.environ.get("DNB_DATA_DIR", "data"),
            seed=parsed_seed,
            predictor_api_key=os.environ.get("DNB_PREDICTOR_API_KEY") or None,
            predictor_endpoint=os.environ.get(
                "DNB_PREDICTOR_ENDPOINT", "https://api.openai.com/v1/chat/completions"
            ),
            predictor_model=os.environ.get("DNB_PREDICTOR_MODEL", "gpt-4-turbo"),
            http_timeout_seconds=timeout,
        )
