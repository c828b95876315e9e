"""
Strategy configuration model.

A StrategyConfig is created by the caller and treated as read-only input
by the backtester; it is a frozen dataclass so the engine cannot write
derived metrics back onto it.
"""

from dataclasses import dataclass

from dnbacktest.core.constants import (
    MAX_HEDGE_RATIO,
    MAX_INITIAL_CAPITAL,
    MAX_RISK_SCORE,
    MAX_STRATEGY_LEVERAGE,
    MIN_RISK_SCORE,
)
from dnbacktest.core.enums import StrategyKind
from dnbacktest.core.exceptions.backtest import InvalidCapitalError, ValidationError
from dnbacktest.core.utils.validation import (
    validate_finite,
    validate_fraction,
    validate_non_negative,
    validate_positive,
    validate_range,
)


@dataclass(frozen=True)
class StrategyConfig:
    """Immutable description of a delta-neutral strategy to backtest."""

    strategy_id: str
    name: str
    kind: StrategyKind
    usdc_allocated: float
    risk_score: int = 50
    target_apy: float = 0.10
    current_apy: float = 0.0
    hedge_ratio: float = 1.0  # 1.0 = fully hedged
    max_leverage: float = 3.0
    rebalance_threshold: float = 0.05  # Fractional deviation forcing a rebalance
    rebalance_frequency_seconds: int = 8 * 60 * 60
    assets: tuple[str, ...] | None = None  # Overrides the per-kind asset mapping
    description: str = ""

    def validate(self) -> "StrategyConfig":
        """Validate every field, raising on the first problem.

        Returns:
            self, for chaining

        Raises:
            InvalidCapitalError: If allocated capital is not positive
            ValidationError: If any other field is out of range
        """
        if not self.strategy_id:
            raise ValidationError("strategy_id must not be empty")
        if not isinstance(self.kind, StrategyKind):
            raise ValidationError(f"kind must be StrategyKind enum, got {type(self.kind).__name__}")

        validate_finite(self.usdc_allocated, "usdc_allocated")
        if self.usdc_allocated <= 0:
            raise InvalidCapitalError(self.usdc_allocated, self.strategy_id)
        validate_range(self.usdc_allocated, 0.0, MAX_INITIAL_CAPITAL, "usdc_allocated")

        validate_range(self.risk_score, MIN_RISK_SCORE, MAX_RISK_SCORE, "risk_score")
        validate_finite(self.target_apy, "target_apy")
        validate_finite(self.current_apy, "current_apy")
        validate_range(self.hedge_ratio, 0.0, MAX_HEDGE_RATIO, "hedge_ratio")
        validate_positive(self.max_leverage, "max_leverage")
        validate_range(self.max_leverage, 0.0, MAX_STRATEGY_LEVERAGE, "max_leverage")
        validate_fraction(self.rebalance_threshold, "rebalance_threshold")
        validate_non_negative(self.rebalance_frequency_seconds, "rebalance_frequency_seconds")

        if self.assets is not None and (not self.assets or not all(self.assets)):
            raise ValidationError("assets must be a non-empty tuple of asset identifiers")
        return self

    def required_assets(self) -> tuple[str, ...]:
        """Assets whose historical series the backtest needs, primary asset first."""
        if self.assets:
            return tuple(self.assets)
        return StrategyKind.default_assets(self.kind)

    @property
    def primary_asset(self) -> str:
        return self.required_assets()[0]

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        return {
            "strategy_id": self.strategy_id,
            "name": self.name,
            "kind": self.kind.value,
            "usdc_allocated": self.usdc_allocated,
            "risk_score": self.risk_score,
            "target_apy": self.target_apy,
            "current_apy": self.current_apy,
            "hedge_ratio": self.hedge_ratio,
            "max_leverage": self.max_leverage,
            "rebalance_threshold": self.rebalance_threshold,
            "rebalance_frequency_seconds": self.rebalance_frequency_seconds,
            "assets": list(self.required_assets()),
            "description": self.description,
        }
