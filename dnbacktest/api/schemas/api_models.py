"""
Pydantic schemas for API request/response models.
"""

from datetime import date

from pydantic import BaseModel, Field, field_validator

from dnbacktest.core.constants import MAX_HEDGE_RATIO, MAX_INITIAL_CAPITAL, MAX_STRATEGY_LEVERAGE
from dnbacktest.core.enums import StrategyKind
from dnbacktest.core.models.strategy import StrategyConfig


class BacktestRequest(BaseModel):
    """Request model for a backtest run."""

    strategy_id: str = Field(default="api-strategy", min_length=1)
    name: str = Field(default="API strategy", description="Display name")
    kind: StrategyKind = Field(..., description="Strategy kind, e.g. 'Funding Rate'")
    usdc_allocated: float = Field(
        ..., gt=0, le=MAX_INITIAL_CAPITAL, description="Initial capital in USDC"
    )
    risk_score: int = Field(default=50, ge=1, le=100)
    target_apy: float = Field(default=0.10)
    current_apy: float = Field(default=0.0)
    hedge_ratio: float = Field(default=1.0, ge=0.0, le=MAX_HEDGE_RATIO, description="1.0 = fully hedged")
    max_leverage: float = Field(default=3.0, gt=0.0, le=MAX_STRATEGY_LEVERAGE)
    rebalance_threshold: float = Field(default=0.05, ge=0.0, le=1.0)
    rebalance_frequency_seconds: int = Field(default=8 * 60 * 60, ge=0)
    assets: list[str] | None = Field(default=None, description="Overrides the per-kind assets")
    start_date: date = Field(..., description="First simulated day")
    end_date: date = Field(..., description="Last simulated day")
    use_ai_enhancement: bool = Field(default=False)
    seed: int | None = Field(default=None, description="Seed for reproducible runs")

    @field_validator("kind", mode="before")
    @classmethod
    def parse_kind(cls, v: object) -> object:
        """Accept display names, member names and CamelCase names."""
        if isinstance(v, str):
            return StrategyKind.from_string(v)
        return v

    @field_validator("end_date")
    @classmethod
    def validate_date_range(cls, v: date, info) -> date:
        """Validate that end_date is after start_date."""
        if "start_date" in info.data and v <= info.data["start_date"]:
            raise ValueError("end_date must be after start_date")
        return v

    def to_strategy_config(self) -> StrategyConfig:
        return StrategyConfig(
            strategy_id=self.strategy_id,
            name=self.name,
            kind=self.kind,
            usdc_allocated=self.usdc_allocated,
            risk_score=self.risk_score,
            target_apy=self.target_apy,
            current_apy=self.current_apy,
            hedge_ratio=self.hedge_ratio,
            max_leverage=self.max_leverage,
            rebalance_threshold=self.rebalance_threshold,
            rebalance_frequency_seconds=self.rebalance_frequency_seconds,
            assets=tuple(self.assets) if self.assets else None,
        )


class StrategyKindInfo(BaseModel):
    """Description of a supported strategy kind."""

    kind: str
    default_assets: list[str]
    dedicated_simulator: bool


class SampleModel(BaseModel):
    """One historical sample."""

    timestamp: int
    price: float
    volume: float | None = None
    funding_rate: float | None = None
    exchange: str | None = None


class SeriesResponse(BaseModel):
    """Response model for a historical series."""

    asset: str
    data_source: str
    samples: list[SampleModel]


class ErrorResponse(BaseModel):
    """Response model for errors."""

    error: str
    message: str
