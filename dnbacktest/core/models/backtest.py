"""
Backtest result models.
"""

from dataclasses import dataclass, field
from datetime import date

import pandas as pd

from dnbacktest.core.enums import DataSource, StrategyKind


@dataclass(frozen=True)
class DailyReturn:
    """Portfolio value and return for one simulated period."""

    date: str  # ISO date (YYYY-MM-DD)
    value: float
    period_return: float


@dataclass(frozen=True)
class MonthlyReturn:
    """Compounded return of one calendar month."""

    month: str  # YYYY-MM
    period_return: float


@dataclass(frozen=True)
class FundingRatePoint:
    """Funding rate observed on one simulated day and the running sum of rates."""

    date: str
    rate: float
    cumulative: float


@dataclass(frozen=True)
class ExposureStats:
    """Net exposure and hedge ratio statistics over the run."""

    avg_net_exposure: float
    max_net_exposure: float
    avg_hedge_ratio: float


@dataclass(frozen=True)
class FundingStrategyMetrics:
    """Statistics specific to the funding-rate arbitrage strategy."""

    avg_funding_rate: float
    total_funding_collected: float
    position_switches: int
    long_short_ratio: float
    long_days: int = 0
    short_days: int = 0


@dataclass(frozen=True)
class PredictionMetrics:
    """How the funding-rate predictor performed during an AI-enhanced run."""

    accuracy_score: float
    profit_improvement: float  # Fraction of initial capital
    average_confidence: float
    predictions_made: int


@dataclass
class BacktestResult:
    """Final report for one strategy over one date range."""

    strategy_id: str
    strategy_name: str
    strategy_kind: StrategyKind
    start_date: date
    end_date: date
    initial_value: float
    final_value: float
    total_return: float
    annualized_return: float
    sharpe_ratio: float
    sortino_ratio: float
    calmar_ratio: float
    volatility: float
    max_drawdown: float
    win_rate: float
    beta_to_market: float
    exposure_stats: ExposureStats
    daily_returns: list[DailyReturn]
    monthly_returns: list[MonthlyReturn]
    strategy_metrics: FundingStrategyMetrics | None = None
    funding_rate_history: list[FundingRatePoint] = field(default_factory=list)
    ai_enhanced: bool = False
    prediction_metrics: PredictionMetrics | None = None
    data_sources: dict[str, DataSource] = field(default_factory=dict)

    @property
    def period_returns(self) -> list[float]:
        return [d.period_return for d in self.daily_returns]

    @property
    def used_synthetic_data(self) -> bool:
        """True if any asset fell back to (or was configured with) synthetic data."""
        return any(source == DataSource.SYNTHETIC for source in self.data_sources.values())

    def is_profitable(self) -> bool:
        """Check if the backtest was profitable."""
        return self.total_return > 0.0

    def performance_summary(self) -> dict:
        """Get a summary of key performance metrics."""
        return {
            "initial_value": self.initial_value,
            "final_value": self.final_value,
            "total_return": self.total_return,
            "annualized_return": self.annualized_return,
            "sharpe_ratio": self.sharpe_ratio,
            "max_drawdown": self.max_drawdown,
            "duration_days": (self.end_date - self.start_date).days,
        }

    def daily_frame(self) -> pd.DataFrame:
        """Daily series as a DataFrame indexed by date."""
        frame = pd.DataFrame(
            {
                "date": pd.to_datetime([d.date for d in self.daily_returns]),
                "value": [d.value for d in self.daily_returns],
                "return": [d.period_return for d in self.daily_returns],
            }
        )
        return frame.set_index("date")

    def to_dict(self) -> dict:
        """Convert results to dictionary."""
        return {
            "strategy_id": self.strategy_id,
            "strategy_name": self.strategy_name,
            "strategy_kind": self.strategy_kind.value,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "initial_value": self.initial_value,
            "final_value": self.final_value,
            "total_return": self.total_return,
            "annualized_return": self.annualized_return,
            "sharpe_ratio": self.sharpe_ratio,
            "sortino_ratio": self.sortino_ratio,
            "calmar_ratio": self.calmar_ratio,
            "volatility": self.volatility,
            "max_drawdown": self.max_drawdown,
            "win_rate": self.win_rate,
            "beta_to_market": self.beta_to_market,
            "exposure_stats": {
                "avg_net_exposure": self.exposure_stats.avg_net_exposure,
                "max_net_exposure": self.exposure_stats.max_net_exposure,
                "avg_hedge_ratio": self.exposure_stats.avg_hedge_ratio,
            },
            "daily_returns": [
                {"date": d.date, "value": d.value, "return": d.period_return}
                for d in self.daily_returns
            ],
            "monthly_returns": [
                {"month": m.month, "return": m.period_return} for m in self.monthly_returns
            ],
            "strategy_metrics": (
                {
                    "avg_funding_rate": self.strategy_metrics.avg_funding_rate,
                    "total_funding_collected": self.strategy_metrics.total_funding_collected,
                    "position_switches": self.strategy_metrics.position_switches,
                    "long_short_ratio": self.strategy_metrics.long_short_ratio,
                    "long_days": self.strategy_metrics.long_days,
                    "short_days": self.strategy_metrics.short_days,
                }
                if self.strategy_metrics
                else None
            ),
            "funding_rate_history": [
                {"date": p.date, "rate": p.rate, "cumulative": p.cumulative}
                for p in self.funding_rate_history
            ],
            "ai_enhanced": self.ai_enhanced,
            "prediction_metrics": (
                {
                    "accuracy_score": self.prediction_metrics.accuracy_score,
                    "profit_improvement": self.prediction_metrics.profit_improvement,
                    "average_confidence": self.prediction_metrics.average_confidence,
                    "predictions_made": self.prediction_metrics.predictions_made,
                }
                if self.prediction_metrics
                else None
            ),
            "data_sources": {asset: source.value for asset, source in self.data_sources.items()},
        }
