"""
Performance and risk metrics.

Pure functions over a period-return series and a portfolio value series,
plus a MetricsCalculator that applies them to a daily history frame.

Ratio fallbacks are explicit:
- Sharpe is 0.0 when volatility is zero
- Sortino falls back to Sharpe when there is no downside deviation
- Calmar falls back to Sharpe when the maximum drawdown is zero
"""

import math
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date

import numpy as np
import pandas as pd

from dnbacktest.core.constants import DAYS_PER_YEAR, RISK_FREE_RATE
from dnbacktest.core.exceptions.backtest import CalculationError
from dnbacktest.core.interfaces.data import IMetricsCalculator
from dnbacktest.core.models.backtest import MonthlyReturn
from dnbacktest.core.types.financial import ONE, ZERO, finite_or, safe_divide

# exp() overflows just above 709; cap the annualization exponent below it
_MAX_LOG_GROWTH = 700.0


def total_return(initial_value: float, final_value: float) -> float:
    """``final / initial - 1``."""
    return safe_divide(final_value, initial_value, fallback=1.0) - 1.0


def annualized_return(total: float, elapsed_days: float, days_per_year: int = DAYS_PER_YEAR) -> float:
    """Annualize a total return over the actual elapsed calendar days.

    A total loss (growth factor <= 0) annualizes to -1.0.
    """
    growth = 1.0 + total
    if growth <= ZERO:
        return -1.0
    if elapsed_days <= ZERO:
        return total
    log_growth = math.log(growth) * days_per_year / elapsed_days
    return math.exp(min(log_growth, _MAX_LOG_GROWTH)) - 1.0


def annualized_volatility(returns: Sequence[float], periods_per_year: float = DAYS_PER_YEAR) -> float:
    """Population standard deviation of period returns, annualized."""
    if len(returns) == 0:
        return ZERO
    std = float(np.std(np.asarray(returns, dtype=float)))
    return finite_or(std * math.sqrt(periods_per_year), ZERO)


def downside_deviation(returns: Sequence[float], periods_per_year: float = DAYS_PER_YEAR) -> float:
    """Root-mean-square of the negative returns, annualized."""
    negatives = [r for r in returns if r < 0]
    if not negatives:
        return ZERO
    mean_square = sum(r * r for r in negatives) / len(negatives)
    return math.sqrt(mean_square) * math.sqrt(periods_per_year)


def sharpe_ratio(
    annual_return: float, volatility: float, risk_free_rate: float = RISK_FREE_RATE
) -> float:
    """Excess annual return per unit of annualized volatility (0.0 if volatility is zero)."""
    return safe_divide(annual_return - risk_free_rate, volatility, fallback=ZERO)


def sortino_ratio(
    annual_return: float,
    returns: Sequence[float],
    sharpe: float,
    risk_free_rate: float = RISK_FREE_RATE,
    periods_per_year: float = DAYS_PER_YEAR,
) -> float:
    """Excess annual return per unit of downside deviation.

    Falls back to ``sharpe`` when the series has no negative returns.
    """
    deviation = downside_deviation(returns, periods_per_year)
    if deviation == ZERO:
        return sharpe
    return safe_divide(annual_return - risk_free_rate, deviation, fallback=sharpe)


def max_drawdown(values: Sequence[float], initial_value: float | None = None) -> float:
    """Largest peak-to-trough decline as a fraction of the peak, in [0, 1].

    Args:
        values: Portfolio values in time order
        initial_value: Starting value, counted as the first peak if given
    """
    peak = initial_value if initial_value is not None else (values[0] if values else ZERO)
    min_ratio = 1.0
    for value in values:
        peak = max(peak, value)
        if peak > ZERO:
            min_ratio = min(min_ratio, value / peak)
    return min(1.0, max(ZERO, 1.0 - min_ratio))


def calmar_ratio(annual_return: float, drawdown: float, sharpe: float) -> float:
    """Annual return per unit of maximum drawdown (falls back to ``sharpe`` without drawdown)."""
    if drawdown == ZERO:
        return sharpe
    return safe_divide(annual_return, drawdown, fallback=sharpe)


def win_rate(returns: Sequence[float]) -> float:
    """Fraction of periods with a strictly positive return."""
    if len(returns) == 0:
        return ZERO
    return sum(1 for r in returns if r > 0) / len(returns)


def beta(returns: Sequence[float], benchmark_returns: Sequence[float]) -> float:
    """Sensitivity of strategy returns to benchmark returns (0.0 when undefined)."""
    n = min(len(returns), len(benchmark_returns))
    if n < 2:
        return ZERO
    strategy = np.asarray(returns[:n], dtype=float)
    bench = np.asarray(benchmark_returns[:n], dtype=float)
    variance = float(np.var(bench))
    if variance == ZERO:
        return ZERO
    covariance = float(np.mean((strategy - strategy.mean()) * (bench - bench.mean())))
    return finite_or(covariance / variance, ZERO)


def monthly_returns(dates: Sequence[date], returns: Sequence[float]) -> list[MonthlyReturn]:
    """Compound period returns within each calendar month, keyed ``YYYY-MM``."""
    buckets: dict[str, float] = {}
    for day, ret in zip(dates, returns, strict=True):
        key = f"{day.year:04d}-{day.month:02d}"
        buckets[key] = buckets.get(key, 1.0) * (1.0 + ret)
    return [MonthlyReturn(month=month, period_return=growth - 1.0) for month, growth in buckets.items()]


@dataclass(frozen=True)
class PerformanceMetrics:
    """Derived return and risk metrics of one backtest."""

    total_return: float
    annualized_return: float
    volatility: float
    sharpe_ratio: float
    sortino_ratio: float
    max_drawdown: float
    calmar_ratio: float
    win_rate: float


class MetricsCalculator(IMetricsCalculator):
    """Calculates performance metrics from a daily portfolio history.

    The history frame has one row per simulated period with ``value`` and
    ``return`` columns, as produced by ``BacktestResult.daily_frame()``.
    """

    def __init__(
        self,
        risk_free_rate: float = RISK_FREE_RATE,
        periods_per_year: float = DAYS_PER_YEAR,
        days_per_year: int = DAYS_PER_YEAR,
    ) -> None:
        self.risk_free_rate = risk_free_rate
        self.periods_per_year = periods_per_year
        self.days_per_year = days_per_year

    def calculate(
        self,
        initial_value: float,
        values: Sequence[float],
        returns: Sequence[float],
        elapsed_days: float,
    ) -> PerformanceMetrics:
        """Compute every metric from raw sequences.

        Args:
            initial_value: Capital at the start of the run
            values: Portfolio value after each period
            returns: Return of each period
            elapsed_days: Calendar days between start and end date
        """
        final_value = values[-1] if values else initial_value
        total = total_return(initial_value, final_value)
        annual = annualized_return(total, elapsed_days, self.days_per_year)
        volatility = annualized_volatility(returns, self.periods_per_year)
        sharpe = sharpe_ratio(annual, volatility, self.risk_free_rate)
        sortino = sortino_ratio(annual, returns, sharpe, self.risk_free_rate, self.periods_per_year)
        drawdown = max_drawdown(values, initial_value)
        calmar = calmar_ratio(annual, drawdown, sharpe)

        return PerformanceMetrics(
            total_return=finite_or(total, ZERO),
            annualized_return=finite_or(annual, ZERO),
            volatility=finite_or(volatility, ZERO),
            sharpe_ratio=finite_or(sharpe, ZERO),
            sortino_ratio=finite_or(sortino, ZERO),
            max_drawdown=drawdown,
            calmar_ratio=finite_or(calmar, ZERO),
            win_rate=win_rate(returns),
        )

    def _elapsed_days(self, portfolio_history: pd.DataFrame) -> float:
        index = pd.DatetimeIndex(portfolio_history.index)
        if len(index) < 2:
            return ZERO
        return (index[-1] - index[0]).total_seconds() / 86400

    def _history_series(
        self, portfolio_history: pd.DataFrame
    ) -> tuple[float, list[float], list[float]]:
        """Start value, values and returns of a non-empty history frame."""
        missing = {"value", "return"} - set(portfolio_history.columns)
        if missing:
            raise CalculationError(
                f"Portfolio history is missing columns: {', '.join(sorted(missing))}"
            )
        values = portfolio_history["value"].tolist()
        returns = portfolio_history["return"].tolist()
        # A -100% first period hides the start value; any positive start gives the same total loss
        initial = safe_divide(values[0], 1.0 + returns[0], fallback=ONE)
        return initial, values, returns

    def calculate_returns(self, portfolio_history: pd.DataFrame) -> dict[str, float]:
        """Calculate return metrics from a history frame."""
        if portfolio_history.empty:
            return {"total_return": ZERO, "annualized_return": ZERO, "win_rate": ZERO}
        initial, values, returns = self._history_series(portfolio_history)
        total = total_return(initial, values[-1])
        return {
            "total_return": total,
            "annualized_return": annualized_return(
                total, self._elapsed_days(portfolio_history), self.days_per_year
            ),
            "win_rate": win_rate(returns),
        }

    def calculate_risk_metrics(self, portfolio_history: pd.DataFrame) -> dict[str, float]:
        """Calculate risk-adjusted metrics from a history frame."""
        if portfolio_history.empty:
            return {
                "volatility": ZERO,
                "sharpe_ratio": ZERO,
                "sortino_ratio": ZERO,
                "max_drawdown": ZERO,
                "calmar_ratio": ZERO,
            }
        initial, values, returns = self._history_series(portfolio_history)
        metrics = self.calculate(initial, values, returns, self._elapsed_days(portfolio_history))
        return {
            "volatility": metrics.volatility,
            "sharpe_ratio": metrics.sharpe_ratio,
            "sortino_ratio": metrics.sortino_ratio,
            "max_drawdown": metrics.max_drawdown,
            "calmar_ratio": metrics.calmar_ratio,
        }
