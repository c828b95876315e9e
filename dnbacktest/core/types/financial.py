"""
Financial helpers for backtest calculations.

Backtests run on float64 arithmetic: simulated returns are small, noisy
fractions and speed matters more than decimal exactness. These helpers
keep division-by-zero and non-finite handling consistent across modules.

Precision considerations:
- Float64 provides ~15-16 significant decimal digits
- Compounded daily returns stay within ~1e-12 relative error for decade-long runs
- Ratios must never surface NaN or infinity; use ``safe_divide``/``finite_or``
"""

import math

from dnbacktest.core.constants import DAYS_PER_YEAR, FUNDING_SETTLEMENTS_PER_DAY

# Common financial values as float constants
ZERO = 0.0
ONE = 1.0


def safe_divide(numerator: float, denominator: float, fallback: float = ZERO) -> float:
    """Divide, returning ``fallback`` when the denominator is zero or the result is not finite.

    Args:
        numerator: Dividend
        denominator: Divisor
        fallback: Value returned instead of NaN/infinity

    Returns:
        numerator / denominator, or fallback

    Examples:
        >>> safe_divide(1.0, 4.0)
        0.25
        >>> safe_divide(1.0, 0.0, fallback=-1.0)
        -1.0
    """
    if denominator == ZERO:
        return fallback
    result = numerator / denominator
    return result if math.isfinite(result) else fallback


def finite_or(value: float, fallback: float) -> float:
    """Return ``value`` when it is finite, otherwise ``fallback``."""
    return value if math.isfinite(value) else fallback


def annualize_funding_rate(rate: float) -> float:
    """Annualize an 8-hour funding rate (3 settlements/day * 365 days).

    Examples:
        >>> round(annualize_funding_rate(0.0001), 6)
        0.1095
    """
    return rate * FUNDING_SETTLEMENTS_PER_DAY * DAYS_PER_YEAR


def relative_close(a: float, b: float, rel_tol: float = 1e-9) -> bool:
    """Compare floats with a relative tolerance (used for compounding checks)."""
    return math.isclose(a, b, rel_tol=rel_tol, abs_tol=ZERO)
