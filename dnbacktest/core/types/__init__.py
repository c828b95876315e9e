"""
Float helpers shared by the metrics, simulators and predictor.
"""

from .financial import (
    ONE,
    ZERO,
    annualize_funding_rate,
    finite_or,
    relative_close,
    safe_divide,
)

__all__ = [
    "annualize_funding_rate",
    "finite_or",
    "relative_close",
    "safe_divide",
    "ONE",
    "ZERO",
]
