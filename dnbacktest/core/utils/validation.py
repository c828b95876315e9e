"""
Validation utilities for core domain models.

Helpers raise ValidationError (or a subclass) on bad input.
"""

import math
from datetime import date, datetime

from dnbacktest.core.constants import MAX_BACKTEST_DURATION_DAYS
from dnbacktest.core.exceptions.backtest import InvalidDateRangeError, ValidationError


def validate_finite(value: float, param_name: str) -> float:
    """Reject NaN, infinities and non-numeric values; returns the value unchanged."""
    if not isinstance(value, int | float) or not math.isfinite(value):
        raise ValidationError(f"{param_name} must be a finite number, got {value!r}")
    return value


def validate_positive(value: float, param_name: str) -> float:
    """Validate that a numeric value is positive.

    Args:
        value: Value to validate
        param_name: Parameter name for error messages

    Returns:
        The validated value

    Raises:
        ValidationError: If value is not positive
    """
    validate_finite(value, param_name)
    if value <= 0:
        raise ValidationError(f"{param_name} must be positive, got {value}")
    return value


def validate_non_negative(value: float, param_name: str) -> float:
    """Validate that a numeric value is zero or positive."""
    validate_finite(value, param_name)
    if value < 0:
        raise ValidationError(f"{param_name} must be non-negative, got {value}")
    return value


def validate_range(value: float, low: float, high: float, param_name: str) -> float:
    """Validate that a value lies within a closed interval.

    Args:
        value: Value to validate
        low: Inclusive lower bound
        high: Inclusive upper bound
        param_name: Parameter name for error messages

    Returns:
        The validated value

    Raises:
        ValidationError: If value is outside [low, high]
    """
    validate_finite(value, param_name)
    if value < low or value > high:
        raise ValidationError(f"{param_name} must be between {low} and {high}, got {value}")
    return value


def validate_fraction(value: float, param_name: str = "fraction") -> float:
    """Validate that a value is a fraction in [0, 1]."""
    return validate_range(value, 0.0, 1.0, param_name)


def validate_date_range(
    start: date | datetime,
    end: date | datetime,
    max_days: int = MAX_BACKTEST_DURATION_DAYS,
) -> None:
    """Validate a backtest date range.

    Args:
        start: First calendar date of the backtest
        end: Last calendar date of the backtest
        max_days: Longest allowed range in days

    Raises:
        InvalidDateRangeError: If end is not after start or the range is too long
    """
    if type(start) is not type(end) and (isinstance(start, datetime) or isinstance(end, datetime)):
        raise InvalidDateRangeError(start, end, "start and end must both be dates or datetimes")
    if isinstance(start, datetime) and (start.tzinfo is None) != (end.tzinfo is None):
        raise InvalidDateRangeError(start, end, "start and end must both be timezone-aware or both naive")
    if end <= start:
        raise InvalidDateRangeError(start, end)
    if (end - start).days > max_days:
        raise InvalidDateRangeError(start, end, f"range exceeds {max_days} days")
