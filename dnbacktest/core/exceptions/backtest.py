"""
Custom exception hierarchy for the strategy backtester.

This module defines domain-specific exceptions for better error handling.
Only validation errors are meant to reach callers of a backtest; data and
prediction failures are recovered inside the engine.
"""


class BacktestException(Exception):
    """Base exception for all backtesting-related errors."""

    pass


class ValidationError(BacktestException):
    """Raised when input validation fails."""

    pass


class InvalidDateRangeError(ValidationError):
    """Raised when a backtest date range is empty or reversed."""

    def __init__(self, start: object, end: object, reason: str = "end date must be after start date"):
        self.start = start
        self.end = end
        self.reason = reason
        super().__init__(f"Invalid date range {start} -> {end}: {reason}")


class InvalidCapitalError(ValidationError):
    """Raised when a strategy has no positive capital allocated."""

    def __init__(self, amount: float, strategy_id: str = ""):
        self.amount = amount
        self.strategy_id = strategy_id
        label = f" for strategy {strategy_id}" if strategy_id else ""
        super().__init__(f"Allocated capital must be positive{label}, got {amount}")


class DataError(BacktestException):
    """Raised when historical data access or processing fails."""

    pass


class PredictionError(BacktestException):
    """Raised when an external prediction service returns an unusable answer."""

    pass


class StrategyError(BacktestException):
    """Raised when strategy simulation fails."""

    pass


class CalculationError(BacktestException):
    """Raised when mathematical calculations fail."""

    pass


class ConfigurationError(BacktestException):
    """Raised when configuration is invalid."""

    pass


class BacktestCancelledError(BacktestException):
    """Raised when a running backtest is cancelled through its token."""

    def __init__(self, where: str = "backtest"):
        self.where = where
        super().__init__(f"Backtest cancelled during {where}")
