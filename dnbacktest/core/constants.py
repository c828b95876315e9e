"""
Core constants and limits.

Defines system-wide constants, calendar conventions and default model
parameters for the strategy backtester.
"""

# Calendar conventions
MS_PER_HOUR = 60 * 60 * 1000
MS_PER_DAY = 24 * MS_PER_HOUR
DAYS_PER_YEAR = 365  # Crypto markets trade every day

# Funding settlement
FUNDING_INTERVAL_HOURS = 8  # Perpetual funding settles every 8 hours
FUNDING_SETTLEMENTS_PER_DAY = 24 // FUNDING_INTERVAL_HOURS

# Performance metrics
RISK_FREE_RATE = 0.015  # 1.5% annual risk-free rate used by Sharpe/Sortino
AI_BLEND_WEIGHT = 0.5  # Share of prediction confidence applied to the baseline return

# Strategy limits
MIN_RISK_SCORE = 1
MAX_RISK_SCORE = 100
MAX_STRATEGY_LEVERAGE = 125.0
MAX_HEDGE_RATIO = 2.0  # Over-hedging allowed up to twice the exposure
MAX_INITIAL_CAPITAL = 1_000_000_000.0  # 1B USDC

# System limits
MAX_BACKTEST_DURATION_DAYS = 3650  # 10 years maximum backtest
MIN_SERIES_POINTS = 2  # Fewer samples than this counts as insufficient data

# Data loading
DEFAULT_SERIES_CACHE_SIZE = 64
VOLATILITY_LOOKBACK_DAYS = 7  # Window for recent volatility / volume features
FUNDING_MERGE_WINDOW_HOURS = 4  # Max distance when attaching funding to price points
HTTP_TIMEOUT_SECONDS = 15.0
