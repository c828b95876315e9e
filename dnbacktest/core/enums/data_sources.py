"""
Data source enumerations.

Identifies where a historical series actually came from so that a
synthetic fallback is visible in backtest results.
"""

from enum import StrEnum


class DataSource(StrEnum):
    """Origin of a historical price/funding series."""

    LIVE = "live"  # Exchange and market-data HTTP APIs
    SYNTHETIC = "synthetic"  # Seeded trending random walk
    CSV = "csv"  # Local CSV files
    MEMORY = "memory"  # Caller-supplied samples

    @property
    def is_real(self) -> bool:
        """Check if the series was observed rather than generated."""
        return self != self.SYNTHETIC
