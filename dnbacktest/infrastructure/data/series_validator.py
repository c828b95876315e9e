"""
Historical series validation.

Rejects series the simulators cannot use; a rejected series is treated
by the provider like any other upstream failure.
"""

import math
from collections.abc import Sequence

from loguru import logger

from dnbacktest.core.constants import MIN_SERIES_POINTS
from dnbacktest.core.exceptions.backtest import DataError
from dnbacktest.core.models.market import HistoricalSample

EXTREME_MOVE = 0.5  # Consecutive price change worth a warning


class SeriesValidator:
    """
    Sample series validator.

    Features:
    - Minimum length check
    - Strictly increasing timestamps (no duplicates)
    - Finite positive prices, finite non-negative volumes
    - Finite funding rates
    - Warnings for extreme price moves
    """

    def __init__(self, min_points: int = MIN_SERIES_POINTS) -> None:
        self.min_points = min_points

    def validate(self, asset: str, samples: Sequence[HistoricalSample]) -> None:
        """
        Validate a series.

        Args:
            asset: Asset the samples belong to, for messages
            samples: Samples in the order the source returned them

        Raises:
            DataError: If the series is unusable
        """
        if len(samples) < self.min_points:
            raise DataError(
                f"Insufficient data for {asset}: {len(samples)} samples, need {self.min_points}"
            )
        self._validate_ordering(asset, samples)
        self._validate_values(asset, samples)
        self._check_quality(asset, samples)

    def _validate_ordering(self, asset: str, samples: Sequence[HistoricalSample]) -> None:
        for previous, current in zip(samples, samples[1:]):
            if current.timestamp == previous.timestamp:
                raise DataError(f"Duplicate timestamp {current.timestamp} in {asset} series")
            if current.timestamp < previous.timestamp:
                raise DataError(f"Timestamps of {asset} series are not in ascending order")

    def _validate_values(self, asset: str, samples: Sequence[HistoricalSample]) -> None:
        for sample in samples:
            if not math.isfinite(sample.price) or sample.price <= 0:
                raise DataError(f"Invalid price {sample.price} at {sample.timestamp} in {asset} series")
            if sample.volume is not None and (not math.isfinite(sample.volume) or sample.volume < 0):
                raise DataError(
                    f"Invalid volume {sample.volume} at {sample.timestamp} in {asset} series"
                )
            if sample.funding_rate is not None and not math.isfinite(sample.funding_rate):
                raise DataError(f"Invalid funding rate at {sample.timestamp} in {asset} series")

    def _check_quality(self, asset: str, samples: Sequence[HistoricalSample]) -> None:
        extreme = sum(
            1
            for previous, current in zip(samples, samples[1:])
            if abs(current.price / previous.price - 1.0) > EXTREME_MOVE
        )
        if extreme:
            logger.warning(f"Found {extreme} extreme price moves (>50%) in {asset} series")
        if not any(s.funding_rate is not None for s in samples):
            logger.debug(f"{asset} series carries no funding rates")
