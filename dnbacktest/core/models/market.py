"""
Market data models.

Historical samples, the time series wrapper used for nearest-timestamp
lookups, and the funding-rate snapshot/prediction records exchanged with
the predictor.
"""

import math
from bisect import bisect_left, bisect_right
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field

from dnbacktest.core.enums import DataSource, RecommendedAction
from dnbacktest.core.exceptions.backtest import ValidationError


@dataclass(frozen=True)
class HistoricalSample:
    """One observation of an asset: price plus optional volume and funding rate.

    ``funding_rate`` is the fraction paid per 8-hour settlement period.
    """

    timestamp: int  # Epoch milliseconds
    price: float
    volume: float | None = None
    funding_rate: float | None = None
    asset: str | None = None
    exchange: str | None = None

    @property
    def has_funding(self) -> bool:
        return self.funding_rate is not None

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "price": self.price,
            "volume": self.volume,
            "funding_rate": self.funding_rate,
            "asset": self.asset,
            "exchange": self.exchange,
        }


class TimeSeries:
    """Immutable, timestamp-ordered series of samples for one asset.

    Lookups use binary search and never assume a fixed sampling interval,
    so irregular spacing and gaps are handled naturally.
    """

    def __init__(self, asset: str, samples: Iterable[HistoricalSample]) -> None:
        ordered = sorted(samples, key=lambda s: s.timestamp)
        self.asset = asset
        self._samples: tuple[HistoricalSample, ...] = tuple(ordered)
        self._timestamps: tuple[int, ...] = tuple(s.timestamp for s in ordered)
        funding = [s for s in ordered if s.funding_rate is not None]
        self._funding: tuple[HistoricalSample, ...] = tuple(funding)
        self._funding_timestamps: tuple[int, ...] = tuple(s.timestamp for s in funding)

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[HistoricalSample]:
        return iter(self._samples)

    def __bool__(self) -> bool:
        return bool(self._samples)

    def __repr__(self) -> str:
        return f"TimeSeries(asset={self.asset!r}, points={len(self._samples)})"

    @property
    def samples(self) -> tuple[HistoricalSample, ...]:
        return self._samples

    @property
    def funding_samples(self) -> tuple[HistoricalSample, ...]:
        return self._funding

    @property
    def start(self) -> int | None:
        return self._timestamps[0] if self._timestamps else None

    @property
    def end(self) -> int | None:
        return self._timestamps[-1] if self._timestamps else None

    @staticmethod
    def _nearest_index(timestamps: Sequence[int], timestamp: int) -> int | None:
        if not timestamps:
            return None
        pos = bisect_left(timestamps, timestamp)
        if pos == 0:
            return 0
        if pos == len(timestamps):
            return pos - 1
        before, after = timestamps[pos - 1], timestamps[pos]
        # Ties resolve to the earlier sample
        return pos - 1 if timestamp - before <= after - timestamp else pos

    def nearest(self, timestamp: int, max_distance_ms: int | None = None) -> HistoricalSample | None:
        """Get the sample closest to ``timestamp``.

        Args:
            timestamp: Epoch milliseconds to look up
            max_distance_ms: Reject matches further away than this

        Returns:
            Closest sample, or None if the series is empty or the match is too far
        """
        idx = self._nearest_index(self._timestamps, timestamp)
        if idx is None:
            return None
        sample = self._samples[idx]
        if max_distance_ms is not None and abs(sample.timestamp - timestamp) > max_distance_ms:
            return None
        return sample

    def nearest_funding(
        self, timestamp: int, max_distance_ms: int | None = None
    ) -> HistoricalSample | None:
        """Get the closest sample that carries a funding rate."""
        idx = self._nearest_index(self._funding_timestamps, timestamp)
        if idx is None:
            return None
        sample = self._funding[idx]
        if max_distance_ms is not None and abs(sample.timestamp - timestamp) > max_distance_ms:
            return None
        return sample

    def window(self, start: int, end: int) -> tuple[HistoricalSample, ...]:
        """Samples with ``start <= timestamp <= end``."""
        lo = bisect_left(self._timestamps, start)
        hi = bisect_right(self._timestamps, end)
        return self._samples[lo:hi]

    def prices(self, start: int, end: int) -> list[float]:
        return [s.price for s in self.window(start, end)]

    def funding_rates(self, start: int, end: int) -> list[float]:
        lo = bisect_left(self._funding_timestamps, start)
        hi = bisect_right(self._funding_timestamps, end)
        return [s.funding_rate for s in self._funding[lo:hi]]  # type: ignore[misc]

    def average_volume(self, start: int | None = None, end: int | None = None) -> float | None:
        """Mean volume over a window (whole series by default), None without volume data."""
        samples = self._samples if start is None or end is None else self.window(start, end)
        volumes = [s.volume for s in samples if s.volume is not None]
        if not volumes:
            return None
        return sum(volumes) / len(volumes)


@dataclass(frozen=True)
class FundingRateSnapshot:
    """Funding rate observed for one asset on one exchange."""

    asset: str
    symbol: str
    rate: float
    annualized_rate: float
    next_payment_timestamp: int
    exchange: str

    @property
    def history_key(self) -> str:
        return f"{self.asset}-{self.exchange}"


@dataclass(frozen=True)
class AssetFeatures:
    """Market features the predictor conditions on."""

    asset: str
    price: float
    volume: float
    volatility: float  # Std of recent period returns


@dataclass(frozen=True)
class FundingRatePrediction:
    """Forecast of the next 24 hourly funding rates for one asset/exchange pair."""

    asset: str
    exchange: str
    current_rate: float
    hourly_rates: tuple[float, ...]
    confidence: float
    expected_annualized_yield: float
    volatility_score: float
    recommended_action: RecommendedAction
    explanation: str
    source: str = "statistical"
    metadata: dict = field(default_factory=dict, compare=False)

    def __post_init__(self) -> None:
        if not self.hourly_rates:
            raise ValidationError("hourly_rates must not be empty")
        if not all(math.isfinite(r) for r in self.hourly_rates):
            raise ValidationError("hourly_rates must be finite numbers")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValidationError(f"confidence must be between 0 and 1, got {self.confidence}")
        if not 0.0 <= self.volatility_score <= 10.0:
            raise ValidationError(
                f"volatility_score must be between 0 and 10, got {self.volatility_score}"
            )

    @property
    def mean_predicted_rate(self) -> float:
        return sum(self.hourly_rates) / len(self.hourly_rates)

    @property
    def opportunity_score(self) -> float:
        """Expected yield weighted by confidence, used to rank predictions."""
        return self.expected_annualized_yield * self.confidence

    def to_dict(self) -> dict:
        return {
            "asset": self.asset,
            "exchange": self.exchange,
            "current_rate": self.current_rate,
            "hourly_rates": list(self.hourly_rates),
            "confidence": self.confidence,
            "expected_annualized_yield": self.expected_annualized_yield,
            "volatility_score": self.volatility_score,
            "recommended_action": self.recommended_action.value,
            "explanation": self.explanation,
            "source": self.source,
        }


@dataclass(frozen=True)
class LoadedSeries:
    """A series served by the data provider, tagged with where it came from."""

    asset: str
    series: TimeSeries
    data_source: DataSource

    @property
    def is_synthetic(self) -> bool:
        return self.data_source == DataSource.SYNTHETIC
