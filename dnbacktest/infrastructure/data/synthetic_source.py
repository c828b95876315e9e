"""
Synthetic historical data source.

Generates a trending random walk with funding samples every 8 hours and a
volume profile that follows the time of day and the weekend. Used as the
fallback whenever real data cannot be loaded.
"""

import math
import zlib
from dataclasses import dataclass
from datetime import UTC, datetime

import numpy as np
from loguru import logger

from dnbacktest.core.constants import FUNDING_INTERVAL_HOURS, MS_PER_HOUR
from dnbacktest.core.enums import Asset, DataSource
from dnbacktest.core.exceptions.backtest import ConfigurationError
from dnbacktest.core.interfaces.data import IHistoricalDataSource
from dnbacktest.core.models.market import HistoricalSample
from dnbacktest.core.utils.cancellation import CancellationToken

SYNTHETIC_EXCHANGE = "synthetic"


@dataclass(frozen=True)
class AssetProfile:
    """Starting price and daily volatility of a synthetic asset."""

    base_price: float
    daily_volatility: float


ASSET_PROFILES: dict[Asset, AssetProfile] = {
    Asset.BITCOIN: AssetProfile(30000.0, 0.02),
    Asset.ETHEREUM: AssetProfile(2000.0, 0.025),
    Asset.SOLANA: AssetProfile(60.0, 0.04),
    Asset.USD_COIN: AssetProfile(1.0, 0.001),
    Asset.TETHER: AssetProfile(1.0, 0.001),
    Asset.DAI: AssetProfile(1.0, 0.001),
}
DEFAULT_PROFILE = AssetProfile(1.0, 0.03)

MIN_PRICE = 0.001
TREND_STRENGTH_RANGE = (0.4, 1.0)
TREND_DURATION_HOURS = (48, 240)  # 2-10 days
FUNDING_TREND_SCALE = 0.0004
FUNDING_NOISE = 0.0008
FUNDING_INVERSION_PROBABILITY = 0.2
FUNDING_INVERSION_FACTOR = -0.5
BASE_VOLUME = 1_000_000.0
VOLUME_SPREAD = 5_000_000.0
WEEKEND_VOLUME_FACTOR = 0.7


def profile_for(asset: str) -> AssetProfile:
    """Profile of a known asset, the default profile for anything else."""
    try:
        return ASSET_PROFILES[Asset.from_string(asset)]
    except ValueError:
        return DEFAULT_PROFILE


def time_of_day_factor(hour: int) -> float:
    """Volume multiplier for an hour of the UTC day."""
    if 12 <= hour < 20:
        return 1.2
    if hour < 6:
        return 0.8
    return 1.0


class SyntheticDataSource(IHistoricalDataSource):
    """Deterministic-per-request trending random walk.

    With a seed, every request derives its own generator from
    ``(seed, asset, start, end)``: identical requests return identical
    series and concurrent requests share no random state. Without a seed,
    fresh entropy is used.
    """

    name = "synthetic"
    data_source = DataSource.SYNTHETIC

    def __init__(self, seed: int | None = None, step_hours: int = 1) -> None:
        if step_hours <= 0 or FUNDING_INTERVAL_HOURS % step_hours:
            raise ConfigurationError(
                f"step_hours must be a positive divisor of {FUNDING_INTERVAL_HOURS}, got {step_hours}"
            )
        self.seed = seed
        self.step_hours = step_hours

    def _rng(self, asset: str, start_ms: int, end_ms: int) -> np.random.Generator:
        if self.seed is None:
            return np.random.default_rng()
        entropy = [
            self.seed & 0xFFFFFFFF,
            zlib.crc32(asset.encode("utf-8")),
            start_ms & 0xFFFFFFFFFFFF,
            end_ms & 0xFFFFFFFFFFFF,
        ]
        return np.random.default_rng(np.random.SeedSequence(entropy))

    def generate(self, asset: str, start_ms: int, end_ms: int) -> list[HistoricalSample]:
        """Generate samples every ``step_hours`` over ``[start_ms, end_ms]``."""
        rng = self._rng(asset, start_ms, end_ms)
        profile = profile_for(asset)
        step_volatility = profile.daily_volatility * math.sqrt(self.step_hours / 24)
        step_ms = self.step_hours * MS_PER_HOUR
        funding_every = FUNDING_INTERVAL_HOURS // self.step_hours

        direction = 1 if rng.uniform() > 0.5 else -1
        strength = rng.uniform(*TREND_STRENGTH_RANGE)
        trend_hours = int(rng.integers(TREND_DURATION_HOURS[0], TREND_DURATION_HOURS[1] + 1))
        hours_in_trend = 0

        price = profile.base_price
        samples: list[HistoricalSample] = []
        timestamp = start_ms
        step = 0
        while timestamp <= end_ms:
            if hours_in_trend >= trend_hours:
                direction = -direction
                strength = rng.uniform(*TREND_STRENGTH_RANGE)
                trend_hours = int(rng.integers(TREND_DURATION_HOURS[0], TREND_DURATION_HOURS[1] + 1))
                hours_in_trend = 0

            if step > 0:
                change = (rng.uniform(-1.0, 1.0) + direction * strength * 0.5) * step_volatility * price
                price = max(MIN_PRICE, price + change)

            funding_rate = None
            if step % funding_every == 0:
                funding_rate = direction * FUNDING_TREND_SCALE * strength + (
                    rng.uniform() - 0.5
                ) * FUNDING_NOISE
                if rng.uniform() < FUNDING_INVERSION_PROBABILITY:
                    funding_rate *= FUNDING_INVERSION_FACTOR

            moment = datetime.fromtimestamp(timestamp / 1000, tz=UTC)
            volume = price * (BASE_VOLUME + rng.uniform() * VOLUME_SPREAD)
            volume *= time_of_day_factor(moment.hour)
            if moment.weekday() >= 5:
                volume *= WEEKEND_VOLUME_FACTOR

            samples.append(
                HistoricalSample(
                    timestamp=timestamp,
                    price=float(price),
                    volume=float(volume),
                    funding_rate=None if funding_rate is None else float(funding_rate),
                    asset=asset,
                    exchange=SYNTHETIC_EXCHANGE,
                )
            )
            timestamp += step_ms
            hours_in_trend += self.step_hours
            step += 1

        logger.debug(f"Generated {len(samples)} synthetic samples for {asset}")
        return samples

    async def get_series(
        self,
        asset: str,
        start_ms: int,
        end_ms: int,
        cancellation: CancellationToken | None = None,
    ) -> list[HistoricalSample]:
        return self.generate(asset, start_ms, end_ms)
