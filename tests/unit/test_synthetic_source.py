"""
Unit tests for the synthetic data source.
"""

import pytest

from dnbacktest.core.enums import DataSource
from dnbacktest.core.exceptions.backtest import ConfigurationError
from dnbacktest.infrastructure.data.synthetic_source import (
    DEFAULT_PROFILE,
    SyntheticDataSource,
    profile_for,
    time_of_day_factor,
)

HOUR = 3_600_000
T0 = 1_704_067_200_000  # 2024-01-01T00:00:00Z (Monday)
T_END = T0 + 10 * 24 * HOUR


class TestSyntheticDataSource:
    """Tests for SyntheticDataSource."""

    def test_should_generate_hourly_samples_over_window(self) -> None:
        """Test sampling cadence and window bounds."""
        samples = SyntheticDataSource(seed=1).generate("solana", T0, T_END)

        assert len(samples) == 10 * 24 + 1
        assert samples[0].timestamp == T0
        assert samples[-1].timestamp == T_END
        assert all(b.timestamp - a.timestamp == HOUR for a, b in zip(samples, samples[1:]))

    def test_should_emit_funding_every_eight_hours(self) -> None:
        """Test funding cadence."""
        samples = SyntheticDataSource(seed=1).generate("solana", T0, T_END)
        funding_times = [s.timestamp for s in samples if s.funding_rate is not None]

        assert funding_times[0] == T0
        assert all(b - a == 8 * HOUR for a, b in zip(funding_times, funding_times[1:]))
        assert len(funding_times) == 31

    def test_should_support_coarser_steps(self) -> None:
        """Test step sizes that divide the funding interval."""
        samples = SyntheticDataSource(seed=1, step_hours=4).generate("solana", T0, T0 + 24 * HOUR)
        assert len(samples) == 7
        assert [s.funding_rate is not None for s in samples] == [True, False, True, False, True, False, True]

    @pytest.mark.parametrize("step_hours", [0, 3, 5])
    def test_should_reject_steps_not_dividing_funding_interval(self, step_hours) -> None:
        """Test step validation."""
        with pytest.raises(ConfigurationError, match="step_hours"):
            SyntheticDataSource(step_hours=step_hours)

    def test_should_be_deterministic_per_seed(self) -> None:
        """Test identical requests produce identical series."""
        first = SyntheticDataSource(seed=42).generate("solana", T0, T_END)
        second = SyntheticDataSource(seed=42).generate("solana", T0, T_END)
        assert first == second

    def test_should_differ_across_seeds_and_assets(self) -> None:
        """Test independent random streams."""
        base = SyntheticDataSource(seed=42).generate("solana", T0, T_END)
        other_seed = SyntheticDataSource(seed=43).generate("solana", T0, T_END)
        other_asset = SyntheticDataSource(seed=42).generate("bitcoin", T0, T_END)

        assert [s.price for s in base] != [s.price for s in other_seed]
        assert [s.funding_rate for s in base] != [s.funding_rate for s in other_asset]

    def test_should_keep_prices_positive_and_tag_samples(self) -> None:
        """Test price floor and sample tags."""
        samples = SyntheticDataSource(seed=3).generate("dai", T0, T0 + 90 * 24 * HOUR)

        assert all(s.price >= 0.001 for s in samples)
        assert all(s.volume is not None and s.volume > 0 for s in samples)
        assert {s.asset for s in samples} == {"dai"}
        assert {s.exchange for s in samples} == {"synthetic"}

    def test_should_start_at_profile_base_price(self) -> None:
        """Test starting prices from asset profiles."""
        source = SyntheticDataSource(seed=1)
        assert source.generate("bitcoin", T0, T0 + HOUR)[0].price == 30000.0
        assert source.generate("unknown-token", T0, T0 + HOUR)[0].price == DEFAULT_PROFILE.base_price

    @pytest.mark.asyncio
    async def test_should_serve_series_asynchronously(self) -> None:
        """Test async interface and reported origin."""
        source = SyntheticDataSource(seed=5)
        samples = await source.get_series("ethereum", T0, T0 + 24 * HOUR)

        assert len(samples) == 25
        assert source.data_source == DataSource.SYNTHETIC
        assert source.name == "synthetic"


class TestSyntheticProfiles:
    """Tests for asset profiles and volume shaping."""

    def test_should_resolve_profiles_by_ticker(self) -> None:
        """Test profile lookup."""
        assert profile_for("BTC").base_price == 30000.0
        assert profile_for("SOL").daily_volatility == 0.04
        assert profile_for("pepe") is DEFAULT_PROFILE

    def test_should_shape_volume_by_hour(self) -> None:
        """Test time-of-day factors."""
        assert time_of_day_factor(14) == 1.2
        assert time_of_day_factor(3) == 0.8
        assert time_of_day_factor(9) == 1.0
