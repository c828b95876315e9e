"""
Strategy kind enumerations.

This module defines the strategy archetypes the backtester can simulate.
"""

from enum import StrEnum


class StrategyKind(StrEnum):
    """
    Supported delta-neutral strategy archetypes.

    Values are the display names used by the dashboard that submits
    strategies for backtesting.
    """

    BASIS_TRADE = "Basis Trade"  # Spot/futures basis capture
    FUNDING_RATE = "Funding Rate"  # Perpetual funding-rate arbitrage
    STAKING_HEDGED = "Staking-Hedged"
    LP_HEDGED = "LP-Hedged"
    MULTI_PROTOCOL = "Multi-Protocol"

    @classmethod
    def default_assets(cls, kind: "StrategyKind") -> tuple[str, ...]:
        """
        Get the assets a strategy kind needs historical data for.

        Args:
            kind: Strategy kind enum value

        Returns:
            Tuple of asset identifiers, primary asset first
        """
        assets = {
            cls.FUNDING_RATE: ("solana",),
            cls.BASIS_TRADE: ("bitcoin", "ethereum"),
        }
        return assets.get(kind, ("bitcoin",))

    @property
    def has_dedicated_simulator(self) -> bool:
        """Check if the kind is simulated by its own model rather than the blended one."""
        return self in [self.BASIS_TRADE, self.FUNDING_RATE]

    @classmethod
    def from_string(cls, value: str) -> "StrategyKind":
        """
        Convert string to StrategyKind, accepting display names and identifiers.

        Args:
            value: Display name ("Funding Rate"), member name ("FUNDING_RATE")
                or CamelCase name ("FundingRate")

        Returns:
            Corresponding StrategyKind enum value

        Raises:
            ValueError: If the kind is not supported
        """
        normalized = value.replace("-", "").replace("_", "").replace(" ", "").lower()
        for kind in cls:
            if normalized == kind.value.replace("-", "").replace(" ", "").lower():
                return kind
        raise ValueError(
            f"Unsupported strategy kind: {value}. "
            f"Supported kinds: {', '.join([k.value for k in cls])}"
        )
