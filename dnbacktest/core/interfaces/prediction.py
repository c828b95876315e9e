"""
Funding-rate prediction interface.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable

from dnbacktest.core.models.market import (
    AssetFeatures,
    FundingRatePrediction,
    FundingRateSnapshot,
    HistoricalSample,
)


class IFundingRatePredictor(ABC):
    """Abstract interface for funding-rate forecasters."""

    @abstractmethod
    def add_history(self, samples: Iterable[HistoricalSample]) -> int:
        """Append funding observations to the in-memory history.

        Returns:
            Number of samples actually added
        """
        pass

    @abstractmethod
    def history(self, asset: str, exchange: str) -> list[HistoricalSample]:
        """Get the funding history held for an asset/exchange pair."""
        pass

    @abstractmethod
    async def predict(
        self,
        current_rates: list[FundingRateSnapshot],
        market_features: list[AssetFeatures],
    ) -> list[FundingRatePrediction]:
        """Predict funding rates, one prediction per rate with matching features.

        Rates whose asset has no entry in ``market_features`` are skipped.
        Implementations must not raise for upstream service failures.
        """
        pass
