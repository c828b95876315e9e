"""
Asset enumerations.

Known assets use CoinGecko identifiers as values, which is what the
price source expects; exchange tickers are derived from them.
"""

from enum import StrEnum


class Asset(StrEnum):
    """
    Assets with dedicated synthetic-data parameters and ticker mappings.
    """

    BITCOIN = "bitcoin"
    ETHEREUM = "ethereum"
    SOLANA = "solana"
    USD_COIN = "usd-coin"
    TETHER = "tether"
    DAI = "dai"

    @property
    def ticker(self) -> str:
        """Exchange ticker for the asset (e.g., "BTC")."""
        tickers = {
            Asset.BITCOIN: "BTC",
            Asset.ETHEREUM: "ETH",
            Asset.SOLANA: "SOL",
            Asset.USD_COIN: "USDC",
            Asset.TETHER: "USDT",
            Asset.DAI: "DAI",
        }
        return tickers[self]

    @classmethod
    def from_string(cls, value: str) -> "Asset":
        """
        Convert string to Asset, accepting identifiers or tickers.

        Args:
            value: CoinGecko identifier ("solana") or ticker ("SOL")

        Returns:
            Corresponding Asset enum value

        Raises:
            ValueError: If the asset is not known
        """
        lowered = value.lower()
        for asset in cls:
            if lowered in (asset.value, asset.ticker.lower()):
                return asset
        raise ValueError(
            f"Unsupported asset: {value}. Supported assets: {', '.join([a.value for a in cls])}"
        )

    @classmethod
    def ticker_for(cls, value: str) -> str:
        """Ticker for a known asset, or the upper-cased value for unknown ones."""
        try:
            return cls.from_string(value).ticker
        except ValueError:
            return value.upper()
