"""
Live historical data source.

Prices and volumes come from the CoinGecko market-chart range endpoint;
funding rates from the public Binance, OKX and Bybit funding history
endpoints, paged until the requested range is covered. Each funding
observation is attached to the single nearest price point within a few
hours. Blocking HTTP calls run in the default thread executor.
"""

import asyncio
from bisect import bisect_left
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import requests
from loguru import logger

from dnbacktest.core.constants import FUNDING_MERGE_WINDOW_HOURS, HTTP_TIMEOUT_SECONDS, MS_PER_HOUR
from dnbacktest.core.enums import Asset, DataSource
from dnbacktest.core.exceptions.backtest import DataError
from dnbacktest.core.interfaces.data import IHistoricalDataSource
from dnbacktest.core.models.market import HistoricalSample
from dnbacktest.core.utils.cancellation import CancellationToken, check_cancelled

COINGECKO_RANGE_URL = "https://api.coingecko.com/api/v3/coins/{coin_id}/market_chart/range"
BINANCE_FUNDING_URL = "https://fapi.binance.com/fapi/v1/fundingRate"
OKX_FUNDING_URL = "https://www.okx.com/api/v5/public/funding-rate-history"
BYBIT_FUNDING_URL = "https://api.bybit.com/v5/market/funding/history"

DEFAULT_EXCHANGES = ("binance", "okx", "bybit")

# Largest page each funding history endpoint returns
BINANCE_PAGE_LIMIT = 1000
OKX_PAGE_LIMIT = 100
BYBIT_PAGE_LIMIT = 200

# (timestamp ms, funding rate, exchange)
FundingObservation = tuple[int, float, str]


def coingecko_id(asset: str) -> str:
    """CoinGecko coin id for an asset identifier or ticker."""
    try:
        return Asset.from_string(asset).value
    except ValueError:
        return asset.lower()


class LiveExchangeDataSource(IHistoricalDataSource):
    """
    HTTP-backed historical data source.

    Features:
    - CoinGecko price/volume history
    - Paged funding history from several exchanges, queried one after another
    - Failing exchanges are logged and skipped
    - Cancellation checked between requests
    """

    name = "live"
    data_source = DataSource.LIVE

    def __init__(
        self,
        exchanges: tuple[str, ...] = DEFAULT_EXCHANGES,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
        merge_window_hours: float = FUNDING_MERGE_WINDOW_HOURS,
    ) -> None:
        unknown = set(exchanges) - set(DEFAULT_EXCHANGES)
        if unknown:
            raise ValueError(f"Unsupported exchanges: {', '.join(sorted(unknown))}")
        self.exchanges = exchanges
        self.timeout = timeout
        self.session = session or requests.Session()
        self.merge_window_ms = int(merge_window_hours * MS_PER_HOUR)

    async def get_series(
        self,
        asset: str,
        start_ms: int,
        end_ms: int,
        cancellation: CancellationToken | None = None,
    ) -> list[HistoricalSample]:
        check_cancelled(cancellation, f"price download for {asset}")
        prices = await self._run(self._fetch_prices, asset, start_ms, end_ms)

        funding: list[FundingObservation] = []
        for exchange in self.exchanges:
            check_cancelled(cancellation, f"{exchange} funding download for {asset}")
            try:
                observations = await self._run(
                    self._fetch_funding, exchange, asset, start_ms, end_ms, cancellation
                )
            except (requests.RequestException, DataError, ValueError, KeyError, TypeError) as e:
                logger.warning(f"Skipping {exchange} funding rates for {asset}: {e}")
                continue
            logger.debug(f"Loaded {len(observations)} {exchange} funding rates for {asset}")
            funding.extend(observations)

        samples = self._merge(asset, prices, funding)
        logger.info(f"Loaded {len(samples)} live samples for {asset} ({len(funding)} funding rates)")
        return samples

    async def _run(self, func: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)

    def _get_json(self, url: str, params: dict[str, Any]) -> Any:
        response = self.session.get(url, params=params, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def _fetch_prices(
        self, asset: str, start_ms: int, end_ms: int
    ) -> list[tuple[int, float, float | None]]:
        data = self._get_json(
            COINGECKO_RANGE_URL.format(coin_id=coingecko_id(asset)),
            {"vs_currency": "usd", "from": start_ms // 1000, "to": end_ms // 1000},
        )
        if not isinstance(data, dict) or not isinstance(data.get("prices"), list):
            raise DataError(f"Malformed price response for {asset}")

        volumes = {int(ts): float(vol) for ts, vol in data.get("total_volumes") or []}
        points = [(int(ts), float(price), volumes.get(int(ts))) for ts, price in data["prices"]]
        if not points:
            raise DataError(f"Empty price history for {asset}")
        return points

    def _fetch_funding(
        self,
        exchange: str,
        asset: str,
        start_ms: int,
        end_ms: int,
        cancellation: CancellationToken | None = None,
    ) -> list[FundingObservation]:
        ticker = Asset.ticker_for(asset)
        if exchange == "binance":
            rows = self._page_binance(f"{ticker}USDT", start_ms, end_ms, cancellation)
        elif exchange == "okx":
            rows = self._page_okx(f"{ticker}-USDT-SWAP", start_ms, end_ms, cancellation)
        else:
            rows = self._page_bybit(f"{ticker}USDT", start_ms, end_ms, cancellation)
        unique = {ts: rate for ts, rate in rows if start_ms <= ts <= end_ms}
        return [(ts, rate, exchange) for ts, rate in sorted(unique.items())]

    def _page_binance(
        self, symbol: str, start_ms: int, end_ms: int, cancellation: CancellationToken | None
    ) -> list[tuple[int, float]]:
        """Walk forward from ``start_ms``; Binance returns the oldest rows first."""
        rows: list[tuple[int, float]] = []
        cursor = start_ms
        while cursor <= end_ms:
            check_cancelled(cancellation, f"Binance funding page for {symbol}")
            data = self._get_json(
                BINANCE_FUNDING_URL,
                {"symbol": symbol, "startTime": cursor, "endTime": end_ms, "limit": BINANCE_PAGE_LIMIT},
            )
            if not isinstance(data, list):
                raise DataError("Invalid response from Binance API")
            page = [(int(item["fundingTime"]), float(item["fundingRate"])) for item in data]
            rows.extend(page)
            if len(page) < BINANCE_PAGE_LIMIT:
                break
            next_cursor = max(ts for ts, _ in page) + 1
            if next_cursor <= cursor:
                break
            cursor = next_cursor
        return rows

    def _page_okx(
        self, inst_id: str, start_ms: int, end_ms: int, cancellation: CancellationToken | None
    ) -> list[tuple[int, float]]:
        """Walk backward from ``end_ms``; ``after`` asks OKX for rows older than the cursor."""
        rows: list[tuple[int, float]] = []
        cursor = end_ms + 1
        while cursor > start_ms:
            check_cancelled(cancellation, f"OKX funding page for {inst_id}")
            data = self._get_json(
                OKX_FUNDING_URL, {"instId": inst_id, "after": cursor, "limit": OKX_PAGE_LIMIT}
            )
            if not isinstance(data, dict) or not isinstance(data.get("data"), list):
                raise DataError("Invalid response from OKX API")
            page = [(int(item["fundingTime"]), float(item["fundingRate"])) for item in data["data"]]
            rows.extend(page)
            if len(page) < OKX_PAGE_LIMIT:
                break
            next_cursor = min(ts for ts, _ in page)
            if next_cursor >= cursor:
                break
            cursor = next_cursor
        return rows

    def _page_bybit(
        self, symbol: str, start_ms: int, end_ms: int, cancellation: CancellationToken | None
    ) -> list[tuple[int, float]]:
        """Walk backward by moving ``endTime``; Bybit returns the newest rows first."""
        rows: list[tuple[int, float]] = []
        cursor = end_ms
        while cursor >= start_ms:
            check_cancelled(cancellation, f"Bybit funding page for {symbol}")
            data = self._get_json(
                BYBIT_FUNDING_URL,
                {
                    "category": "linear",
                    "symbol": symbol,
                    "startTime": start_ms,
                    "endTime": cursor,
                    "limit": BYBIT_PAGE_LIMIT,
                },
            )
            result = data.get("result") if isinstance(data, dict) else None
            if not isinstance(result, dict) or not isinstance(result.get("list"), list):
                raise DataError("Invalid response from Bybit API")
            page = [
                (int(item["fundingRateTimestamp"]), float(item["fundingRate"]))
                for item in result["list"]
            ]
            rows.extend(page)
            if len(page) < BYBIT_PAGE_LIMIT:
                break
            next_cursor = min(ts for ts, _ in page) - 1
            if next_cursor >= cursor:
                break
            cursor = next_cursor
        return rows

    def _merge(
        self,
        asset: str,
        prices: list[tuple[int, float, float | None]],
        funding: list[FundingObservation],
    ) -> list[HistoricalSample]:
        """Attach each funding observation to its single nearest price point.

        Observations further than the merge window from every price point are
        dropped. When several land on the same point the closest one wins, ties
        going to the exchange queried first.
        """
        ordered = sorted(prices)
        timestamps = [timestamp for timestamp, _, _ in ordered]
        attached: dict[int, FundingObservation] = {}
        for observation in funding:
            index = _nearest_index(timestamps, observation[0])
            if index is None:
                continue
            distance = abs(timestamps[index] - observation[0])
            if distance >= self.merge_window_ms:
                continue
            current = attached.get(index)
            if current is None or distance < abs(timestamps[index] - current[0]):
                attached[index] = observation

        samples = []
        for index, (timestamp, price, volume) in enumerate(ordered):
            observation = attached.get(index)
            samples.append(
                HistoricalSample(
                    timestamp=timestamp,
                    price=price,
                    volume=volume,
                    funding_rate=observation[1] if observation else None,
                    asset=asset,
                    exchange=observation[2] if observation else None,
                )
            )
        if samples:
            first = datetime.fromtimestamp(samples[0].timestamp / 1000, tz=UTC)
            logger.debug(
                f"Merged {asset} series starting {first.isoformat()}: "
                f"{len(attached)} of {len(funding)} funding rates attached"
            )
        return samples


def _nearest_index(timestamps: list[int], timestamp: int) -> int | None:
    if not timestamps:
        return None
    position = bisect_left(timestamps, timestamp)
    if position == 0:
        return 0
    if position == len(timestamps):
        return position - 1
    before, after = timestamps[position - 1], timestamps[position]
    return position - 1 if timestamp - before <= after - timestamp else position
