"""
External model funding-rate predictor.

Asks an OpenAI-compatible chat-completions endpoint for a JSON forecast
per asset. Any failure for an asset (network, HTTP status, malformed or
incomplete answer) is logged and that asset is forecast by the
statistical fallback instead; callers never see the failure.
"""

import asyncio
import json
import math
import time
from collections.abc import Iterable
from typing import Any

import requests
from loguru import logger

from dnbacktest.core.constants import HTTP_TIMEOUT_SECONDS
from dnbacktest.core.enums import RecommendedAction
from dnbacktest.core.exceptions.backtest import PredictionError, ValidationError
from dnbacktest.core.interfaces.prediction import IFundingRatePredictor
from dnbacktest.core.models.market import (
    AssetFeatures,
    FundingRatePrediction,
    FundingRateSnapshot,
    HistoricalSample,
)
from dnbacktest.core.prediction.statistical import StatisticalFundingRatePredictor

DEFAULT_ENDPOINT = "https://api.openai.com/v1/chat/completions"
DEFAULT_MODEL = "gpt-4-turbo"
HISTORY_POINTS_IN_PROMPT = 24

SYSTEM_PROMPT = (
    "You are a quantitative analyst forecasting perpetual futures funding rates. "
    "Answer with a single JSON object with the keys hourlyRates (24 numbers, "
    "funding rate per 8-hour period), confidence (0 to 1), annualizedYield, "
    "volatilityScore (0 to 10), recommendedAction (long, short, neutral or avoid) "
    "and explanation."
)


class ExternalModelPredictor(IFundingRatePredictor):
    """
    Funding-rate forecasts from an external language model.

    Args:
        api_key: Bearer token for the endpoint
        endpoint: Chat-completions URL
        model: Model identifier sent with each request
        fallback: Predictor used for any asset the model cannot forecast;
            it also holds the funding history
        timeout: Per-request timeout in seconds
        max_retries: Extra attempts after a failed request
        retry_backoff: Base delay between attempts in seconds
        session: HTTP session, injectable for tests
    """

    def __init__(
        self,
        api_key: str,
        endpoint: str = DEFAULT_ENDPOINT,
        model: str = DEFAULT_MODEL,
        fallback: IFundingRatePredictor | None = None,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        max_retries: int = 2,
        retry_backoff: float = 1.0,
        session: requests.Session | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("api_key is required for the external predictor")
        self.api_key = api_key
        self.endpoint = endpoint
        self.model = model
        self.fallback = fallback or StatisticalFundingRatePredictor()
        self.timeout = float(timeout)
        self.max_retries = max(int(max_retries), 0)
        self.retry_backoff = max(float(retry_backoff), 0.0)
        self.session = session or requests.Session()

    def add_history(self, samples: Iterable[HistoricalSample]) -> int:
        return self.fallback.add_history(samples)

    def history(self, asset: str, exchange: str) -> list[HistoricalSample]:
        return self.fallback.history(asset, exchange)

    async def predict(
        self,
        current_rates: list[FundingRateSnapshot],
        market_features: list[AssetFeatures],
    ) -> list[FundingRatePrediction]:
        features = {f.asset: f for f in market_features}
        loop = asyncio.get_running_loop()
        predictions = []
        for snapshot in current_rates:
            feature = features.get(snapshot.asset)
            if feature is None:
                continue
            try:
                prediction = await loop.run_in_executor(None, self._predict_one, snapshot, feature)
            except PredictionError as e:
                logger.warning(
                    f"External prediction failed for {snapshot.asset}, using statistical model: {e}"
                )
                fallback = await self.fallback.predict([snapshot], [feature])
                predictions.extend(fallback)
                continue
            predictions.append(prediction)
        return predictions

    def _predict_one(
        self, snapshot: FundingRateSnapshot, feature: AssetFeatures
    ) -> FundingRatePrediction:
        content = self._request(self._build_prompt(snapshot, feature))
        return self._parse(content, snapshot)

    def _build_prompt(self, snapshot: FundingRateSnapshot, feature: AssetFeatures) -> str:
        recent = self.history(snapshot.asset, snapshot.exchange)[-HISTORY_POINTS_IN_PROMPT:]
        return json.dumps(
            {
                "asset": snapshot.asset,
                "exchange": snapshot.exchange,
                "currentRate": snapshot.rate,
                "annualizedRate": snapshot.annualized_rate,
                "recentRates": [s.funding_rate for s in recent],
                "price": feature.price,
                "volume": feature.volume,
                "volatility": feature.volatility,
            }
        )

    def _request(self, prompt: str) -> str:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": 0.0,
            "response_format": {"type": "json_object"},
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        last_error: Exception | None = None
        for attempt in range(self.max_retries + 1):
            try:
                response = self.session.post(
                    self.endpoint, headers=headers, json=payload, timeout=self.timeout
                )
                if response.status_code >= 400:
                    raise PredictionError(
                        f"Prediction service error: {response.status_code} {response.text[:200]}"
                    )
                data = response.json()
                choices = data.get("choices") or []
                if not choices:
                    raise PredictionError("Prediction response missing choices")
                content = (choices[0].get("message") or {}).get("content")
                if not isinstance(content, str) or not content.strip():
                    raise PredictionError("Prediction response missing message content")
                return content
            except (requests.RequestException, ValueError, AttributeError, PredictionError) as e:
                last_error = e
                if attempt >= self.max_retries:
                    break
                time.sleep(min(self.retry_backoff * 2**attempt, 8.0))

        raise PredictionError(f"Prediction call failed for model={self.model}: {last_error}")

    def _parse(self, content: str, snapshot: FundingRateSnapshot) -> FundingRatePrediction:
        try:
            data: dict[str, Any] = json.loads(content)
        except ValueError as e:
            raise PredictionError(f"Prediction is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise PredictionError("Prediction is not a JSON object")

        missing = {
            "hourlyRates",
            "confidence",
            "annualizedYield",
            "volatilityScore",
            "recommendedAction",
        } - set(data)
        if missing:
            raise PredictionError(f"Prediction missing fields: {sorted(missing)}")

        rates = data["hourlyRates"]
        if not isinstance(rates, list) or len(rates) != 24:
            raise PredictionError("hourlyRates must be a list of 24 numbers")

        try:
            hourly = tuple(float(rate) for rate in rates)
            confidence = float(data["confidence"])
            annualized_yield = float(data["annualizedYield"])
            volatility_score = float(data["volatilityScore"])
            action = RecommendedAction(str(data["recommendedAction"]).lower())
        except (TypeError, ValueError) as e:
            raise PredictionError(f"Invalid prediction field: {e}") from e
        if not math.isfinite(annualized_yield):
            raise PredictionError("annualizedYield must be finite")

        try:
            return FundingRatePrediction(
                asset=snapshot.asset,
                exchange=snapshot.exchange,
                current_rate=snapshot.rate,
                hourly_rates=hourly,
                confidence=confidence,
                expected_annualized_yield=annualized_yield,
                volatility_score=volatility_score,
                recommended_action=action,
                explanation=str(data.get("explanation", "")),
                source="external",
                metadata={"model": self.model},
            )
        except ValidationError as e:
            raise PredictionError(f"Prediction out of range: {e}") from e
