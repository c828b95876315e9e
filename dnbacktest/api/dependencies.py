"""
Shared engine objects for the API.

The provider (and with it the series cache) is created once per process
and shared by every request.
"""

from functools import lru_cache

from loguru import logger

from dnbacktest.core.engine.backtester import PredictorFactory
from dnbacktest.core.models.settings import EngineSettings
from dnbacktest.core.prediction.statistical import StatisticalFundingRatePredictor
from dnbacktest.infrastructure.data import (
    HistoricalDataProvider,
    SyntheticDataSource,
    create_data_source,
)
from dnbacktest.infrastructure.prediction.external_predictor import ExternalModelPredictor


@lru_cache
def get_settings() -> EngineSettings:
    return EngineSettings.from_env()


@lru_cache
def get_provider() -> HistoricalDataProvider:
    settings = get_settings()
    options: dict = {}
    if settings.data_source == "csv":
        options["directory"] = settings.data_dir
    elif settings.data_source == "live":
        options["timeout"] = settings.http_timeout_seconds
    elif settings.data_source == "synthetic":
        options["seed"] = settings.seed
    source = create_data_source(settings.data_source, **options)
    logger.info(f"API data source: {source.name}")
    return HistoricalDataProvider(source=source, fallback=SyntheticDataSource(seed=settings.seed))


def get_predictor_factory() -> PredictorFactory | None:
    """External predictor when an API key is configured, else the default."""
    settings = get_settings()
    if not settings.predictor_api_key:
        return None

    def factory(rng):
        return ExternalModelPredictor(
            api_key=settings.predictor_api_key,
            endpoint=settings.predictor_endpoint,
            model=settings.predictor_model,
            fallback=StatisticalFundingRatePredictor(rng=rng),
            timeout=settings.http_timeout_seconds,
        )

    return factory
