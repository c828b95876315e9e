"""
Backtest API endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger

from dnbacktest.core.engine.backtester import PredictorFactory, StrategyBacktester
from dnbacktest.core.enums import StrategyKind
from dnbacktest.core.exceptions.backtest import BacktestException, ValidationError
from dnbacktest.core.models.settings import EngineSettings
from dnbacktest.infrastructure.data import HistoricalDataProvider

from ..dependencies import get_predictor_factory, get_provider, get_settings
from ..schemas.api_models import BacktestRequest, StrategyKindInfo

router = APIRouter()


@router.post("/")
async def run_backtest(
    request: BacktestRequest,
    provider: HistoricalDataProvider = Depends(get_provider),
    predictor_factory: PredictorFactory | None = Depends(get_predictor_factory),
    settings: EngineSettings = Depends(get_settings),
) -> dict:
    """Run a backtest and return the full result."""
    seed = request.seed if request.seed is not None else settings.seed
    backtester = StrategyBacktester(provider, seed=seed, predictor_factory=predictor_factory)
    try:
        result = await backtester.backtest(
            request.to_strategy_config(),
            request.start_date,
            request.end_date,
            use_ai_enhancement=request.use_ai_enhancement,
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except BacktestException as e:
        logger.error(f"Backtest {request.strategy_id} failed: {e}")
        raise HTTPException(status_code=500, detail=str(e)) from e
    return result.to_dict()


@router.get("/strategy-kinds")
async def get_strategy_kinds() -> list[StrategyKindInfo]:
    """List supported strategy kinds."""
    return [
        StrategyKindInfo(
            kind=kind.value,
            default_assets=list(StrategyKind.default_assets(kind)),
            dedicated_simulator=kind.has_dedicated_simulator,
        )
        for kind in StrategyKind
    ]
