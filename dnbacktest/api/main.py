"""
FastAPI main application for the delta-neutral strategy backtester.
"""

from typing import Any

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from dnbacktest.core.exceptions.backtest import BacktestException, ValidationError
from dnbacktest.core.models.settings import EngineSettings
from dnbacktest.infrastructure.data import HistoricalDataProvider

from .dependencies import get_provider, get_settings
from .routers import backtest, data
from .schemas.api_models import ErrorResponse

app = FastAPI(
    title="Delta-Neutral Backtesting API",
    version="1.0.0",
    description="Backtests delta-neutral yield strategies over historical or synthetic market data",
)

# Dashboard origins only
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:8080"],
    allow_credentials=False,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization", "Accept", "Origin"],
)

app.include_router(backtest.router, prefix="/api/backtest", tags=["backtest"])
app.include_router(data.router, prefix="/api/data", tags=["data"])


@app.exception_handler(BacktestException)
async def backtest_exception_handler(request: Request, exc: BacktestException) -> JSONResponse:
    """Engine errors not handled by a router (e.g. misconfigured data source)."""
    status_code = 422 if isinstance(exc, ValidationError) else 500
    logger.error(f"{request.method} {request.url.path} failed: {type(exc).__name__}: {exc}")
    body = ErrorResponse(error=type(exc).__name__, message=str(exc))
    return JSONResponse(status_code=status_code, content=body.model_dump())


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint returning API information."""
    return {"message": "Delta-Neutral Backtesting API", "version": "1.0.0", "status": "running"}


@app.get("/health")
async def health(
    settings: EngineSettings = Depends(get_settings),
    provider: HistoricalDataProvider = Depends(get_provider),
) -> dict[str, Any]:
    """Health check with the configured data source and series cache usage."""
    return {
        "status": "healthy",
        "data_source": settings.data_source,
        "series_cache": provider.cache.get_stats(),
    }
