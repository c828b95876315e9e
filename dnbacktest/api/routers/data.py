"""
Data API endpoints.
"""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query

from dnbacktest.core.engine.backtester import to_epoch_ms, to_utc_datetime
from dnbacktest.core.exceptions.backtest import BacktestException, ValidationError
from dnbacktest.core.utils.validation import validate_date_range
from dnbacktest.infrastructure.data import HistoricalDataProvider

from ..dependencies import get_provider
from ..schemas.api_models import SampleModel, SeriesResponse

router = APIRouter()


@router.get("/series")
async def get_series(
    asset: str = Query(..., min_length=1),
    start_date: date = Query(...),
    end_date: date = Query(...),
    provider: HistoricalDataProvider = Depends(get_provider),
) -> SeriesResponse:
    """Get the historical series a backtest would use for an asset."""
    try:
        validate_date_range(start_date, end_date)
        loaded = await provider.get_series(
            asset,
            to_epoch_ms(to_utc_datetime(start_date)),
            to_epoch_ms(to_utc_datetime(end_date)),
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except BacktestException as e:
        raise HTTPException(status_code=502, detail=str(e)) from e

    return SeriesResponse(
        asset=loaded.asset,
        data_source=loaded.data_source.value,
        samples=[
            SampleModel(
                timestamp=s.timestamp,
                price=s.price,
                volume=s.volume,
                funding_rate=s.funding_rate,
                exchange=s.exchange,
            )
            for s in loaded.series
        ],
    )
