# app/routers/forecasts.py
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.constants import ForecastHorizon, MarketSegment
from app.db.session import get_db
from app.schemas.common import ok, fail, meta_now
from app.schemas.forecast import ForecastFilters
from app.services.forecast_store import BackendResult, ForecastStore

router = APIRouter(prefix="/api/forecasts", tags=["forecasts"])


def _store_error(result: BackendResult):
    return fail(code="STORE_ERROR", message=result.error or "store call failed", status_code=503)


@router.get("")
async def list_forecasts(
    city: Optional[str] = Query(None),
    as_of_date: Optional[date] = Query(None, description="Report as-of date (YYYY-MM-DD)"),
    forecast_date: Optional[date] = Query(None, description="Single stay date (YYYY-MM-DD)"),
    market_segment: Optional[MarketSegment] = Query(None),
    forecast_horizon: Optional[ForecastHorizon] = Query(None),
    report_id: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None, description="YYYY-MM-DD inclusive"),
    end_date: Optional[date] = Query(None, description="YYYY-MM-DD inclusive"),
    limit: int = Query(1000, ge=1, le=10000),
    db: Session = Depends(get_db),
):
    """
    Stored forecast rows ordered by stay date then segment.

    `meta.params.total` is the number of matching rows before `limit`.
    """
    filters = ForecastFilters(
        city=city,
        as_of_date=as_of_date,
        forecast_date=forecast_date,
        market_segment=market_segment,
        forecast_horizon=forecast_horizon,
        report_id=report_id,
        start_date=start_date,
        end_date=end_date,
    )
    store = ForecastStore(db)
    rows = await store.select_forecasts(filters, limit=limit)
    if not rows.ok:
        return _store_error(rows)
    total = await store.count_rows(filters)
    if not total.ok:
        return _store_error(total)

    return ok(
        data=rows.value,
        meta=meta_now(
            report_id=report_id,
            total=total.value,
            returned=len(rows.value),
            limit=limit,
            **filters.model_dump(mode="json", exclude={"report_id"}, exclude_none=True),
        ),
    )


@router.get("/reports")
async def list_reports(db: Session = Depends(get_db)):
    """Distinct (city, as_of_date) pairs plus the cities and dates they span."""
    result = await ForecastStore(db).distinct_reports()
    if not result.ok:
        return _store_error(result)
    reports = result.value
    cities = sorted({r["city"] for r in reports})
    dates = sorted({r["as_of_date"] for r in reports}, reverse=True)
    return ok(data={"reports": reports, "cities": cities, "dates": dates}, meta=meta_now())


@router.get("/evolution")
async def forecast_evolution(
    city: str = Query(..., description="City as stored in the report"),
    forecast_date: date = Query(..., description="Stay date (YYYY-MM-DD)"),
    segment: MarketSegment = Query(MarketSegment.TOTALS),
    db: Session = Depends(get_db),
):
    result = await ForecastStore(db).forecast_evolution(city, forecast_date, segment)
    if not result.ok:
        return _store_error(result)
    return ok(
        data=result.value,
        meta=meta_now(city=city, forecast_date=forecast_date.isoformat(), segment=segment.value),
    )


@router.get("/stats")
async def forecast_stats(db: Session = Depends(get_db)):
    result = await ForecastStore(db).stats()
    if not result.ok:
        return _store_error(result)
    return ok(data=result.value, meta=meta_now())
