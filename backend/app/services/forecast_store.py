# app/services/forecast_store.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Generic, List, Optional, Sequence, TypeVar

import structlog
from sqlalchemy import delete, func, insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.constants import MarketSegment
from app.models.occupancy_forecast import OccupancyForecast
from app.schemas.forecast import ForecastFilters, ForecastRow

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class BackendResult(Generic[T]):
    """Outcome of one store call: a value, or the error message that replaced it."""

    value: Optional[T] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "BackendResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: str) -> "BackendResult[T]":
        return cls(error=error)


def _to_date(value: Any) -> Any:
    if isinstance(value, str):
        return date.fromisoformat(value)
    return value


def _prepare_row(row: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(row)
    out["as_of_date"] = _to_date(out.get("as_of_date"))
    out["forecast_date"] = _to_date(out.get("forecast_date"))
    for key in ("market_segment", "forecast_horizon"):
        out[key] = getattr(out.get(key), "value", out.get(key))
    return out


def _conditions(filters: Optional[ForecastFilters]) -> List[Any]:
    if filters is None:
        return []
    conds = []
    if filters.city:
        conds.append(OccupancyForecast.city == filters.city)
    if filters.as_of_date:
        conds.append(OccupancyForecast.as_of_date == filters.as_of_date)
    if filters.forecast_date:
        conds.append(OccupancyForecast.forecast_date == filters.forecast_date)
    if filters.market_segment:
        conds.append(OccupancyForecast.market_segment == filters.market_segment.value)
    if filters.forecast_horizon:
        conds.append(OccupancyForecast.forecast_horizon == filters.forecast_horizon.value)
    if filters.report_id:
        conds.append(OccupancyForecast.report_id == filters.report_id)
    if filters.start_date:
        conds.append(OccupancyForecast.forecast_date >= filters.start_date)
    if filters.end_date:
        conds.append(OccupancyForecast.forecast_date <= filters.end_date)
    return conds


class ForecastStore:
    """
    The occupancy_forecasts table as the upload pipeline and dashboard see it.

    Every call returns a BackendResult; database errors are rolled back,
    logged and handed to the caller rather than raised.
    """

    def __init__(self, db: Session):
        self.db = db

    def _fail(self, op: str, exc: Exception, **fields: Any) -> BackendResult:
        self.db.rollback()
        logger.error("store.call_failed", op=op, error=str(exc), **fields)
        return BackendResult.failure(f"{op} failed: {exc}")

    # ------------------------------------------------------------------
    # Mutations (upload coordinator)
    # ------------------------------------------------------------------

    async def report_exists(self, report_id: str) -> BackendResult[bool]:
        try:
            found = self.db.execute(
                select(OccupancyForecast.id)
                .where(OccupancyForecast.report_id == report_id)
                .limit(1)
            ).first()
        except SQLAlchemyError as exc:
            return self._fail("report_exists", exc, report_id=report_id)
        return BackendResult.success(found is not None)

    async def delete_report(self, report_id: str) -> BackendResult[int]:
        try:
            result = self.db.execute(
                delete(OccupancyForecast).where(OccupancyForecast.report_id == report_id)
            )
            self.db.commit()
        except SQLAlchemyError as exc:
            return self._fail("delete_report", exc, report_id=report_id)
        return BackendResult.success(int(result.rowcount or 0))

    async def insert_batch(self, rows: Sequence[Dict[str, Any]]) -> BackendResult[int]:
        if not rows:
            return BackendResult.success(0)
        try:
            self.db.execute(insert(OccupancyForecast), [_prepare_row(r) for r in rows])
            self.db.commit()
        except SQLAlchemyError as exc:
            return self._fail("insert_batch", exc, rows=len(rows))
        return BackendResult.success(len(rows))

    # ------------------------------------------------------------------
    # Queries (dashboard)
    # ------------------------------------------------------------------

    async def select_forecasts(
        self,
        filters: Optional[ForecastFilters] = None,
        *,
        limit: Optional[int] = None,
    ) -> BackendResult[List[Dict[str, Any]]]:
        stmt = (
            select(OccupancyForecast)
            .where(*_conditions(filters))
            .order_by(OccupancyForecast.forecast_date.asc(), OccupancyForecast.market_segment.asc())
        )
        if limit:
            stmt = stmt.limit(int(limit))
        try:
            rows = self.db.execute(stmt).scalars().all()
        except SQLAlchemyError as exc:
            return self._fail("select_forecasts", exc)
        data = [ForecastRow.model_validate(r).model_dump(mode="json") for r in rows]
        return BackendResult.success(data)

    async def count_rows(self, filters: Optional[ForecastFilters] = None) -> BackendResult[int]:
        stmt = select(func.count(OccupancyForecast.id)).where(*_conditions(filters))
        try:
            count = self.db.execute(stmt).scalar_one()
        except SQLAlchemyError as exc:
            return self._fail("count_rows", exc)
        return BackendResult.success(int(count or 0))

    async def distinct_reports(self) -> BackendResult[List[Dict[str, Any]]]:
        """Distinct (city, as_of_date) pairs, newest as-of date first."""
        stmt = (
            select(OccupancyForecast.city, OccupancyForecast.as_of_date)
            .distinct()
            .order_by(OccupancyForecast.as_of_date.desc(), OccupancyForecast.city.asc())
        )
        try:
            rows = self.db.execute(stmt).all()
        except SQLAlchemyError as exc:
            return self._fail("distinct_reports", exc)
        return BackendResult.success([
            {"city": r.city, "as_of_date": r.as_of_date.isoformat()} for r in rows
        ])

    async def forecast_evolution(
        self,
        city: str,
        forecast_date: date,
        segment: MarketSegment = MarketSegment.TOTALS,
    ) -> BackendResult[List[Dict[str, Any]]]:
        """How the forecast for one stay date moved across successive reports."""
        stmt = (
            select(
                OccupancyForecast.as_of_date,
                OccupancyForecast.current_occupancy,
                OccupancyForecast.days_out,
                OccupancyForecast.stly_variance,
                OccupancyForecast.weekly_pickup,
            )
            .where(
                OccupancyForecast.city == city,
                OccupancyForecast.forecast_date == forecast_date,
                OccupancyForecast.market_segment == segment.value,
            )
            .order_by(OccupancyForecast.as_of_date.asc())
        )
        try:
            rows = self.db.execute(stmt).all()
        except SQLAlchemyError as exc:
            return self._fail("forecast_evolution", exc, city=city)
        return BackendResult.success([
            {
                "as_of_date": r.as_of_date.isoformat(),
                "current_occupancy": float(r.current_occupancy),
                "days_out": int(r.days_out),
                "stly_variance": float(r.stly_variance),
                "weekly_pickup": float(r.weekly_pickup),
            }
            for r in rows
        ])

    async def stats(self) -> BackendResult[Dict[str, Any]]:
        stmt = select(
            func.count(OccupancyForecast.id),
            func.count(func.distinct(OccupancyForecast.city)),
            func.count(func.distinct(OccupancyForecast.report_id)),
            func.max(OccupancyForecast.as_of_date),
        )
        try:
            total, cities, reports, latest = self.db.execute(stmt).one()
        except SQLAlchemyError as exc:
            return self._fail("stats", exc)
        return BackendResult.success({
            "total_records": int(total or 0),
            "total_cities": int(cities or 0),
            "total_reports": int(reports or 0),
            "latest_update": latest.isoformat() if latest else None,
        })


__all__ = ["ForecastStore", "BackendResult"]
