# app/schemas/forecast.py
from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.core.constants import ForecastHorizon, MarketSegment


class ReportMetadata(BaseModel):
    file_name: str
    report_id: str
    as_of_date: str = Field(..., description="Canonical YYYY-MM-DD")
    city: str
    as_of_date_from_file: Optional[str] = None
    city_from_file: Optional[str] = None
    total_capacity: Optional[float] = None

    model_config = ConfigDict(frozen=True)


class ForecastRecord(BaseModel):
    """One stored row: a forecast date for one market segment of one report."""

    as_of_date: date
    report_id: str
    city: str
    forecast_date: date
    market_segment: MarketSegment
    current_occupancy: float
    weekly_pickup: float
    stly_variance: float
    days_out: int
    forecast_horizon: ForecastHorizon

    model_config = ConfigDict(frozen=True)

    def to_row(self) -> dict:
        """Backend row shape: ISO date strings and plain enum labels."""
        return self.model_dump(mode="json")


class ForecastRow(ForecastRecord):
    id: int

    model_config = ConfigDict(frozen=True, from_attributes=True)


class ForecastFilters(BaseModel):
    city: Optional[str] = None
    as_of_date: Optional[date] = None
    forecast_date: Optional[date] = None
    market_segment: Optional[MarketSegment] = None
    forecast_horizon: Optional[ForecastHorizon] = None
    report_id: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


__all__ = [
    "ReportMetadata",
    "ForecastRecord",
    "ForecastRow",
    "ForecastFilters",
]
