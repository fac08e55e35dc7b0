from sqlalchemy import Column, Integer, String, Date, DateTime, Float, Index
from sqlalchemy.sql import func
from app.core.constants import TABLE_NAME
from app.db.base import Base


class OccupancyForecast(Base):
    """
    One forecast date x market segment from one uploaded report.
    Rows are never updated; a report is replaced by delete-by-report_id + insert.
    """

    __tablename__ = TABLE_NAME

    id = Column(Integer, primary_key=True)
    as_of_date = Column(Date, nullable=False)
    report_id = Column(String(255), nullable=False)
    city = Column(String(128), nullable=False)
    forecast_date = Column(Date, nullable=False)
    market_segment = Column(String(32), nullable=False)
    current_occupancy = Column(Float, nullable=False)
    weekly_pickup = Column(Float, nullable=False)
    stly_variance = Column(Float, nullable=False)
    days_out = Column(Integer, nullable=False)
    forecast_horizon = Column(String(32), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # No unique constraint on report_id: duplicate detection is a probe-then-act
    # sequence in the upload coordinator.
    __table_args__ = (
        Index("ix_occupancy_forecasts_report_id", "report_id"),
        Index("ix_occupancy_forecasts_city_as_of", "city", "as_of_date"),
        Index("ix_occupancy_forecasts_forecast_date", "forecast_date"),
    )
