from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Sequence

import structlog

from app.core.constants import FORECAST_DATE_COLUMN, MIN_ROW_WIDTH, SEGMENT_COLUMNS
from app.schemas.forecast import ForecastRecord, ReportMetadata
from app.services.cell_parsing import (
    days_between,
    horizon_from_days_out,
    parse_date,
    parse_number,
    round_hundredths,
)

logger = structlog.get_logger(__name__)


@dataclass
class TransformResult:
    records: List[ForecastRecord] = field(default_factory=list)
    # 1-based sheet row numbers whose forecast date could not be parsed
    skipped_rows: List[int] = field(default_factory=list)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def transform_rows(
    grid: Sequence[Sequence[Any]],
    metadata: ReportMetadata,
    start_row: int,
) -> TransformResult:
    """
    Turn the data body (from ``start_row`` on) into forecast records, five per
    sheet row in Totals, Transient, Group_Sold, Unsold_Block, Other order.

    Short rows and rows without a forecast date are ignored; rows whose date
    cannot be parsed are skipped and reported, never fatal.
    """
    result = TransformResult()

    for idx in range(start_row, len(grid)):
        row = grid[idx]
        if not row or len(row) < MIN_ROW_WIDTH or _is_blank(row[FORECAST_DATE_COLUMN]):
            continue

        forecast_date = parse_date(row[FORECAST_DATE_COLUMN])
        if forecast_date is None:
            result.skipped_rows.append(idx + 1)
            logger.warning(
                "transform.row_skipped",
                row=idx + 1,
                value=str(row[FORECAST_DATE_COLUMN]),
                reason="invalid forecast date",
            )
            continue

        days_out = days_between(metadata.as_of_date, forecast_date)
        horizon = horizon_from_days_out(days_out)

        for segment, current_col, pickup_col, variance_col in SEGMENT_COLUMNS:
            result.records.append(ForecastRecord(
                as_of_date=metadata.as_of_date,
                report_id=metadata.report_id,
                city=metadata.city,
                forecast_date=forecast_date,
                market_segment=segment,
                # Source column holds occupancy as a 0..1 fraction
                current_occupancy=round_hundredths(parse_number(row[current_col]) * 100),
                weekly_pickup=round_hundredths(parse_number(row[pickup_col])),
                stly_variance=round_hundredths(parse_number(row[variance_col])),
                days_out=days_out,
                forecast_horizon=horizon,
            ))

    logger.info(
        "transform.completed",
        report_id=metadata.report_id,
        records=len(result.records),
        skipped_rows=len(result.skipped_rows),
    )
    return result


__all__ = ["transform_rows", "TransformResult"]
