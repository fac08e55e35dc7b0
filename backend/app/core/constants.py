# app/core/constants.py
"""Fixed facts about the Amadeus forecast export layout and the stored schema."""
from __future__ import annotations

from enum import Enum
from typing import Tuple

TABLE_NAME = "occupancy_forecasts"


class MarketSegment(str, Enum):
    TOTALS = "Totals"
    TRANSIENT = "Transient"
    GROUP_SOLD = "Group_Sold"
    UNSOLD_BLOCK = "Unsold_Block"
    OTHER = "Other"


class ForecastHorizon(str, Enum):
    HISTORICAL = "Historical"
    NEAR_TERM = "Near_Term"
    MEDIUM_TERM = "Medium_Term"
    LONG_TERM = "Long_Term"


MARKET_SEGMENTS: Tuple[str, ...] = tuple(s.value for s in MarketSegment)

# (segment, current occupancy col, weekly pickup col, STLY variance col)
SEGMENT_COLUMNS: Tuple[Tuple[MarketSegment, int, int, int], ...] = (
    (MarketSegment.TOTALS, 3, 4, 5),
    (MarketSegment.TRANSIENT, 6, 7, 8),
    (MarketSegment.GROUP_SOLD, 9, 10, 11),
    (MarketSegment.UNSOLD_BLOCK, 12, 13, 14),
    (MarketSegment.OTHER, 15, 16, 17),
)

FORECAST_DATE_COLUMN = 2
MIN_ROW_WIDTH = 18

# Header row: (column index, lower-case substring it must contain)
HEADER_SIGNATURE: Tuple[Tuple[int, str], ...] = (
    (3, "current"),
    (4, "pickup"),
    (5, "var"),
)

# Metadata block: label lives in column 1, value in column 2.
METADATA_LABEL_COLUMN = 1
METADATA_VALUE_COLUMN = 2

# Upper bound (inclusive) of days_out for each bucket; anything above the last
# bound is LONG_TERM. Evaluated in order.
HORIZON_BOUNDARIES: Tuple[Tuple[int, ForecastHorizon], ...] = (
    (-1, ForecastHorizon.HISTORICAL),
    (30, ForecastHorizon.NEAR_TERM),
    (90, ForecastHorizon.MEDIUM_TERM),
)

REQUIRED_FIELDS: Tuple[str, ...] = (
    "as_of_date",
    "city",
    "forecast_date",
    "market_segment",
    "current_occupancy",
)

OCCUPANCY_MIN = 0.0
OCCUPANCY_MAX = 100.0
STLY_VARIANCE_LIMIT = 100.0

# Spreadsheet serial day 25569 is 1970-01-01.
EXCEL_EPOCH_OFFSET_DAYS = 25569
SECONDS_PER_DAY = 86400
