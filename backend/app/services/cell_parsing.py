from __future__ import annotations

import math
import numbers
import re
from datetime import date, datetime, timedelta
from decimal import ROUND_FLOOR, Decimal
from typing import Any, Optional, Union

import pandas as pd
import structlog

from app.core.constants import (
    EXCEL_EPOCH_OFFSET_DAYS,
    HORIZON_BOUNDARIES,
    SECONDS_PER_DAY,
    ForecastHorizon,
)

logger = structlog.get_logger(__name__)

DateLike = Union[str, date]

_UNIX_EPOCH = datetime(1970, 1, 1)
_WEEKDAY_PREFIX = re.compile(r"^(mon|tue|wed|thu|fri|sat|sun),?\s+", re.IGNORECASE)
_MMDDYYYY = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_NON_NUMERIC = re.compile(r"[^0-9.\-]")
# Longest leading float, the way parseFloat reads "12.5.3" as 12.5
_FLOAT_PREFIX = re.compile(r"^-?(?:\d+(?:\.\d*)?|\.\d+)")


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

def _from_serial(serial: float) -> Optional[str]:
    if not math.isfinite(serial):
        return None
    seconds = (serial - EXCEL_EPOCH_OFFSET_DAYS) * SECONDS_PER_DAY
    return (_UNIX_EPOCH + timedelta(seconds=seconds)).date().isoformat()


def _from_string(raw: str) -> Optional[str]:
    cleaned = _WEEKDAY_PREFIX.sub("", raw.strip()).strip()
    if not cleaned:
        return None

    ts = pd.to_datetime(cleaned, errors="coerce")
    if not pd.isna(ts):
        return ts.date().isoformat()

    match = _MMDDYYYY.match(cleaned)
    if match:
        month, day, year = (int(part) for part in match.groups())
        return date(year, month, day).isoformat()
    return None


def parse_date(value: Any) -> Optional[str]:
    """
    Convert a raw cell into a canonical ``YYYY-MM-DD`` string.

    Accepts spreadsheet serial numbers, free-form date strings (with an optional
    leading weekday such as ``"Mon 12/09/2024"``) and native date/datetime
    objects. Returns None for anything else; never raises.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, datetime):
            if pd.isna(value):
                return None
            return value.date().isoformat()
        if isinstance(value, date):
            return value.isoformat()
        if isinstance(value, numbers.Real):
            return _from_serial(float(value))
        if isinstance(value, str):
            return _from_string(value)
    except (ValueError, TypeError, OverflowError) as exc:
        logger.debug("cell.date_unparseable", value=str(value), error=str(exc))
    return None


def to_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def days_between(start: DateLike, end: DateLike) -> int:
    """Whole calendar days from ``start`` to ``end`` (negative when end is earlier)."""
    return (to_date(end) - to_date(start)).days


# ---------------------------------------------------------------------------
# Numbers
# ---------------------------------------------------------------------------

def parse_number(value: Any) -> float:
    """
    Best-effort numeric read of a cell. Symbols such as ``$``, ``%`` and
    thousands separators are stripped; anything unreadable becomes 0.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, numbers.Real):
        num = float(value)
        return num if math.isfinite(num) else 0.0
    if isinstance(value, str):
        match = _FLOAT_PREFIX.match(_NON_NUMERIC.sub("", value))
        if not match:
            return 0.0
        num = float(match.group(0))
        return num if math.isfinite(num) else 0.0
    return 0.0


def round_hundredths(value: float) -> float:
    """Two decimals with halves rounded toward +inf (2.125 -> 2.13, -2.125 -> -2.12)."""
    scaled = Decimal(value * 100) + Decimal("0.5")
    return float(scaled.to_integral_value(rounding=ROUND_FLOOR) / 100)


# ---------------------------------------------------------------------------
# Horizon buckets
# ---------------------------------------------------------------------------

def horizon_from_days_out(days_out: int) -> ForecastHorizon:
    for upper, horizon in HORIZON_BOUNDARIES:
        if days_out <= upper:
            return horizon
    return ForecastHorizon.LONG_TERM


__all__ = [
    "parse_date",
    "parse_number",
    "round_hundredths",
    "horizon_from_days_out",
    "days_between",
    "to_date",
]
