from __future__ import annotations

import os
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Tuple

import structlog

from app.core.constants import METADATA_LABEL_COLUMN, METADATA_VALUE_COLUMN
from app.core.errors import MetadataError
from app.schemas.forecast import ReportMetadata
from app.services.cell_parsing import parse_date, parse_number

logger = structlog.get_logger(__name__)

RawGrid = Sequence[Sequence[Any]]

DEFAULT_SCAN_ROWS = 20


def report_id_for(file_name: str) -> str:
    """The dedup key for a whole upload: the base file name without extension."""
    base = os.path.basename(file_name)
    stem, _ext = os.path.splitext(base)
    return stem


def _from_file_name(file_name: str) -> Tuple[Optional[str], Optional[str]]:
    """Split ``Edmonton_2024_12_10`` into (city, as_of_date)."""
    parts = report_id_for(file_name).split("_")
    if len(parts) < 4:
        return None, None

    city = parts[0].strip() or None
    year, month, day = parts[1].strip(), parts[2].strip().zfill(2), parts[3].strip().zfill(2)
    candidate = f"{year}-{month}-{day}"
    try:
        date.fromisoformat(candidate)
    except ValueError:
        logger.warning("metadata.filename_date_invalid", file_name=file_name, candidate=candidate)
        candidate = None
    return city, candidate


def _scan_content(grid: RawGrid, scan_rows: int) -> Dict[str, Any]:
    found: Dict[str, Any] = {}
    for row in list(grid)[:scan_rows]:
        if not row or len(row) <= METADATA_VALUE_COLUMN:
            continue
        label = str(row[METADATA_LABEL_COLUMN] or "").strip().lower()
        value = row[METADATA_VALUE_COLUMN]
        if value is None or value == "":
            continue

        if "as of date" in label:
            found["as_of_date_from_file"] = parse_date(value)
        elif "comp set" in label:
            found["city_from_file"] = str(value).strip() or None
        elif "total capacity" in label:
            found["total_capacity"] = parse_number(value)
    return found


def extract_metadata(
    grid: RawGrid,
    file_name: str,
    *,
    scan_rows: int = DEFAULT_SCAN_ROWS,
) -> ReportMetadata:
    """
    Work out city, as-of date and report id for an uploaded report.

    The file name (``<City>_<YYYY>_<MM>_<DD>.<ext>``) is authoritative. The
    leading ``scan_rows`` rows are always scanned for "As of Date" and
    "Comp Set" labels, which fill whatever the file name could not provide.
    """
    city, as_of_date = _from_file_name(file_name)
    content = _scan_content(grid, scan_rows)

    if not as_of_date and content.get("as_of_date_from_file"):
        as_of_date = content["as_of_date_from_file"]
    if not city and content.get("city_from_file"):
        city = content["city_from_file"]

    missing: List[str] = []
    if not as_of_date:
        missing.append("as of date")
    if not city:
        missing.append("city")
    if missing:
        raise MetadataError(
            f"Could not determine {' and '.join(missing)} from file name or file content: {file_name}"
        )

    meta = ReportMetadata(
        file_name=file_name,
        report_id=report_id_for(file_name),
        as_of_date=as_of_date,
        city=city,
        **content,
    )
    if meta.as_of_date_from_file and meta.as_of_date_from_file != meta.as_of_date:
        logger.warning(
            "metadata.as_of_date_mismatch",
            file_name=file_name,
            from_name=meta.as_of_date,
            from_content=meta.as_of_date_from_file,
        )
    logger.info("metadata.extracted", report_id=meta.report_id, city=meta.city, as_of_date=meta.as_of_date)
    return meta


__all__ = ["extract_metadata", "report_id_for", "RawGrid"]
