from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Mapping, Sequence, Union

import structlog
from pydantic import BaseModel

from app.core.constants import (
    MARKET_SEGMENTS,
    OCCUPANCY_MAX,
    OCCUPANCY_MIN,
    REQUIRED_FIELDS,
    STLY_VARIANCE_LIMIT,
)
from app.core.errors import ValidationError
from app.services.cell_parsing import parse_number

logger = structlog.get_logger(__name__)

RecordLike = Union[BaseModel, Mapping[str, Any]]

DEFAULT_SAMPLE_SIZE = 50
DEFAULT_MAX_VIOLATIONS = 10
DEFAULT_WARNING_SAMPLE = 5


@dataclass
class ValidationReport:
    checked: int = 0
    violations: List[str] = field(default_factory=list)

    @property
    def passed_clean(self) -> bool:
        return not self.violations


def _as_mapping(record: RecordLike) -> Mapping[str, Any]:
    if isinstance(record, BaseModel):
        return record.model_dump()
    return record


def _label(value: Any) -> Any:
    # MarketSegment members compare by their string value
    return getattr(value, "value", value)


def _record_violations(position: int, rec: Mapping[str, Any]) -> List[str]:
    out: List[str] = []
    occupancy = parse_number(rec.get("current_occupancy"))
    if occupancy < OCCUPANCY_MIN or occupancy > OCCUPANCY_MAX:
        out.append(f"Row {position}: Occupancy out of range ({occupancy}%)")

    variance = parse_number(rec.get("stly_variance"))
    if abs(variance) > STLY_VARIANCE_LIMIT:
        out.append(f"Row {position}: STLY variance seems extreme ({variance}%)")

    segment = _label(rec.get("market_segment"))
    if segment not in MARKET_SEGMENTS:
        out.append(f"Row {position}: Unknown market segment ({segment})")
    return out


def validate_records(
    records: Sequence[RecordLike],
    *,
    sample_size: int = DEFAULT_SAMPLE_SIZE,
    max_violations: int = DEFAULT_MAX_VIOLATIONS,
    warning_sample: int = DEFAULT_WARNING_SAMPLE,
) -> ValidationReport:
    """
    Gate a transformed record list before upload.

    Hard failures: empty input, or a first record lacking a required field.
    Soft checks run over the first ``sample_size`` records; they are only
    warnings unless there are more than ``max_violations`` of them, in which
    case the whole file is rejected.
    """
    if not records:
        raise ValidationError("No data was extracted from the file")

    first = _as_mapping(records[0])
    for name in REQUIRED_FIELDS:
        if first.get(name) is None:
            raise ValidationError(f"Missing required field in transformed data: {name}")

    report = ValidationReport()
    for i, record in enumerate(records[:sample_size]):
        report.checked += 1
        report.violations.extend(_record_violations(i + 1, _as_mapping(record)))

    if report.violations:
        logger.warning(
            "validation.warnings",
            count=len(report.violations),
            sample=report.violations[:warning_sample],
        )
        if len(report.violations) > max_violations:
            raise ValidationError(
                f"Too many validation errors ({len(report.violations)}). Please check your file format.",
                violations=report.violations,
            )
    return report


__all__ = ["validate_records", "ValidationReport"]
