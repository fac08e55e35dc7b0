from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
import io, csv, math, os, re

import numpy as np
import pandas as pd
import structlog

from app.config import Settings, get_settings
from app.core.errors import FormatError, PipelineError
from app.observability.instrument import log_stage
from app.observability.metrics import record_file_outcome
from app.schemas.forecast import ForecastRecord, ReportMetadata
from app.services.layout import find_data_start_row
from app.services.report_metadata import RawGrid, extract_metadata
from app.services.transform import transform_rows
from app.services.upload import ConfirmOverwrite, ForecastSink, ProgressCallback, UploadCoordinator, UploadOutcome
from app.services.validation import ValidationReport, validate_records

logger = structlog.get_logger(__name__)

_EXPECTED_NAME = re.compile(r"^[A-Za-z]+_\d{4}_\d{2}_\d{2}\.[A-Za-z]+$")
# Plain decimal text in a CSV cell; spreadsheets store these as numbers (date serials included)
_CSV_NUMBER = re.compile(r"^-?(?:\d+(?:\.\d*)?|\.\d+)$")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _native(v: Any):
    """Convert pandas/numpy cell values into plain Python cells (None for blanks)."""
    if v is None or v is pd.NaT:
        return None
    if isinstance(v, pd.Timestamp):
        return v.to_pydatetime()
    if isinstance(v, (datetime, date)):
        return v
    if isinstance(v, np.integer):
        return int(v)
    if isinstance(v, (float, np.floating)):
        return None if math.isnan(v) else float(v)
    if isinstance(v, str) and not v.strip():
        return None
    return v


def _extension(file_name: str) -> str:
    return os.path.splitext(file_name or "")[1].lower()


# ---------------------------------------------------------------------------
# Acceptance checks (before any parsing)
# ---------------------------------------------------------------------------

def check_upload(file_name: str, size: int, *, settings: Optional[Settings] = None) -> None:
    """Reject a file on extension, emptiness or size. Odd file names only warn."""
    settings = settings or get_settings()
    ext = _extension(file_name)
    if ext not in settings.ALLOWED_EXTENSIONS:
        raise FormatError(
            f"Invalid file format '{ext or 'none'}'. Supported formats: {', '.join(settings.ALLOWED_EXTENSIONS)}",
            code="INVALID_FILE_FORMAT",
            status_code=415,
        )
    if size <= 0:
        raise FormatError("Uploaded file is empty.", code="EMPTY_FILE", status_code=400)
    if size > settings.MAX_UPLOAD_BYTES:
        raise FormatError(
            f"File is too large ({size} bytes). Maximum size is {settings.MAX_UPLOAD_BYTES} bytes.",
            code="FILE_TOO_LARGE",
            status_code=413,
        )
    if not _EXPECTED_NAME.match(os.path.basename(file_name)):
        logger.warning("ingest.unexpected_file_name", file_name=file_name, expected="City_YYYY_MM_DD.ext")


# ---------------------------------------------------------------------------
# Bytes -> RawGrid
# ---------------------------------------------------------------------------

def _csv_cell(cell: str):
    """CSV text typed the way a spreadsheet reader would hand it over."""
    stripped = cell.strip()
    if not stripped:
        return None
    if _CSV_NUMBER.match(stripped):
        return float(stripped) if "." in stripped else int(stripped)
    return cell


def iter_csv_grid(file_bytes: bytes) -> Iterable[List[Any]]:
    """Yield CSV rows as cell lists (UTF-8/BOM tolerant, ragged rows allowed)."""
    text = file_bytes.decode("utf-8-sig", errors="replace")
    for row in csv.reader(io.StringIO(text)):
        yield [_csv_cell(cell) for cell in row]


def read_excel_grid(file_bytes: bytes) -> RawGrid:
    """First worksheet as a grid; pandas picks openpyxl (xlsx) or xlrd (xls)."""
    frame = pd.read_excel(io.BytesIO(file_bytes), sheet_name=0, header=None, dtype=object)
    return [[_native(v) for v in row] for row in frame.itertuples(index=False, name=None)]


def read_grid(file_bytes: bytes, file_name: str) -> RawGrid:
    try:
        if _extension(file_name) == ".csv":
            grid = list(iter_csv_grid(file_bytes))
        else:
            grid = read_excel_grid(file_bytes)
    except Exception as exc:
        raise FormatError(f"Failed to read {file_name}: {exc}") from exc
    logger.info("ingest.grid_loaded", file_name=file_name, rows=len(grid))
    return grid


# ---------------------------------------------------------------------------
# RawGrid -> validated records
# ---------------------------------------------------------------------------

@dataclass
class ProcessedReport:
    metadata: ReportMetadata
    records: List[ForecastRecord]
    skipped_rows: List[int] = field(default_factory=list)
    validation: ValidationReport = field(default_factory=ValidationReport)
    warnings: List[str] = field(default_factory=list)

    @property
    def record_count(self) -> int:
        return len(self.records)

    def date_range(self) -> Tuple[Optional[str], Optional[str]]:
        if not self.records:
            return None, None
        dates = [r.forecast_date for r in self.records]
        return min(dates).isoformat(), max(dates).isoformat()

    def summary(self, preview_rows: int = 0) -> Dict[str, Any]:
        first, last = self.date_range()
        out: Dict[str, Any] = {
            "report_id": self.metadata.report_id,
            "city": self.metadata.city,
            "as_of_date": self.metadata.as_of_date,
            "record_count": self.record_count,
            "skipped_rows": self.skipped_rows,
            "warnings": self.warnings,
            "forecast_date_min": first,
            "forecast_date_max": last,
        }
        if preview_rows:
            out["preview"] = [r.to_row() for r in self.records[:preview_rows]]
        return out


@log_stage("process_report")
def process_report(grid: RawGrid, file_name: str, *, settings: Optional[Settings] = None) -> ProcessedReport:
    """Metadata, header, transform, validate. Raises a PipelineError on fatal problems."""
    settings = settings or get_settings()

    metadata = extract_metadata(grid, file_name, scan_rows=settings.METADATA_SCAN_ROWS)
    start_row = find_data_start_row(grid)
    transformed = transform_rows(grid, metadata, start_row)
    validation = validate_records(
        transformed.records,
        sample_size=settings.VALIDATION_SAMPLE_SIZE,
        max_violations=settings.VALIDATION_MAX_VIOLATIONS,
        warning_sample=settings.WARNING_SAMPLE_SIZE,
    )

    warnings = list(validation.violations[: settings.WARNING_SAMPLE_SIZE])
    if transformed.skipped_rows:
        sample = ", ".join(str(n) for n in transformed.skipped_rows[: settings.WARNING_SAMPLE_SIZE])
        warnings.append(
            f"{len(transformed.skipped_rows)} row(s) skipped for an invalid forecast date (rows {sample})"
        )

    return ProcessedReport(
        metadata=metadata,
        records=transformed.records,
        skipped_rows=transformed.skipped_rows,
        validation=validation,
        warnings=warnings,
    )


def process_file(file_bytes: bytes, file_name: str, *, settings: Optional[Settings] = None) -> ProcessedReport:
    settings = settings or get_settings()
    check_upload(file_name, len(file_bytes or b""), settings=settings)
    grid = read_grid(file_bytes, file_name)
    return process_report(grid, file_name, settings=settings)


# ---------------------------------------------------------------------------
# Multi-file processing
# ---------------------------------------------------------------------------

@dataclass
class FileOutcome:
    file_name: str
    success: bool
    report: Optional[ProcessedReport] = None
    error: Optional[PipelineError] = None

    @property
    def record_count(self) -> int:
        return self.report.record_count if self.report else 0

    def as_dict(self, preview_rows: int = 0) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "file_name": self.file_name,
            "success": self.success,
            "record_count": self.record_count,
        }
        if self.report is not None:
            out.update(self.report.summary(preview_rows))
        if self.error is not None:
            out["error"] = {"code": self.error.code, "message": self.error.message}
        return out


FileEvent = Callable[[Dict[str, Any]], Any]


def process_files(
    files: Iterable[Tuple[str, bytes]],
    *,
    settings: Optional[Settings] = None,
    on_event: Optional[FileEvent] = None,
) -> List[FileOutcome]:
    """Process each (file_name, bytes) independently; one bad file never stops the rest."""
    settings = settings or get_settings()
    items = list(files)
    outcomes: List[FileOutcome] = []

    for name, payload in items:
        if on_event:
            on_event({"type": "file_start", "file_name": name, "current": len(outcomes), "total": len(items)})
        try:
            report = process_file(payload, name, settings=settings)
        except PipelineError as exc:
            logger.warning("ingest.file_rejected", file_name=name, code=exc.code, error=exc.message)
            record_file_outcome("rejected")
            outcomes.append(FileOutcome(file_name=name, success=False, error=exc))
            if on_event:
                on_event({"type": "file_error", "file_name": name, "error": exc.message,
                          "current": len(outcomes), "total": len(items)})
            continue

        record_file_outcome("processed")
        outcomes.append(FileOutcome(file_name=name, success=True, report=report))
        if on_event:
            on_event({"type": "file_complete", "file_name": name, "record_count": report.record_count,
                      "current": len(outcomes), "total": len(items)})
    return outcomes


def summarize(outcomes: List[FileOutcome]) -> Dict[str, Any]:
    successful = [o for o in outcomes if o.success]
    failed = [o for o in outcomes if not o.success]
    return {
        "total_files": len(outcomes),
        "successful_files": len(successful),
        "failed_files": len(failed),
        "total_records": sum(o.record_count for o in successful),
        "errors": [{"file_name": o.file_name, "error": o.error.message} for o in failed if o.error],
    }


# ---------------------------------------------------------------------------
# Process + upload, one session per file
# ---------------------------------------------------------------------------

@dataclass
class UploadSession:
    """Everything one upload attempt produced, handed back to the caller."""

    file_name: str
    report: Optional[ProcessedReport] = None
    outcome: Optional[UploadOutcome] = None
    error: Optional[PipelineError] = None

    @property
    def status(self) -> str:
        if self.outcome is not None:
            return self.outcome.status.value
        return "rejected" if self.error else "pending"

    def as_dict(self, preview_rows: int = 0) -> Dict[str, Any]:
        out: Dict[str, Any] = {"file_name": self.file_name, "status": self.status}
        if self.report is not None:
            out.update(self.report.summary(preview_rows))
        if self.outcome is not None:
            out["upload"] = self.outcome.as_dict()
        error = self.error or (self.outcome.error if self.outcome else None)
        if error is not None:
            out["error"] = {"code": error.code, "message": error.message}
            if getattr(error, "inserted", None) is not None:
                out["error"]["inserted"] = error.inserted
        return out


async def upload_file(
    file_bytes: bytes,
    file_name: str,
    store: ForecastSink,
    *,
    confirm_overwrite: ConfirmOverwrite,
    on_progress: Optional[ProgressCallback] = None,
    settings: Optional[Settings] = None,
) -> UploadSession:
    settings = settings or get_settings()
    session = UploadSession(file_name=file_name)
    try:
        session.report = process_file(file_bytes, file_name, settings=settings)
    except PipelineError as exc:
        logger.warning("ingest.file_rejected", file_name=file_name, code=exc.code, error=exc.message)
        record_file_outcome("rejected")
        session.error = exc
        return session

    coordinator = UploadCoordinator(store, batch_size=settings.INSERT_BATCH_SIZE)
    session.outcome = await coordinator.run(
        session.report.records,
        confirm_overwrite=confirm_overwrite,
        on_progress=on_progress,
    )
    record_file_outcome(session.outcome.status.value)
    return session


__all__ = [
    "check_upload",
    "read_grid",
    "iter_csv_grid",
    "read_excel_grid",
    "process_report",
    "process_file",
    "process_files",
    "summarize",
    "upload_file",
    "ProcessedReport",
    "FileOutcome",
    "UploadSession",
]
