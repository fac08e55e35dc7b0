# backend/app/routers/upload.py
from __future__ import annotations

from typing import List, Tuple

from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy.orm import Session
import structlog

from app.config import Settings, get_settings
from app.db.session import get_db
from app.schemas.common import ok, fail_from, meta_now
from app.services.forecast_store import ForecastStore
from app.services.ingestion import process_files, summarize, upload_file

router = APIRouter(prefix="/api/upload", tags=["upload"])
logger = structlog.get_logger(__name__)


async def _read_all(files: List[UploadFile], settings: Settings) -> List[Tuple[str, bytes]]:
    items: List[Tuple[str, bytes]] = []
    for f in files:
        # one byte past the limit is enough for check_upload to flag the size
        data = await f.read(settings.MAX_UPLOAD_BYTES + 1)
        items.append((f.filename or "upload", data))
    return items


@router.post("/preview")
async def preview_reports(
    files: List[UploadFile] = File(..., description="Amadeus forecast exports (.xlsx, .xls, .csv)"),
    settings: Settings = Depends(get_settings),
):
    """
    Parse and validate files without writing anything.

    Each file is reported on its own (success, record count, warnings and the
    first PREVIEW_ROWS records); one bad file does not hide the others.
    """
    items = await _read_all(files, settings)
    outcomes = process_files(items, settings=settings)
    return ok(
        data={
            "files": [o.as_dict(preview_rows=settings.PREVIEW_ROWS) for o in outcomes],
            "summary": summarize(outcomes),
        },
        meta=meta_now(files=len(items)),
    )


@router.post("")
async def upload_reports(
    files: List[UploadFile] = File(..., description="Amadeus forecast exports (.xlsx, .xls, .csv)"),
    overwrite: bool = Query(False, description="Replace an existing report with the same report id"),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Process and store forecast reports.

    Behavior:
    - A report whose id already exists is only replaced when `overwrite=true`;
      otherwise that file ends with status "cancelled" and nothing is written.
    - Batches are inserted in order; a failing batch stops that file and the
      response says how many records were stored before it.
    - With a single file, a failure is returned as an error envelope carrying
      the pipeline error code. With several files, each gets its own result.
    """
    items = await _read_all(files, settings)
    store = ForecastStore(db)

    def _decide(report_id: str) -> bool:
        logger.info("upload.overwrite_decision", report_id=report_id, overwrite=overwrite)
        return overwrite

    sessions = []
    for name, data in items:
        session = await upload_file(data, name, store, confirm_overwrite=_decide, settings=settings)
        sessions.append(session)

    if len(sessions) == 1:
        only = sessions[0]
        error = only.error or (only.outcome.error if only.outcome else None)
        if error is not None:
            details = only.as_dict()
            details.pop("error", None)
            return fail_from(
                error,
                details=details,
                meta=meta_now(report_id=only.report.metadata.report_id if only.report else None),
            )

    results = [s.as_dict() for s in sessions]
    return ok(
        data={
            "files": results,
            "summary": {
                "total_files": len(sessions),
                "completed": sum(1 for s in sessions if s.status == "completed"),
                "cancelled": sum(1 for s in sessions if s.status == "cancelled"),
                "failed": sum(1 for s in sessions if s.status in ("failed", "rejected")),
                "records_inserted": sum(s.outcome.inserted for s in sessions if s.outcome),
            },
        },
        meta=meta_now(files=len(sessions), overwrite=overwrite),
    )
