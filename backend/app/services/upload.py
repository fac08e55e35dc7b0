from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Sequence, Union

import structlog

from app.core.errors import DuplicateReportError, UploadError
from app.observability.instrument import log_stage
from app.observability.metrics import RECORDS_INSERTED
from app.schemas.forecast import ForecastRecord
from app.services.forecast_store import BackendResult

logger = structlog.get_logger(__name__)

ConfirmOverwrite = Callable[[str], Union[bool, Awaitable[bool]]]
ProgressCallback = Callable[[float], Any]

DEFAULT_BATCH_SIZE = 1000


class UploadState(str, Enum):
    IDLE = "idle"
    CHECKING_DUPLICATE = "checking_duplicate"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    DELETING = "deleting"
    UPLOADING = "uploading"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


class UploadStatus(str, Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class ForecastSink(Protocol):
    """Backend operations the coordinator needs; ForecastStore implements them."""

    async def report_exists(self, report_id: str) -> BackendResult[bool]: ...

    async def delete_report(self, report_id: str) -> BackendResult[int]: ...

    async def insert_batch(self, rows: Sequence[Dict[str, Any]]) -> BackendResult[int]: ...


@dataclass
class UploadOutcome:
    status: UploadStatus
    report_id: str
    total: int
    inserted: int = 0
    deleted: int = 0
    batches: int = 0
    progress: List[float] = field(default_factory=list)
    error: Optional[UploadError] = None
    cancelled_by: Optional[DuplicateReportError] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "report_id": self.report_id,
            "total": self.total,
            "inserted": self.inserted,
            "deleted": self.deleted,
            "batches": self.batches,
            "progress": self.progress,
            "error": self.error.message if self.error else None,
            "cancel_reason": self.cancelled_by.message if self.cancelled_by else None,
        }


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def iter_batches(records: Sequence[Any], size: int):
    for start in range(0, len(records), size):
        yield records[start:start + size]


class UploadCoordinator:
    """
    Push one report's records into the store.

    The existence probe always completes before any delete or insert. An
    existing report is only replaced when ``confirm_overwrite`` agrees; batches
    then go in one at a time and the first failure stops the run, leaving
    earlier batches committed.
    """

    def __init__(self, store: ForecastSink, *, batch_size: int = DEFAULT_BATCH_SIZE):
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.store = store
        self.batch_size = batch_size
        self.state = UploadState.IDLE

    def _move(self, state: UploadState, report_id: str) -> None:
        logger.info("upload.state", report_id=report_id, state=state.value, previous=self.state.value)
        self.state = state

    def _failed(self, outcome: UploadOutcome, message: str) -> UploadOutcome:
        self._move(UploadState.FAILED, outcome.report_id)
        outcome.status = UploadStatus.FAILED
        outcome.error = UploadError(message, inserted=outcome.inserted, total=outcome.total)
        logger.error(
            "upload.failed",
            report_id=outcome.report_id,
            inserted=outcome.inserted,
            total=outcome.total,
            error=message,
        )
        return outcome

    @log_stage("upload")
    async def run(
        self,
        records: Sequence[ForecastRecord],
        *,
        confirm_overwrite: ConfirmOverwrite,
        on_progress: Optional[ProgressCallback] = None,
    ) -> UploadOutcome:
        if not records:
            raise ValueError("No data to upload")

        report_id = records[0].report_id
        total = len(records)
        outcome = UploadOutcome(status=UploadStatus.FAILED, report_id=report_id, total=total)

        self._move(UploadState.CHECKING_DUPLICATE, report_id)
        probe = await self.store.report_exists(report_id)
        if not probe.ok:
            return self._failed(outcome, f"Failed to check for existing report: {probe.error}")

        if probe.value:
            self._move(UploadState.AWAITING_CONFIRMATION, report_id)
            confirmed = bool(await _maybe_await(confirm_overwrite(report_id)))
            if not confirmed:
                self._move(UploadState.CANCELLED, report_id)
                outcome.status = UploadStatus.CANCELLED
                outcome.cancelled_by = DuplicateReportError(report_id)
                logger.info("upload.cancelled", report_id=report_id, reason="overwrite declined")
                return outcome

            self._move(UploadState.DELETING, report_id)
            removed = await self.store.delete_report(report_id)
            if not removed.ok:
                return self._failed(outcome, f"Failed to delete old report: {removed.error}")
            outcome.deleted = removed.value or 0
            logger.info("upload.old_report_deleted", report_id=report_id, deleted=outcome.deleted)

        self._move(UploadState.UPLOADING, report_id)
        for batch in iter_batches(records, self.batch_size):
            result = await self.store.insert_batch([r.to_row() for r in batch])
            if not result.ok:
                return self._failed(outcome, f"Batch {outcome.batches + 1} insert failed: {result.error}")

            outcome.batches += 1
            outcome.inserted += len(batch)
            RECORDS_INSERTED.inc(len(batch))
            fraction = outcome.inserted / total
            outcome.progress.append(fraction)
            logger.info(
                "upload.batch_inserted",
                report_id=report_id,
                batch=outcome.batches,
                inserted=outcome.inserted,
                total=total,
            )
            if on_progress is not None:
                on_progress(fraction)

        self._move(UploadState.DONE, report_id)
        outcome.status = UploadStatus.COMPLETED
        return outcome


__all__ = [
    "UploadCoordinator",
    "UploadOutcome",
    "UploadState",
    "UploadStatus",
    "ForecastSink",
    "iter_batches",
]
