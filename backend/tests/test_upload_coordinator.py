from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

import pytest
from sqlalchemy import text

from app.core.errors import DuplicateReportError, UploadError
from app.services.forecast_store import BackendResult, ForecastStore
from app.services.upload import UploadCoordinator, UploadState, UploadStatus, iter_batches

from _helpers import make_records


class FakeSink:
    """In-memory stand-in for the forecast table that records every call."""

    def __init__(self, *, exists: bool = False, fail_on_batch: Optional[int] = None,
                 probe_error: Optional[str] = None, delete_error: Optional[str] = None):
        self.exists = exists
        self.fail_on_batch = fail_on_batch
        self.probe_error = probe_error
        self.delete_error = delete_error
        self.calls: List[tuple] = []
        self.batch_sizes: List[int] = []

    async def report_exists(self, report_id: str) -> BackendResult[bool]:
        self.calls.append(("exists", report_id))
        if self.probe_error:
            return BackendResult.failure(self.probe_error)
        return BackendResult.success(self.exists)

    async def delete_report(self, report_id: str) -> BackendResult[int]:
        self.calls.append(("delete", report_id))
        if self.delete_error:
            return BackendResult.failure(self.delete_error)
        return BackendResult.success(42)

    async def insert_batch(self, rows: Sequence[Dict[str, Any]]) -> BackendResult[int]:
        self.calls.append(("insert", len(rows)))
        if self.fail_on_batch == len(self.batch_sizes) + 1:
            return BackendResult.failure("connection reset")
        self.batch_sizes.append(len(rows))
        return BackendResult.success(len(rows))


def test_iter_batches_keeps_order_and_remainder():
    assert [list(b) for b in iter_batches(list(range(7)), 3)] == [[0, 1, 2], [3, 4, 5], [6]]


def test_batch_size_must_be_positive():
    with pytest.raises(ValueError):
        UploadCoordinator(FakeSink(), batch_size=0)


@pytest.mark.anyio
@pytest.mark.parametrize("anyio_backend", ["asyncio"])  # force asyncio; avoid trio run
async def test_new_report_uploads_in_three_batches(anyio_backend):
    sink = FakeSink()
    seen: List[float] = []
    coordinator = UploadCoordinator(sink, batch_size=1000)

    outcome = await coordinator.run(
        make_records(2500),
        confirm_overwrite=lambda _id: pytest.fail("no confirmation expected for a new report"),
        on_progress=seen.append,
    )

    assert outcome.status is UploadStatus.COMPLETED
    assert outcome.inserted == 2500
    assert outcome.batches == 3
    assert sink.batch_sizes == [1000, 1000, 500]
    assert seen == pytest.approx([0.4, 0.8, 1.0])
    assert outcome.progress == pytest.approx([0.4, 0.8, 1.0])
    assert sink.calls[0] == ("exists", "Edmonton_2024_12_10")
    assert coordinator.state is UploadState.DONE


@pytest.mark.anyio
@pytest.mark.parametrize("anyio_backend", ["asyncio"])
async def test_declined_overwrite_cancels_without_mutation(anyio_backend):
    sink = FakeSink(exists=True)
    asked: List[str] = []

    def decline(report_id: str) -> bool:
        asked.append(report_id)
        return False

    coordinator = UploadCoordinator(sink)
    outcome = await coordinator.run(make_records(10), confirm_overwrite=decline)

    assert outcome.status is UploadStatus.CANCELLED
    assert isinstance(outcome.cancelled_by, DuplicateReportError)
    assert outcome.error is None
    assert asked == ["Edmonton_2024_12_10"]
    assert sink.calls == [("exists", "Edmonton_2024_12_10")]
    assert coordinator.state is UploadState.CANCELLED
    assert outcome.as_dict()["cancel_reason"].startswith('A report named "Edmonton_2024_12_10"')


@pytest.mark.anyio
@pytest.mark.parametrize("anyio_backend", ["asyncio"])
async def test_confirmed_overwrite_deletes_before_inserting(anyio_backend):
    sink = FakeSink(exists=True)

    async def confirm(_report_id: str) -> bool:
        return True

    outcome = await UploadCoordinator(sink, batch_size=4).run(make_records(10), confirm_overwrite=confirm)

    assert outcome.status is UploadStatus.COMPLETED
    assert outcome.deleted == 42
    assert [c[0] for c in sink.calls] == ["exists", "delete", "insert", "insert", "insert"]


@pytest.mark.anyio
@pytest.mark.parametrize("anyio_backend", ["asyncio"])
async def test_failed_second_batch_reports_committed_count(anyio_backend):
    sink = FakeSink(fail_on_batch=2)
    coordinator = UploadCoordinator(sink, batch_size=1000)

    outcome = await coordinator.run(make_records(2500), confirm_overwrite=lambda _id: True)

    assert outcome.status is UploadStatus.FAILED
    assert isinstance(outcome.error, UploadError)
    assert outcome.error.inserted == 1000
    assert outcome.error.total == 2500
    assert "connection reset" in outcome.error.message
    assert outcome.progress == pytest.approx([0.4])
    # nothing after the failing batch
    assert sink.calls[-1] == ("insert", 1000)
    assert len([c for c in sink.calls if c[0] == "insert"]) == 2
    assert coordinator.state is UploadState.FAILED


@pytest.mark.anyio
@pytest.mark.parametrize("anyio_backend", ["asyncio"])
@pytest.mark.parametrize("kwargs,expected", [
    ({"probe_error": "timeout"}, "Failed to check for existing report"),
    ({"exists": True, "delete_error": "permission denied"}, "Failed to delete old report"),
])
async def test_probe_and_delete_errors_abort(anyio_backend, kwargs, expected):
    sink = FakeSink(**kwargs)
    outcome = await UploadCoordinator(sink).run(make_records(5), confirm_overwrite=lambda _id: True)

    assert outcome.status is UploadStatus.FAILED
    assert outcome.error.message.startswith(expected)
    assert outcome.inserted == 0
    assert not [c for c in sink.calls if c[0] == "insert"]


@pytest.mark.anyio
@pytest.mark.parametrize("anyio_backend", ["asyncio"])
async def test_empty_record_list_is_refused(anyio_backend):
    with pytest.raises(ValueError):
        await UploadCoordinator(FakeSink()).run([], confirm_overwrite=lambda _id: True)


@pytest.mark.anyio
@pytest.mark.parametrize("anyio_backend", ["asyncio"])
async def test_store_replace_round_trip(anyio_backend, db):
    store = ForecastStore(db)
    coordinator = UploadCoordinator(store, batch_size=7)

    first = await coordinator.run(make_records(20), confirm_overwrite=lambda _id: True)
    assert first.status is UploadStatus.COMPLETED
    assert first.batches == 3

    declined = await UploadCoordinator(store).run(make_records(5), confirm_overwrite=lambda _id: False)
    assert declined.status is UploadStatus.CANCELLED
    assert db.execute(text("SELECT COUNT(*) FROM occupancy_forecasts")).scalar_one() == 20

    replaced = await UploadCoordinator(store).run(make_records(5), confirm_overwrite=lambda _id: True)
    assert replaced.status is UploadStatus.COMPLETED
    assert replaced.deleted == 20
    assert db.execute(text("SELECT COUNT(*) FROM occupancy_forecasts")).scalar_one() == 5
