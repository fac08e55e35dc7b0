from datetime import date

import pytest
from sqlalchemy.exc import OperationalError

from app.core.constants import ForecastHorizon, MarketSegment
from app.schemas.forecast import ForecastFilters, ForecastRecord
from app.services.forecast_store import BackendResult, ForecastStore


def _record(report_id, city, as_of, forecast, segment=MarketSegment.TOTALS, occ=70.0):
    days_out = (forecast - as_of).days
    return ForecastRecord(
        as_of_date=as_of,
        report_id=report_id,
        city=city,
        forecast_date=forecast,
        market_segment=segment,
        current_occupancy=occ,
        weekly_pickup=1.0,
        stly_variance=0.5,
        days_out=days_out,
        forecast_horizon=ForecastHorizon.NEAR_TERM,
    ).to_row()


async def _seed(store):
    rows = [
        _record("Edmonton_2024_12_03", "Edmonton", date(2024, 12, 3), date(2024, 12, 20), occ=61.0),
        _record("Edmonton_2024_12_10", "Edmonton", date(2024, 12, 10), date(2024, 12, 20), occ=68.5),
        _record("Edmonton_2024_12_10", "Edmonton", date(2024, 12, 10), date(2024, 12, 20),
                segment=MarketSegment.TRANSIENT, occ=40.0),
        _record("Edmonton_2024_12_10", "Edmonton", date(2024, 12, 10), date(2024, 12, 21)),
        _record("Calgary_2024_12_10", "Calgary", date(2024, 12, 10), date(2024, 12, 20)),
    ]
    res = await store.insert_batch(rows)
    assert res.ok and res.value == 5


def test_backend_result_helpers():
    assert BackendResult.success(3).ok
    failed = BackendResult.failure("nope")
    assert not failed.ok and failed.value is None and failed.error == "nope"


@pytest.mark.anyio
@pytest.mark.parametrize("anyio_backend", ["asyncio"])
async def test_exists_and_delete(anyio_backend, db):
    store = ForecastStore(db)
    await _seed(store)

    assert (await store.report_exists("Edmonton_2024_12_10")).value is True
    assert (await store.report_exists("Banff_2024_12_10")).value is False

    deleted = await store.delete_report("Edmonton_2024_12_10")
    assert deleted.value == 3
    assert (await store.count_rows()).value == 2


@pytest.mark.anyio
@pytest.mark.parametrize("anyio_backend", ["asyncio"])
async def test_filters_and_ordering(anyio_backend, db):
    store = ForecastStore(db)
    await _seed(store)

    res = await store.select_forecasts(ForecastFilters(city="Edmonton", as_of_date=date(2024, 12, 10)))
    assert res.ok
    assert [(r["forecast_date"], r["market_segment"]) for r in res.value] == [
        ("2024-12-20", "Totals"),
        ("2024-12-20", "Transient"),
        ("2024-12-21", "Totals"),
    ]
    assert all("id" in r for r in res.value)

    ranged = await store.select_forecasts(ForecastFilters(start_date=date(2024, 12, 21)))
    assert len(ranged.value) == 1

    limited = await store.select_forecasts(None, limit=2)
    assert len(limited.value) == 2

    counted = await store.count_rows(ForecastFilters(market_segment=MarketSegment.TOTALS))
    assert counted.value == 4


@pytest.mark.anyio
@pytest.mark.parametrize("anyio_backend", ["asyncio"])
async def test_reports_evolution_and_stats(anyio_backend, db):
    store = ForecastStore(db)
    await _seed(store)

    reports = (await store.distinct_reports()).value
    assert reports == [
        {"city": "Calgary", "as_of_date": "2024-12-10"},
        {"city": "Edmonton", "as_of_date": "2024-12-10"},
        {"city": "Edmonton", "as_of_date": "2024-12-03"},
    ]

    evolution = (await store.forecast_evolution("Edmonton", date(2024, 12, 20))).value
    assert [(e["as_of_date"], e["current_occupancy"], e["days_out"]) for e in evolution] == [
        ("2024-12-03", 61.0, 17),
        ("2024-12-10", 68.5, 10),
    ]

    stats = (await store.stats()).value
    assert stats == {
        "total_records": 5,
        "total_cities": 2,
        "total_reports": 3,
        "latest_update": "2024-12-10",
    }


@pytest.mark.anyio
@pytest.mark.parametrize("anyio_backend", ["asyncio"])
async def test_database_errors_become_failures(anyio_backend, db, monkeypatch):
    store = ForecastStore(db)

    def boom(*args, **kwargs):
        raise OperationalError("INSERT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db, "execute", boom)
    res = await store.insert_batch([_record("X_2024_12_10", "X", date(2024, 12, 10), date(2024, 12, 11))])
    assert not res.ok
    assert res.error.startswith("insert_batch failed")

    probe = await store.report_exists("X_2024_12_10")
    assert not probe.ok


@pytest.mark.anyio
@pytest.mark.parametrize("anyio_backend", ["asyncio"])
async def test_empty_batch_is_a_no_op(anyio_backend, db):
    res = await ForecastStore(db).insert_batch([])
    assert res.ok and res.value == 0
