from __future__ import annotations

import pytest

from app.services.forecast_store import BackendResult, ForecastStore

from _helpers import data_row, report_grid, unwrap, xlsx_bytes

XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _upload(client, name, rows, as_of):
    payload = xlsx_bytes(report_grid(rows, as_of=as_of))
    r = client.post("/api/upload", files=[("files", (name, payload, XLSX))])
    assert r.status_code == 200, r.text


@pytest.fixture
def seeded(client):
    # stay dates 2024-12-20 (serial 45646) and 2024-12-21
    _upload(client, "Edmonton_2024_12_03.xlsx", [data_row(45646, occ=0.61)], "12/03/2024")
    _upload(client, "Edmonton_2024_12_10.xlsx", [data_row(45646, occ=0.685), data_row(45647)], "12/10/2024")
    _upload(client, "Calgary_2024_12_10.xlsx", [data_row(45646)], "12/10/2024")
    return client


def test_list_forecasts_with_filters(seeded):
    r = seeded.get("/api/forecasts", params={"city": "Edmonton", "as_of_date": "2024-12-10"})
    assert r.status_code == 200
    body = r.json()
    rows = unwrap(body)
    assert len(rows) == 10
    assert rows[0]["forecast_date"] == "2024-12-20"
    assert rows[0]["market_segment"] in ("Group_Sold", "Other", "Totals", "Transient", "Unsold_Block")
    assert body["meta"]["params"]["total"] == 10
    assert body["meta"]["params"]["city"] == "Edmonton"


def test_list_forecasts_segment_horizon_and_limit(seeded):
    r = seeded.get("/api/forecasts", params={"market_segment": "Totals", "limit": 2})
    body = r.json()
    assert len(unwrap(body)) == 2
    assert body["meta"]["params"]["total"] == 4

    r = seeded.get("/api/forecasts", params={"report_id": "Edmonton_2024_12_03", "forecast_horizon": "Near_Term"})
    body = r.json()
    assert body["meta"]["report_id"] == "Edmonton_2024_12_03"
    assert {row["days_out"] for row in unwrap(body)} == {17}


def test_invalid_filter_value_is_422(seeded):
    assert seeded.get("/api/forecasts", params={"market_segment": "Corporate"}).status_code == 422
    assert seeded.get("/api/forecasts", params={"start_date": "yesterday"}).status_code == 422


def test_reports_listing(seeded):
    data = unwrap(seeded.get("/api/forecasts/reports").json())
    assert data["reports"][0] == {"city": "Calgary", "as_of_date": "2024-12-10"}
    assert data["cities"] == ["Calgary", "Edmonton"]
    assert data["dates"] == ["2024-12-10", "2024-12-03"]


def test_forecast_evolution(seeded):
    r = seeded.get(
        "/api/forecasts/evolution",
        params={"city": "Edmonton", "forecast_date": "2024-12-20"},
    )
    assert r.status_code == 200
    points = unwrap(r.json())
    assert [(p["as_of_date"], p["current_occupancy"]) for p in points] == [
        ("2024-12-03", 61.0),
        ("2024-12-10", 68.5),
    ]

    r = seeded.get(
        "/api/forecasts/evolution",
        params={"city": "Edmonton", "forecast_date": "2024-12-20", "segment": "Transient"},
    )
    assert len(unwrap(r.json())) == 2


def test_stats(seeded):
    data = unwrap(seeded.get("/api/forecasts/stats").json())
    assert data == {
        "total_records": 20,
        "total_cities": 2,
        "total_reports": 3,
        "latest_update": "2024-12-10",
    }


def test_stats_on_empty_table(client):
    data = unwrap(client.get("/api/forecasts/stats").json())
    assert data["total_records"] == 0
    assert data["latest_update"] is None


def test_store_failure_is_503(client, monkeypatch):
    async def broken(self):
        return BackendResult.failure("stats failed: database is locked")

    monkeypatch.setattr(ForecastStore, "stats", broken)
    r = client.get("/api/forecasts/stats")
    assert r.status_code == 503
    body = r.json()
    assert body["ok"] is False
    assert body["error"]["code"] == "STORE_ERROR"
