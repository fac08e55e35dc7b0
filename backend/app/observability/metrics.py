from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

router = APIRouter()

REQUEST_COUNTER = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["path", "method", "status"],
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "Request latency",
    ["path", "method"],
)
UPLOAD_FILES = Counter(
    "forecast_upload_files_total",
    "Forecast report files handled by the upload pipeline",
    ["outcome"],
)
RECORDS_INSERTED = Counter(
    "forecast_records_inserted_total",
    "Forecast records written to occupancy_forecasts",
)


def record_file_outcome(outcome: str) -> None:
    UPLOAD_FILES.labels(outcome=outcome).inc()


@router.get("/metrics")
async def metrics_endpoint() -> PlainTextResponse:
    return PlainTextResponse(generate_latest(), media_type=CONTENT_TYPE_LATEST)
