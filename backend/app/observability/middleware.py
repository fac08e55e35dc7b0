from __future__ import annotations

import time
import uuid
from typing import Any, Dict

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.errors import PipelineError
from app.schemas.common import fail_from, meta_now
from .metrics import REQUEST_COUNTER, REQUEST_LATENCY

logger = structlog.get_logger("http")


def _route_label(request: Request) -> str:
    # Route template keeps label cardinality bounded; unmatched paths share one label
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


def _observe(request: Request, started: float, status: int) -> float:
    elapsed = time.perf_counter() - started
    path = _route_label(request)
    REQUEST_COUNTER.labels(path=path, method=request.method, status=str(status)).inc()
    REQUEST_LATENCY.labels(path=path, method=request.method).observe(elapsed)
    return round(elapsed * 1000, 2)


async def request_context_middleware(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
    request.state.request_id = request_id
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        request_id=request_id,
        method=request.method,
        path=request.url.path,
    )
    started = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        logger.exception("request.error", status_code=500, duration_ms=_observe(request, started, 500))
        raise

    logger.info(
        "request.completed",
        status_code=response.status_code,
        duration_ms=_observe(request, started, response.status_code),
    )
    response.headers["X-Request-Id"] = request_id
    return response


def register_request_middleware(app: FastAPI) -> None:
    app.middleware("http")(request_context_middleware)


def pipeline_exception_handler(request: Request, exc: PipelineError) -> JSONResponse:
    """A PipelineError that escapes a router still answers with the fail envelope."""
    logger.warning("request.pipeline_error", code=exc.code, error=exc.message)
    return fail_from(exc, meta=meta_now(request_id=getattr(request.state, "request_id", None)))


def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    logger.exception("request.unhandled_exception", exc_type=type(exc).__name__, error=str(exc))
    payload: Dict[str, Any] = {"detail": "Internal Server Error"}
    if request_id:
        payload["request_id"] = request_id
    return JSONResponse(status_code=500, content=payload)
