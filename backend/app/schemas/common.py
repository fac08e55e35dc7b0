from __future__ import annotations
from typing import TYPE_CHECKING, Any, Dict, Optional
from fastapi import status as http
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from datetime import datetime, timezone
from fastapi.encoders import jsonable_encoder

if TYPE_CHECKING:
    from app.core.errors import PipelineError

API_VERSION = "0.3.0"

class ApiError(BaseModel):
    code: str
    message: str
    details: Optional[Dict[str, Any]] = None

class ResponseMeta(BaseModel):
    report_id: Optional[str] = None
    params: Optional[Dict[str, Any]] = None
    generated_at: str
    version: str = API_VERSION

class Envelope(BaseModel):
    ok: bool
    data: Any | None = None
    error: ApiError | None = None
    meta: ResponseMeta


def meta_now(*, report_id: Optional[str] = None, **params) -> ResponseMeta:
    """Response meta stamped now; None-valued params are dropped."""
    clean = {k: v for k, v in params.items() if v is not None}
    return ResponseMeta(
        report_id=report_id,
        params=clean or None,
        generated_at=datetime.now(timezone.utc).isoformat(),
    )


def _respond(envelope: Envelope, status_code: int) -> JSONResponse:
    return JSONResponse(content=jsonable_encoder(envelope.model_dump()), status_code=status_code)


def ok(data: Any = None, meta: Optional[ResponseMeta] = None, status_code: int = http.HTTP_200_OK) -> JSONResponse:
    return _respond(Envelope(ok=True, data=data, meta=meta or meta_now()), status_code)


def fail(
    code: str,
    message: str,
    status_code: int = http.HTTP_400_BAD_REQUEST,
    details: Optional[Dict[str, Any]] = None,
    meta: Optional[ResponseMeta] = None,
) -> JSONResponse:
    error = ApiError(code=code, message=message, details=details)
    return _respond(Envelope(ok=False, error=error, meta=meta or meta_now()), status_code)


def fail_from(
    exc: "PipelineError",
    *,
    details: Optional[Dict[str, Any]] = None,
    meta: Optional[ResponseMeta] = None,
) -> JSONResponse:
    """Error envelope for a pipeline error, using its own code and HTTP status."""
    extra = dict(details or {})
    violations = getattr(exc, "violations", None)
    if violations:
        extra.setdefault("violations", violations)
    inserted = getattr(exc, "inserted", None)
    if inserted is not None:
        extra.setdefault("inserted", inserted)
    return fail(
        code=exc.code,
        message=exc.message,
        status_code=exc.status_code,
        details=extra or None,
        meta=meta,
    )
