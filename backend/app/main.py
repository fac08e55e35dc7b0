# app/main.py
from __future__ import annotations

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware

# Import router objects explicitly to avoid module name collisions
from app.routers.health import router as health_router
from app.routers.upload import router as upload_router
from app.routers.forecasts import router as forecasts_router
from app.core.errors import PipelineError
from app.db.session import init_db
from app.observability.logging import configure_logging
from app.observability.middleware import (
    pipeline_exception_handler,
    register_request_middleware,
    unhandled_exception_handler,
)
from app.observability.metrics import router as observability_router
from app.config import get_settings

configure_logging()
logger = structlog.get_logger(__name__)

DEV_ORIGINS = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Occupancy Forecast Pipeline", version="0.3.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=DEV_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=86400
    )

    if settings.TRUSTED_HOSTS:
        app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.TRUSTED_HOSTS)

    register_request_middleware(app)
    app.add_exception_handler(PipelineError, pipeline_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # Ensure the table exists in dev/e2e so a brand-new DB doesn't 500
    @app.on_event("startup")
    def _ensure_tables() -> None:
        try:
            init_db()
        except Exception:
            logger.exception("db.create_tables_failed")

    app.include_router(health_router)
    app.include_router(upload_router)
    app.include_router(forecasts_router)
    app.include_router(observability_router)

    return app


app = create_app()
