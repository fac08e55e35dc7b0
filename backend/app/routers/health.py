from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import structlog

from app.db.session import get_db
from app.schemas.common import ok, fail, meta_now

router = APIRouter(prefix="/api/health", tags=["health"])
logger = structlog.get_logger(__name__)


@router.get("")
def healthcheck(db: Session = Depends(get_db)):
    """Liveness plus a SELECT 1 against the forecast database."""
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.error("health.database_unreachable", error=str(exc))
        return fail(code="DB_UNAVAILABLE", message="Database is unreachable", status_code=503)
    return ok(data={"status": "ok", "database": "ok"}, meta=meta_now())
