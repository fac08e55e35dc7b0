import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Ensure backend/ is importable as the top-level "app" package even when pytest runs from repo root
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

# Ensure the application runs in test/sqlite mode *before* importing any app modules
os.environ.setdefault("TESTING", "1")
os.environ.setdefault("DATABASE_URL", "sqlite://")

# Import the DB session module first so we can patch it before the app is imported
import app.db.session as app_db_session  # type: ignore

# --- Use a single in-memory SQLite DB for the whole test session ---
ENGINE = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
    future=True,
)
SessionTesting = sessionmaker(bind=ENGINE, autocommit=False, autoflush=False, future=True)

# --- Ensure tests and app code share the SAME in-memory engine/sessionmaker ---
setattr(app_db_session, "ENGINE", ENGINE)
app_db_session.SessionLocal = SessionTesting

# Also patch the package-level app.db for modules that import there
import app.db as app_db_pkg  # type: ignore

setattr(app_db_pkg, "ENGINE", ENGINE)
app_db_pkg.SessionLocal = SessionTesting

from app.db.base import Base
from app.db.session import get_db
from app.main import app


# Ensure schema exists even for modules that instantiate TestClient at import time
Base.metadata.create_all(bind=ENGINE)


@pytest.fixture(scope="session")
def _db_engine():
    Base.metadata.create_all(bind=ENGINE)
    yield ENGINE


@pytest.fixture(scope="session")
def _session_factory(_db_engine):
    yield SessionTesting


@pytest.fixture(scope="function")
def reset_db(_db_engine):
    Base.metadata.drop_all(bind=_db_engine)
    Base.metadata.create_all(bind=_db_engine)
    yield
    with _db_engine.begin() as conn:
        conn.execute(text("DELETE FROM occupancy_forecasts"))


@pytest.fixture(scope="function")
def db(_session_factory, reset_db):
    session = _session_factory()

    def _override_get_db():
        try:
            yield session
        finally:
            pass

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        app.dependency_overrides.pop(get_db, None)


@pytest.fixture(scope="function")
def client(db):
    with TestClient(app) as c:
        yield c
