"""Database plumbing for the occupancy_forecasts store."""
from .base import Base
from .session import (
    ENGINE,
    SessionLocal,
    get_db,
    init_db,
)

__all__ = [
    "Base",
    "ENGINE",
    "SessionLocal",
    "get_db",
    "init_db",
]
