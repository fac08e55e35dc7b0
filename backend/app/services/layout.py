from __future__ import annotations

from typing import Any, Sequence

import structlog

from app.core.constants import HEADER_SIGNATURE
from app.core.errors import LayoutError

logger = structlog.get_logger(__name__)


def _cell_text(row: Sequence[Any], idx: int) -> str:
    if idx >= len(row) or row[idx] is None:
        return ""
    return str(row[idx]).lower()


def is_header_row(row: Sequence[Any] | None) -> bool:
    if not row:
        return False
    return all(needle in _cell_text(row, idx) for idx, needle in HEADER_SIGNATURE)


def find_data_start_row(grid: Sequence[Sequence[Any]]) -> int:
    """
    Return the index of the first data row: the row right after the
    "Current / Wkly Pickup / STLY Var" header.
    """
    for idx, row in enumerate(grid):
        if is_header_row(row):
            logger.info("layout.header_found", header_row=idx, data_start_row=idx + 1)
            return idx + 1
    raise LayoutError(
        "Could not find the data header row (Current / Pickup / Var) in the file. "
        "Please check the file format."
    )


__all__ = ["find_data_start_row", "is_header_row"]
