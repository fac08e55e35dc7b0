"""
Pipeline exceptions for the upload/ingestion flow.

Each carries a stable ``code`` and the HTTP status the routers answer with.
"""

from __future__ import annotations

from typing import List, Optional


class PipelineError(Exception):
    """Base exception for forecast report processing failures."""

    code = "PIPELINE_ERROR"
    status_code = 400

    def __init__(self, message: str, *, code: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code


class FormatError(PipelineError):
    """Raised when a file is rejected on extension, size or readability."""

    code = "INVALID_FILE_FORMAT"
    status_code = 415


class LayoutError(PipelineError):
    """Raised when the forecast header row cannot be located."""

    code = "UNRECOGNIZED_LAYOUT"
    status_code = 422


class MetadataError(PipelineError):
    """Raised when city or as-of date cannot be determined."""

    code = "MISSING_METADATA"
    status_code = 422


class ValidationError(PipelineError):
    """Raised when transformed records are empty, incomplete or too messy."""

    code = "VALIDATION_FAILED"
    status_code = 422

    def __init__(self, message: str, *, violations: Optional[List[str]] = None):
        super().__init__(message)
        self.violations = list(violations or [])


class DuplicateReportError(PipelineError):
    """An existing report was found and the overwrite was declined."""

    code = "DUPLICATE_REPORT"
    status_code = 409

    def __init__(self, report_id: str):
        super().__init__(f'A report named "{report_id}" already exists.')
        self.report_id = report_id


class UploadError(PipelineError):
    """Raised when a store delete or batch insert fails."""

    code = "UPLOAD_FAILED"
    status_code = 502

    def __init__(self, message: str, *, inserted: int = 0, total: int = 0):
        super().__init__(message)
        self.inserted = inserted
        self.total = total
