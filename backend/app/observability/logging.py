from __future__ import annotations

import logging
import sys
from typing import Any, Dict, List

import structlog

from app.config import get_settings

# Chatty third-party loggers that drown out pipeline events at INFO
_QUIET_LOGGERS = ("multipart", "python_multipart", "openpyxl", "sqlalchemy.engine")


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """Route stdlib logging and structlog to stdout as JSON (or console) lines."""
    settings = get_settings()
    log_level = (level or settings.LOG_LEVEL).upper()
    renderer = (fmt or settings.LOG_FORMAT).lower()

    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, logging.getLevelName(log_level)))

    processors: List[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.stdlib.add_logger_name,
        _rename_event_key,
        structlog.processors.format_exc_info,
    ]
    if renderer == "console":
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
        wrapper_class=structlog.stdlib.BoundLogger,
    )


def _rename_event_key(logger: Any, name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    if "event" in event_dict:
        return event_dict
    msg = event_dict.pop("msg", None)
    if msg is not None:
        event_dict["event"] = msg
    return event_dict
