from __future__ import annotations

import functools
import inspect
import time
from typing import Any, Callable, TypeVar

import structlog

F = TypeVar("F", bound=Callable[..., Any])

logger = structlog.get_logger("pipeline")


def _result_size(res: Any) -> int | None:
    records = getattr(res, "records", None)
    if records is not None:
        return len(records)
    total = getattr(res, "total", None)
    if isinstance(total, int):
        return total
    if isinstance(res, (list, tuple, set, dict)):
        return len(res)
    return None


def log_stage(name: str) -> Callable[[F], F]:
    """Decorator that times a pipeline stage and emits start/completed/error logs."""

    def decorator(func: F) -> F:
        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any):
                start = time.perf_counter()
                logger.info("stage.start", stage=name)
                try:
                    result = await func(*args, **kwargs)
                except Exception as exc:
                    duration = (time.perf_counter() - start) * 1000
                    logger.warning(
                        "stage.error",
                        stage=name,
                        error_type=type(exc).__name__,
                        error=str(exc),
                        duration_ms=round(duration, 2),
                    )
                    raise
                duration = (time.perf_counter() - start) * 1000
                logger.info(
                    "stage.completed",
                    stage=name,
                    duration_ms=round(duration, 2),
                    result_size=_result_size(result),
                )
                return result

            return async_wrapper  # type: ignore[return-value]

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any):
            start = time.perf_counter()
            logger.info("stage.start", stage=name)
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                duration = (time.perf_counter() - start) * 1000
                logger.warning(
                    "stage.error",
                    stage=name,
                    error_type=type(exc).__name__,
                    error=str(exc),
                    duration_ms=round(duration, 2),
                )
                raise
            duration = (time.perf_counter() - start) * 1000
            logger.info(
                "stage.completed",
                stage=name,
                duration_ms=round(duration, 2),
                result_size=_result_size(result),
            )
            return result

        return sync_wrapper  # type: ignore[return-value]

    return decorator
