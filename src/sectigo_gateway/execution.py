"""
Execution context — wraps a Result-returning job with timing and outcome logging.

    ctx = LoggingExecutionContext(operation="CertificateSync")
    result = ctx.execute(sync_fn)

An exception escaping the computation is folded into Failure(UNKNOWN_ERROR) so a
scheduled job never takes the scheduler down with it.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import TypeVar

import structlog

from sectigo_gateway.domain.result import ErrorCode, Result

T = TypeVar("T")

log = structlog.get_logger()


class LoggingExecutionContext:
    """Logs start, duration and final state of each execution."""

    def __init__(self, operation: str = "unknown") -> None:
        self._operation = operation

    def execute(self, computation: Callable[[], Result[T]]) -> Result[T]:
        log.info("execution.started", operation=self._operation)
        start = time.monotonic()
        try:
            result = computation()
        except Exception as e:
            log.error(
                "execution.crashed",
                operation=self._operation,
                elapsed_seconds=round(time.monotonic() - start, 3),
                error=str(e),
            )
            return Result.failure(ErrorCode.UNKNOWN_ERROR, f"Execution failed: {e}", e)

        log.info(
            "execution.completed",
            operation=self._operation,
            elapsed_seconds=round(time.monotonic() - start, 3),
            state="SUCCESS" if result.is_success() else "FAILURE",
        )
        return result
