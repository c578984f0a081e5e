"""
FastAPI + Uvicorn ASGI application.

Runs the gateway as a web service: the sync scheduler lives in a background
thread while Uvicorn serves health checks and a manual trigger.

  GET  /health   liveness (scheduler thread alive, no startup error)
  GET  /ready    readiness (scheduler started)
  GET  /info     metadata, cycle in flight, shutdown requested, last cycle summary
  POST /trigger  run one sync cycle now (409 while another cycle runs)

Scheduled and manual cycles share one SyncRunner, so at most one cycle touches
the authority and the local store at a time.

Entry point: uvicorn sectigo_gateway.asgi:app --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from functools import partial
from typing import Any

import structlog
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from sectigo_gateway import __version__
from sectigo_gateway.config import AppSettings
from sectigo_gateway.domain.result import Result
from sectigo_gateway.main import _create_adapters, configure_structlog
from sectigo_gateway.scheduler import create_scheduler

log = structlog.get_logger()


class SyncRunner:
    """Serializes sync cycles and remembers how the last one ended."""

    def __init__(self, sync_fn: Callable[[], Result[int]]) -> None:
        self._sync_fn = sync_fn
        self._lock = threading.Lock()
        self.last_cycle: dict[str, Any] | None = None

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def run(self) -> Result[int]:
        """Scheduled path: waits for a manual cycle in flight, then runs."""
        with self._lock:
            return self._run_locked("scheduled")

    def try_run(self) -> Result[int] | None:
        """Manual path: None when another cycle already holds the runner."""
        if not self._lock.acquire(blocking=False):
            return None
        try:
            return self._run_locked("manual")
        finally:
            self._lock.release()

    def _run_locked(self, source: str) -> Result[int]:
        try:
            result = self._sync_fn()
        except Exception as e:
            self.last_cycle = _cycle_summary(source, state="CRASHED", error=str(e))
            raise
        if result.is_success():
            self.last_cycle = _cycle_summary(source, state="SUCCESS", records_saved=result.value())
        else:
            self.last_cycle = _cycle_summary(
                source, state="FAILURE", error_code=result.error().code.value
            )
        return result


def _cycle_summary(source: str, **fields: Any) -> dict[str, Any]:
    return {"source": source, "finished_at": datetime.now(UTC).isoformat(), **fields}


# ─────────────────────── Global State ───────────────────────

_scheduler_thread: threading.Thread | None = None
_scheduler_started = False
_scheduler_ready = False
_error_message: str | None = None
_runner: SyncRunner | None = None
_cancel = threading.Event()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup: wire adapters and start the scheduler thread. Shutdown: cancel and stop."""
    global _scheduler_thread, _scheduler_ready, _error_message, _runner

    try:
        settings = AppSettings()
    except Exception as e:
        _error_message = f"Configuration error: {e}"
        log.error("asgi.startup_error", error=_error_message)
        raise

    configure_structlog(settings.log_level)
    log.info(
        "asgi.startup",
        version=__version__,
        cron=settings.scheduler.cron,
        run_on_startup=settings.run_on_startup,
    )

    try:
        gateway, store = _create_adapters(settings)
        _runner = SyncRunner(partial(gateway.synchronize, store, store, _cancel))
        scheduler = create_scheduler(
            sync_fn=_runner.run,
            cron=settings.scheduler.cron,
            run_on_startup=False,
            cancel=_cancel,
        )
    except Exception as e:
        _error_message = f"Failed to initialize adapters/scheduler: {e}"
        log.error("asgi.init_error", error=_error_message)
        raise

    runner = _runner

    def run_scheduler() -> None:
        global _scheduler_started, _error_message
        try:
            _scheduler_started = True
            if settings.run_on_startup:
                runner.run()
            scheduler.start()
        except Exception as e:
            _error_message = f"Scheduler error: {e}"
            log.error("asgi.scheduler_error", error=_error_message)

    _scheduler_thread = threading.Thread(target=run_scheduler, name="sync-scheduler", daemon=True)
    _scheduler_thread.start()

    await asyncio.sleep(0.1)
    _scheduler_ready = True
    log.info("asgi.startup_complete")

    yield

    log.info("asgi.shutdown", cycle_in_flight=runner.busy)
    _cancel.set()
    try:
        scheduler.shutdown(wait=True)
    except Exception as e:
        log.warning("asgi.scheduler_shutdown_error", error=str(e))

    _scheduler_thread.join(timeout=5.0)
    if _scheduler_thread.is_alive():
        log.warning("asgi.scheduler_thread_timeout", timeout_seconds=5.0)


app = FastAPI(
    title="sectigo-gateway",
    description="Sectigo Certificate Manager inventory sync as a web service",
    version=__version__,
    lifespan=lifespan,
)


def _scheduler_alive() -> bool:
    return _scheduler_thread is not None and _scheduler_thread.is_alive()


@app.get("/health")
async def health() -> JSONResponse:
    if _error_message:
        return JSONResponse(status_code=503, content={"status": "unhealthy", "error": _error_message})
    if not _scheduler_alive():
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "reason": "scheduler thread not running"},
        )
    return JSONResponse(status_code=200, content={"status": "healthy"})


@app.get("/ready")
async def ready() -> JSONResponse:
    """202 while starting, 503 after a startup error, 200 once the scheduler runs."""
    if not (_scheduler_ready and _scheduler_started):
        return JSONResponse(status_code=202, content={"status": "starting"})
    if _error_message:
        return JSONResponse(status_code=503, content={"status": "error", "error": _error_message})
    return JSONResponse(status_code=200, content={"status": "ready"})


@app.get("/info")
async def info() -> dict[str, Any]:
    return {
        "name": "sectigo-gateway",
        "version": __version__,
        "scheduler_running": _scheduler_alive(),
        "cycle_in_flight": _runner is not None and _runner.busy,
        "cancel_requested": _cancel.is_set(),
        "last_cycle": _runner.last_cycle if _runner is not None else None,
        "has_error": _error_message is not None,
    }


@app.post("/trigger")
async def trigger() -> JSONResponse:
    """
    Run one sync cycle now, in a worker thread.

    200 with records_saved, 500 on failure, 409 while another cycle runs,
    503 before startup wired the runner or once shutdown began.
    """
    if _runner is None:
        return JSONResponse(
            status_code=503, content={"status": "unavailable", "reason": "Sync not initialized"}
        )
    if _cancel.is_set():
        return JSONResponse(
            status_code=503, content={"status": "unavailable", "reason": "Shutdown in progress"}
        )

    try:
        result = await asyncio.to_thread(_runner.try_run)
    except Exception as e:
        log.error("trigger.exception", error=str(e))
        return JSONResponse(status_code=500, content={"status": "error", "error": str(e)})

    if result is None:
        log.info("trigger.rejected_busy")
        return JSONResponse(
            status_code=409,
            content={"status": "busy", "reason": "A synchronization cycle is already running"},
        )

    if result.is_success():
        log.info("trigger.completed", records_saved=result.value())
        return JSONResponse(
            status_code=200, content={"status": "success", "records_saved": result.value()}
        )

    failure = result.error()
    log.error("trigger.sync_failed", failure=str(failure))
    return JSONResponse(
        status_code=500,
        content={"status": "failed", "error_code": failure.code.value, "message": failure.message},
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("sectigo_gateway.asgi:app", host="0.0.0.0", port=8000, log_level="info")
