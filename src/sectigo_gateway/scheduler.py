"""
Scheduler — periodic execution of the certificate synchronization cycle.

Infrastructure layer: uses APScheduler (3.x) for in-process scheduling driven
by a standard 5-field cron expression. Each run is wrapped in a
LoggingExecutionContext for timing and outcome logging.

Graceful shutdown: SIGINT/SIGTERM set the shared cancellation event (so a running
cycle stops paging and drains what it already queued) and stop the scheduler.
"""

from __future__ import annotations

import signal
import sys
import threading
from collections.abc import Callable

import structlog
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from sectigo_gateway.domain.result import Result
from sectigo_gateway.execution import LoggingExecutionContext

log = structlog.get_logger()


def create_scheduler(
    sync_fn: Callable[[], Result[int]],
    cron: str = "0 */6 * * *",
    run_on_startup: bool = True,
    cancel: threading.Event | None = None,
) -> BlockingScheduler:
    """
    Create a BlockingScheduler that runs the sync job on a cron schedule.

    Args:
        sync_fn: Zero-argument callable returning Result[int] (records saved).
        cron: Standard 5-field cron expression.
        run_on_startup: If True, execute once immediately before entering the loop.
        cancel: Event set on shutdown so an in-flight cycle winds down.
    """
    scheduler = BlockingScheduler()
    ctx = LoggingExecutionContext(operation="CertificateSync")

    def _job() -> None:
        result = ctx.execute(sync_fn)
        if result.is_success():
            log.info("scheduler.job_completed", records_saved=result.value())
        else:
            log.error("scheduler.job_failed", failure=str(result.error()))

    minute, hour, dom, month, dow = cron.split()
    scheduler.add_job(
        _job,
        trigger=CronTrigger(
            minute=minute,
            hour=hour,
            day=dom,
            month=month,
            day_of_week=dow,
        ),
        id="sectigo_sync",
        name="Sectigo certificate sync",
        replace_existing=True,
        max_instances=1,
    )

    if run_on_startup:
        log.info("scheduler.startup_run", message="Running sync immediately on startup")
        _job()

    _register_shutdown_signals(scheduler, cancel)

    return scheduler


def _register_shutdown_signals(
    scheduler: BlockingScheduler, cancel: threading.Event | None
) -> None:
    def _shutdown(signum: int, frame: object) -> None:
        log.info("scheduler.shutdown_requested", signal=signal.Signals(signum).name)
        if cancel is not None:
            cancel.set()
        scheduler.shutdown(wait=False)
        sys.exit(0)

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)
