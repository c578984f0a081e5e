"""
Application entry point — wires dependencies and starts the scheduler.

Composition root: the only place concrete adapters are instantiated.

  1. Configure structlog
  2. Load and validate configuration from environment
  3. Create the gateway (remote client factory + options) and the PostgreSQL store
  4. Bind the sync job and hand it to the scheduler
"""

from __future__ import annotations

import logging
import sys
import threading
from functools import partial

import structlog

from sectigo_gateway import __version__
from sectigo_gateway.adapters.repository import PsycopgCertificateStore
from sectigo_gateway.adapters.sectigo_client import open_sectigo_client
from sectigo_gateway.config import AppSettings
from sectigo_gateway.gateway import SectigoGateway
from sectigo_gateway.scheduler import create_scheduler


def configure_structlog(log_level: str = "INFO") -> None:
    """Console-rendered structured logging filtered at `log_level` (unknown names → INFO)."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def _create_adapters(settings: AppSettings) -> tuple[SectigoGateway, PsycopgCertificateStore]:
    """Build the gateway and the store from application settings."""
    api = settings.api
    password = api.password.get_secret_value() if api.password is not None else None
    remote_factory = partial(
        open_sectigo_client,
        endpoint=api.endpoint,
        customer_uri=api.customer_uri,
        username=api.username,
        password=password if api.auth_type == "password" else None,
        client_cert_path=api.client_cert_path if api.auth_type == "certificate" else None,
        client_key_path=api.client_key_path,
        timeout=settings.http_timeout_seconds,
    )
    gateway = SectigoGateway(
        remote_factory,
        sync_options=settings.sync.to_options(),
        pickup_retries=settings.pickup.retries,
        pickup_delay_seconds=settings.pickup.delay_seconds,
        pickup_settle_delay_seconds=settings.pickup.settle_delay_seconds,
        external_requester_field_name=settings.enrollment.external_requester_field_name,
    )
    store = PsycopgCertificateStore(dsn=settings.database.get_dsn())
    return gateway, store


def main() -> None:
    """Wire dependencies and launch the scheduled sync."""
    try:
        settings = AppSettings()
    except Exception as e:
        print(f"FATAL: Configuration error — {e}", file=sys.stderr)  # noqa: T201
        sys.exit(1)

    configure_structlog(settings.log_level)
    log = structlog.get_logger()

    log.info(
        "app.starting",
        version=__version__,
        log_level=settings.log_level,
        cron=settings.scheduler.cron,
        page_size=settings.sync.page_size,
        run_on_startup=settings.run_on_startup,
    )

    gateway, store = _create_adapters(settings)
    cancel = threading.Event()
    sync_fn = partial(gateway.synchronize, store, store, cancel)

    scheduler = create_scheduler(
        sync_fn=sync_fn,
        cron=settings.scheduler.cron,
        run_on_startup=settings.run_on_startup,
        cancel=cancel,
    )

    log.info("app.scheduler_starting", cron=settings.scheduler.cron)

    try:
        scheduler.start()
    except KeyboardInterrupt:
        log.info("app.shutdown", reason="signal received")
    except SystemExit:
        log.info("app.shutdown", reason="signal received")
        raise
    except Exception as e:
        log.error("app.fatal_error", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
