"""
Synchronization cycle — one producer task and one consumer, joined by a bounded queue.

  produce_certificates ──▶ BoundedQueue[RemoteCertificate] ──▶ reconcile_certificates
                                                                      │
                                          BoundedQueue[LocalSyncRecord] ◀┘  (owned by the caller)

The cycle never raises: a consumer-side failure is logged, the producer task is
cancelled, and the output queue is completed so whatever was already queued
downstream is still usable.
"""

from __future__ import annotations

import asyncio
import threading

import structlog

from sectigo_gateway.domain.models import LocalSyncRecord, RemoteCertificate, SyncOptions
from sectigo_gateway.domain.ports import LocalRecordStore, RemoteAuthority
from sectigo_gateway.domain.result import ErrorCode, Result
from sectigo_gateway.sync.consumer import reconcile_certificates
from sectigo_gateway.sync.producer import produce_certificates
from sectigo_gateway.sync.queue import BoundedQueue

log = structlog.get_logger()


async def run_sync_cycle(
    remote: RemoteAuthority,
    store: LocalRecordStore,
    output: BoundedQueue[LocalSyncRecord],
    cancel: threading.Event,
    options: SyncOptions,
) -> Result[int]:
    """Run one cycle; Success carries the number of records emitted to `output`."""
    source: BoundedQueue[RemoteCertificate] = BoundedQueue(
        capacity=options.queue_capacity,
        put_timeout=options.put_timeout_seconds,
        name="remote-certificates",
    )
    log.info(
        "sync.cycle.started",
        page_size=options.page_size,
        filter=options.sync_filter or None,
        force_complete_sync=options.force_complete_sync,
    )
    producer = asyncio.create_task(
        produce_certificates(remote, source, cancel, options.page_size, options.sync_filter),
        name="sync-producer",
    )
    try:
        emitted = await reconcile_certificates(
            source,
            output,
            remote,
            store,
            cancel,
            force_complete_sync=options.force_complete_sync,
            producer=producer,
        )
        if not producer.done():
            # Consumer stopped early; nobody will drain the source queue any more.
            producer.cancel()
        await asyncio.gather(producer, return_exceptions=True)
    except Exception as e:
        log.error("sync.cycle.failed", error=str(e))
        if not producer.done():
            producer.cancel()
        await asyncio.gather(producer, return_exceptions=True)
        output.complete()
        return Result.failure(ErrorCode.UNKNOWN_ERROR, f"Synchronization interrupted: {e}", e)

    log.info("sync.cycle.completed", emitted=emitted, cancelled=cancel.is_set())
    return Result.success(emitted)
