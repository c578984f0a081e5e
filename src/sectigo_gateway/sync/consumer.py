"""
Reconciliation consumer — turns remote certificates into local sync records.

For each remote certificate drained from the producer's queue:

  1. stop if the cycle was cancelled
  2. re-raise a fault reported by the producer task (checked again once the
     source is drained, so a fault after the last record is not lost)
  3. look up the local record by serial number (no serial ⇒ not issued ⇒ no lookup)
  4. local status already equals the mapped remote status ⇒ skip, unless a complete
     resync is forced
  5. stale local record ⇒ reuse its certificate bytes
  6. unknown serial ⇒ collect the certificate bytes from the authority
  7. skip when common name, serial number or certificate bytes are still missing
  8. queue the LocalSyncRecord downstream with backpressure

The output queue is completed exactly once, however the loop ends.
"""

from __future__ import annotations

import asyncio
import threading
from datetime import UTC, datetime

import structlog

from sectigo_gateway.domain.models import (
    CanonicalStatus,
    LocalCertificate,
    LocalSyncRecord,
    RemoteCertificate,
)
from sectigo_gateway.domain.ports import LocalRecordStore, RemoteAuthority
from sectigo_gateway.domain.status import map_status, parse_request_id, revocation_reason_for
from sectigo_gateway.sync.queue import BoundedQueue

log = structlog.get_logger()


class ProducerFault(Exception):
    """The producer task died with an exception while the consumer was draining."""


async def reconcile_certificates(
    source: BoundedQueue[RemoteCertificate],
    output: BoundedQueue[LocalSyncRecord],
    remote: RemoteAuthority,
    store: LocalRecordStore,
    cancel: threading.Event,
    force_complete_sync: bool = False,
    producer: asyncio.Task[int] | None = None,
) -> int:
    """Drain `source` until it is complete and empty; return the number of records emitted."""
    emitted = 0
    skipped = 0
    try:
        async for remote_cert in source:
            if cancel.is_set():
                log.warning("sync.consumer.cancelled", emitted=emitted)
                break
            _raise_producer_fault(producer)

            record = await _reconcile_one(remote_cert, remote, store, force_complete_sync)
            if record is None:
                skipped += 1
                continue

            if not await output.offer(record, cancel):
                log.warning("sync.consumer.output_closed", request_id=record.request_id)
                break
            emitted += 1
            log.debug(
                "sync.consumer.queued",
                common_name=remote_cert.common_name,
                request_id=record.request_id,
                status=record.status.name,
            )
        else:
            # Source completed: the producer is finishing, so its fate is known shortly.
            if producer is not None:
                await asyncio.wait({producer})
            _raise_producer_fault(producer)
    finally:
        output.complete()

    log.info("sync.consumer.finished", emitted=emitted, skipped=skipped)
    return emitted


async def _reconcile_one(
    remote_cert: RemoteCertificate,
    remote: RemoteAuthority,
    store: LocalRecordStore,
    force_complete_sync: bool,
) -> LocalSyncRecord | None:
    status = map_status(remote_cert.status)
    local: LocalCertificate | None = None
    if remote_cert.serial_number:
        local = await asyncio.to_thread(store.lookup, remote_cert.serial_number)

    request_id = str(remote_cert.id)
    certificate = b""

    if local is not None:
        try:
            request_id = str(parse_request_id(local.request_id))
        except ValueError:
            log.warning(
                "sync.consumer.bad_local_id",
                local_request_id=local.request_id,
                ssl_id=remote_cert.id,
            )
            return None

        if local.status is status and not force_complete_sync:
            log.debug(
                "sync.consumer.already_synced",
                common_name=remote_cert.common_name,
                ssl_id=remote_cert.id,
            )
            return None
        log.debug(
            "sync.consumer.resync",
            common_name=remote_cert.common_name,
            status_changed=local.status is not status,
            forced=force_complete_sync,
        )
        certificate = local.certificate
    elif remote_cert.serial_number:
        picked = await remote.pickup_certificate(remote_cert.id)
        if picked.is_success():
            certificate = picked.value().certificate
        else:
            log.debug(
                "sync.consumer.pickup_unavailable",
                ssl_id=remote_cert.id,
                error=picked.error().message,
            )

    if not remote_cert.serial_number or not remote_cert.common_name or not certificate:
        log.debug(
            "sync.consumer.data_unavailable",
            common_name=remote_cert.common_name,
            ssl_id=remote_cert.id,
        )
        return None

    return build_sync_record(remote_cert, request_id, status, certificate)


def build_sync_record(
    remote_cert: RemoteCertificate,
    request_id: str,
    status: CanonicalStatus,
    certificate: bytes | None,
) -> LocalSyncRecord:
    """
    Assemble the record pushed toward the host.

    Pending records never carry bytes; a missing revoked timestamp defaults to now.
    """
    if status is CanonicalStatus.PENDING_APPROVAL:
        certificate = None
    return LocalSyncRecord(
        request_id=request_id,
        product_id=str(remote_cert.profile.id) if remote_cert.profile else "",
        status=status,
        serial_number=remote_cert.serial_number,
        certificate=certificate or None,
        submitted_at=remote_cert.requested,
        resolved_at=remote_cert.approved,
        revocation_reason=revocation_reason_for(status),
        revoked_at=remote_cert.revoked or datetime.now(UTC),
    )


def _raise_producer_fault(producer: asyncio.Task[int] | None) -> None:
    """produce_certificates folds its own errors; this catches any other producer task that died."""
    if producer is None or not producer.done() or producer.cancelled():
        return
    fault = producer.exception()
    if fault is not None:
        log.error("sync.consumer.producer_fault", error=str(fault))
        raise ProducerFault(str(fault)) from fault
