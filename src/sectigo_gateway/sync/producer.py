"""
Paginated producer — pages the authority's certificate listing into a bounded queue.

Sweeps:
  - empty filter           → one unfiltered sweep
  - {"dim": ["a", "b"], ...} → one sweep per (dimension, value) pair; the filter is
                             a union of single-clause queries, not a conjunction.
                             Records seen by several sweeps are emitted each time;
                             reconciliation skips repeats.

Each sweep starts at position 0 and requests `page_size` records at a time until a
page comes back shorter than requested. Every listed record is re-read in full
(detail call) before being queued.

Failure policy:
  - detail call answered with a remote-API error → log, skip that record, keep going
  - transport failure or a failed page request   → stop every sweep
  - cancellation                                 → stop every sweep
The sink is completed on every exit path so the consumer always drains cleanly,
and nothing is raised to the caller.
"""

from __future__ import annotations

import threading

import structlog

from sectigo_gateway.domain.models import RemoteCertificate, SyncFilter
from sectigo_gateway.domain.ports import RemoteAuthority
from sectigo_gateway.domain.result import ErrorCode
from sectigo_gateway.sync.queue import BoundedQueue

log = structlog.get_logger()


class SweepInterrupted(Exception):
    """A sweep hit a failure that ends the whole production run."""


def sweep_clauses(sync_filter: SyncFilter | None) -> list[tuple[str, str] | None]:
    """One entry per sweep: None for an unfiltered sweep, else a (dimension, value) clause."""
    if not sync_filter:
        return [None]
    return [(dimension, value) for dimension, values in sync_filter.items() for value in values]


async def produce_certificates(
    remote: RemoteAuthority,
    sink: BoundedQueue[RemoteCertificate],
    cancel: threading.Event,
    page_size: int = 25,
    sync_filter: SyncFilter | None = None,
) -> int:
    """
    Run every sweep and return the number of records queued.

    Always completes `sink` before returning.
    """
    queued = 0
    try:
        for clause in sweep_clauses(sync_filter):
            if cancel.is_set():
                log.warning("sync.producer.cancelled", queued=queued)
                break
            log.info("sync.producer.sweep_started", filter=_describe(clause), page_size=page_size)
            queued += await _sweep(remote, sink, cancel, page_size, clause)
    except SweepInterrupted as e:
        log.error("sync.producer.interrupted", error=str(e), queued=queued)
    except Exception as e:
        log.error("sync.producer.failed", error=str(e), queued=queued)
    finally:
        sink.complete()
    log.info("sync.producer.finished", queued=queued)
    return queued


async def _sweep(
    remote: RemoteAuthority,
    sink: BoundedQueue[RemoteCertificate],
    cancel: threading.Event,
    page_size: int,
    clause: tuple[str, str] | None,
) -> int:
    position = 0
    queued = 0
    while not cancel.is_set():
        page_result = await remote.list_certificates(position, page_size, clause)
        if page_result.is_failure():
            raise SweepInterrupted(
                f"Page request at position {position} failed: {page_result.error().message}"
            )
        page = page_result.value()
        log.debug("sync.producer.page_fetched", position=position, count=len(page))

        for listed in page:
            if cancel.is_set():
                return queued
            detail = await remote.get_certificate(listed.id)
            if detail.is_failure():
                error = detail.error()
                if error.code is ErrorCode.TRANSPORT_ERROR:
                    raise SweepInterrupted(error.message)
                log.warning(
                    "sync.producer.detail_skipped",
                    ssl_id=listed.id,
                    error=error.message,
                )
                continue
            if not await sink.offer(detail.value(), cancel):
                return queued
            queued += 1

        position += len(page)
        if len(page) < page_size:
            break

    log.info("sync.producer.sweep_finished", filter=_describe(clause), queued=queued)
    return queued


def _describe(clause: tuple[str, str] | None) -> str:
    return "none" if clause is None else f"{clause[0]}={clause[1]}"
