"""
Gateway facade — the blocking surface the host calls.

Each public method runs one event loop (asyncio.run) around a freshly opened
remote client, so callers stay synchronous while the sync cycle inside runs its
producer and consumer concurrently:

  synchronize()       → one sync cycle, records drained into the host's sink
  enroll()            → EnrollmentOrchestrator, always an EnrollmentOutcome
  revoke()            → Result[CanonicalStatus.REVOKED]
  get_single_record() → Result[LocalSyncRecord]
  validate_profile()  → Result[Profile]

remote_factory is any zero-argument callable returning an async context manager
that yields a RemoteAuthority (open_sectigo_client bound to settings in
production, an in-memory fake in tests).
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Awaitable, Callable
from contextlib import AbstractAsyncContextManager
from typing import TypeVar

import structlog

from sectigo_gateway.domain.models import (
    CanonicalStatus,
    EnrollmentOutcome,
    EnrollmentRequest,
    LocalSyncRecord,
    Profile,
    RevocationReason,
    SyncOptions,
)
from sectigo_gateway.domain.ports import LocalRecordStore, RemoteAuthority, SyncRecordSink
from sectigo_gateway.domain.result import ErrorCode, Result
from sectigo_gateway.domain.status import map_status, parse_request_id, reason_to_phrase
from sectigo_gateway.enrollment.orchestrator import EnrollmentOrchestrator
from sectigo_gateway.enrollment.pickup import PickupPoller
from sectigo_gateway.sync.consumer import build_sync_record
from sectigo_gateway.sync.cycle import run_sync_cycle
from sectigo_gateway.sync.queue import BoundedQueue

log = structlog.get_logger()

T = TypeVar("T")

type RemoteFactory = Callable[[], AbstractAsyncContextManager[RemoteAuthority]]


class SectigoGateway:
    """Synchronous entry points over the async sync and enrollment machinery."""

    def __init__(
        self,
        remote_factory: RemoteFactory,
        sync_options: SyncOptions | None = None,
        pickup_retries: int = 3,
        pickup_delay_seconds: float = 10.0,
        pickup_settle_delay_seconds: float = 5.0,
        external_requester_field_name: str | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._remote_factory = remote_factory
        self._sync_options = sync_options or SyncOptions()
        self._pickup_retries = pickup_retries
        self._pickup_delay = pickup_delay_seconds
        self._pickup_settle_delay = pickup_settle_delay_seconds
        self._external_requester_field_name = external_requester_field_name
        self._sleep = sleep

    # ──────────────────────── Synchronization ────────────────────────

    def synchronize(
        self,
        store: LocalRecordStore,
        sink: SyncRecordSink,
        cancel: threading.Event | None = None,
    ) -> Result[int]:
        """Run one sync cycle; Success carries the number of records the sink accepted."""
        cancel = cancel or threading.Event()
        return self._run(lambda remote: self._synchronize(remote, store, sink, cancel))

    async def _synchronize(
        self,
        remote: RemoteAuthority,
        store: LocalRecordStore,
        sink: SyncRecordSink,
        cancel: threading.Event,
    ) -> Result[int]:
        output: BoundedQueue[LocalSyncRecord] = BoundedQueue(
            capacity=self._sync_options.queue_capacity,
            put_timeout=self._sync_options.put_timeout_seconds,
            name="sync-records",
        )
        drain = asyncio.create_task(_drain_into(output, sink), name="sync-drain")
        cycle = await run_sync_cycle(remote, store, output, cancel, self._sync_options)
        saved = await drain
        log.info("gateway.synchronized", saved=saved, cycle_ok=cycle.is_success())
        return cycle.map(lambda _: saved)

    # ──────────────────────── Enrollment ────────────────────────

    def enroll(self, request: EnrollmentRequest) -> EnrollmentOutcome:
        """Never raises; every problem comes back as a FAILED outcome."""
        try:
            return asyncio.run(
                self._with_remote(lambda remote: self._orchestrator(remote).enroll(request))
            )
        except Exception as e:
            log.error("gateway.enroll_failed", error=str(e))
            return EnrollmentOutcome.failed(str(e))

    def validate_profile(self, profile_id: int) -> Result[Profile]:
        return self._run(lambda remote: self._orchestrator(remote).validate_profile(profile_id))

    def _orchestrator(self, remote: RemoteAuthority) -> EnrollmentOrchestrator:
        return EnrollmentOrchestrator(
            remote,
            self._poller(remote),
            external_requester_field_name=self._external_requester_field_name,
        )

    def _poller(self, remote: RemoteAuthority) -> PickupPoller:
        return PickupPoller(
            remote,
            retries=self._pickup_retries,
            delay_seconds=self._pickup_delay,
            settle_delay_seconds=self._pickup_settle_delay,
            sleep=self._sleep,
        )

    # ──────────────────────── Single-record operations ────────────────────────

    def revoke(self, request_id: str, reason: RevocationReason) -> Result[CanonicalStatus]:
        """Revoke by local request id (composite ids accepted)."""
        ssl_id = _parse_ssl_id(request_id)
        if ssl_id.is_failure():
            return ssl_id
        phrase = reason_to_phrase(reason)
        log.info("gateway.revoke", ssl_id=ssl_id.value(), reason=phrase)
        return self._run(lambda remote: _revoke(remote, ssl_id.value(), phrase))

    def get_single_record(self, request_id: str) -> Result[LocalSyncRecord]:
        """
        Current state of one certificate as a sync record.

        Pending and revoked certificates come back without bytes; otherwise the
        bytes are collected with the pickup retry policy.
        """
        ssl_id = _parse_ssl_id(request_id)
        if ssl_id.is_failure():
            return ssl_id
        return self._run(lambda remote: self._single_record(remote, request_id, ssl_id.value()))

    async def _single_record(
        self, remote: RemoteAuthority, request_id: str, ssl_id: int
    ) -> Result[LocalSyncRecord]:
        detail = await remote.get_certificate(ssl_id)
        if detail.is_failure():
            return detail
        certificate = detail.value()
        status = map_status(certificate.status)
        if status in (CanonicalStatus.PENDING_APPROVAL, CanonicalStatus.REVOKED):
            return Result.success(build_sync_record(certificate, request_id, status, None))

        picked = await self._poller(remote).collect(ssl_id, certificate.common_name)
        if picked is None:
            return Result.failure(
                ErrorCode.NOT_FOUND,
                f"Certificate {request_id} could not be picked up from the authority",
            )
        return Result.success(build_sync_record(certificate, request_id, status, picked.certificate))

    # ──────────────────────── Plumbing ────────────────────────

    async def _with_remote(self, work: Callable[[RemoteAuthority], Awaitable[T]]) -> T:
        async with self._remote_factory() as remote:
            return await work(remote)

    def _run(self, work: Callable[[RemoteAuthority], Awaitable[Result[T]]]) -> Result[T]:
        try:
            return asyncio.run(self._with_remote(work))
        except Exception as e:
            log.error("gateway.operation_failed", error=str(e))
            return Result.failure(ErrorCode.UNKNOWN_ERROR, f"Gateway operation failed: {e}", e)


async def _drain_into(output: BoundedQueue[LocalSyncRecord], sink: SyncRecordSink) -> int:
    """Hand each record to the sink from a worker thread; sink failures skip the record."""
    saved = 0
    async for record in output:
        try:
            result = await asyncio.to_thread(sink.save, record)
        except Exception as e:
            log.error("gateway.sink_crashed", request_id=record.request_id, error=str(e))
            continue
        if result.is_success():
            saved += 1
        else:
            log.warning(
                "gateway.sink_rejected",
                request_id=record.request_id,
                failure=str(result.error()),
            )
    return saved


async def _revoke(remote: RemoteAuthority, ssl_id: int, phrase: str) -> Result[CanonicalStatus]:
    result = await remote.revoke(ssl_id, phrase)
    return result.map(lambda _: CanonicalStatus.REVOKED)


def _parse_ssl_id(request_id: str) -> Result[int]:
    return Result.from_computation(
        lambda: parse_request_id(request_id),
        ErrorCode.VALIDATION_ERROR,
        f"Invalid request id {request_id!r}",
    )
