"""
Pickup poller — waits for a freshly submitted certificate to become downloadable.

A certificate whose status is neither "Issued" nor "Applied" needs external approval:
the poller answers PENDING at once and a later sync cycle will pick it up. Otherwise it
waits a short settle delay and tries to collect the bytes up to `retries` times,
sleeping `delay_seconds` after every unsuccessful attempt.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import structlog

from sectigo_gateway.domain.models import EnrollmentOutcome, PickedUpCertificate, RemoteCertificate
from sectigo_gateway.domain.ports import RemoteAuthority

log = structlog.get_logger()

AWAITING_APPROVAL_MESSAGE = (
    "Certificate requires approval. Certificate will be picked up during "
    "synchronization after approval."
)
PICKUP_EXHAUSTED_MESSAGE = (
    "Failed to pickup certificate. Check SCM portal to determine if additional "
    "approval is required."
)

_COLLECTABLE_STATUSES = frozenset({"issued", "applied"})


class PickupPoller:
    """Bounded-retry collection of issued certificate bytes."""

    def __init__(
        self,
        remote: RemoteAuthority,
        retries: int = 3,
        delay_seconds: float = 10.0,
        settle_delay_seconds: float = 5.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._remote = remote
        self._retries = retries
        self._delay = delay_seconds
        self._settle_delay = settle_delay_seconds
        self._sleep = sleep

    async def pickup(self, certificate: RemoteCertificate) -> EnrollmentOutcome:
        """Outcome for a just-submitted certificate: ISSUED with bytes, or PENDING."""
        request_id = str(certificate.id)
        if certificate.status.strip().lower() not in _COLLECTABLE_STATUSES:
            log.info(
                "pickup.awaiting_approval",
                common_name=certificate.common_name,
                ssl_id=certificate.id,
                status=certificate.status,
            )
            return EnrollmentOutcome.pending(request_id, AWAITING_APPROVAL_MESSAGE)

        picked = await self.collect(certificate.id, certificate.common_name)
        if picked is None:
            return EnrollmentOutcome.pending(request_id, PICKUP_EXHAUSTED_MESSAGE)
        return EnrollmentOutcome.issued(
            request_id,
            picked.certificate,
            f"Successfully enrolled for certificate {picked.subject}",
        )

    async def collect(self, ssl_id: int, expected_subject: str = "") -> PickedUpCertificate | None:
        """Poll for the issued bytes; None once every attempt came back empty."""
        await self._sleep(self._settle_delay)
        for attempt in range(1, self._retries + 1):
            log.debug("pickup.attempt", ssl_id=ssl_id, attempt=attempt, retries=self._retries)
            result = await self._remote.pickup_certificate(ssl_id)
            if result.is_success() and result.value().subject:
                picked = result.value()
                log.info("pickup.collected", ssl_id=ssl_id, subject=picked.subject)
                return picked
            await self._sleep(self._delay)

        log.warning(
            "pickup.exhausted",
            ssl_id=ssl_id,
            expected_subject=expected_subject,
            retries=self._retries,
        )
        return None
