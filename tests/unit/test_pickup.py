"""
Unit tests for the pickup poller — bounded retries with injected sleeps.
"""

from __future__ import annotations

import asyncio

from sectigo_gateway.domain.models import Disposition, RemoteCertificate
from sectigo_gateway.domain.result import ErrorCode, Result
from sectigo_gateway.enrollment.pickup import (
    AWAITING_APPROVAL_MESSAGE,
    PICKUP_EXHAUSTED_MESSAGE,
    PickupPoller,
)
from tests.fakes import FakeAuthority, RecordingSleep, issued, picked

DER = b"\x30\x82\x02\x00"


def _poller(authority: FakeAuthority, sleep: RecordingSleep) -> PickupPoller:
    return PickupPoller(authority, retries=3, delay_seconds=10, settle_delay_seconds=5, sleep=sleep)


class TestPickup:
    def test_issued_on_first_attempt(self) -> None:
        """
        GIVEN a just-issued certificate whose bytes are available immediately
        WHEN picked up
        THEN the outcome is ISSUED with the bytes, after only the settle delay.
        """
        authority = FakeAuthority()
        authority.pickups[500] = [picked(subject="CN=www.example.com", der=DER)]
        sleep = RecordingSleep()

        outcome = asyncio.run(_poller(authority, sleep).pickup(issued(500)))

        assert outcome.disposition is Disposition.ISSUED
        assert outcome.certificate == DER
        assert outcome.request_id == "500"
        assert outcome.message == "Successfully enrolled for certificate CN=www.example.com"
        assert sleep.calls == [5]

    def test_gives_up_after_configured_attempts(self) -> None:
        """
        GIVEN a certificate whose bytes never become available
        WHEN picked up with retries=3
        THEN exactly 3 pickup calls are made, each followed by the retry delay,
             and the outcome is PENDING with the exhausted message.
        """
        authority = FakeAuthority()
        sleep = RecordingSleep()

        outcome = asyncio.run(_poller(authority, sleep).pickup(issued(500)))

        assert authority.pickup_calls == [500, 500, 500]
        assert sleep.calls == [5, 10, 10, 10]
        assert outcome.disposition is Disposition.PENDING
        assert outcome.message == PICKUP_EXHAUSTED_MESSAGE
        assert outcome.certificate is None

    def test_succeeds_on_later_attempt(self) -> None:
        authority = FakeAuthority()
        authority.pickups[500] = [
            Result.failure(ErrorCode.NOT_FOUND, "not yet"),
            picked(der=DER),
        ]
        sleep = RecordingSleep()

        outcome = asyncio.run(_poller(authority, sleep).pickup(issued(500)))

        assert outcome.disposition is Disposition.ISSUED
        assert authority.pickup_calls == [500, 500]
        assert sleep.calls == [5, 10]

    def test_empty_subject_counts_as_unsuccessful(self) -> None:
        authority = FakeAuthority()
        authority.pickups[500] = [picked(subject="")]

        outcome = asyncio.run(_poller(authority, RecordingSleep()).pickup(issued(500)))

        assert outcome.disposition is Disposition.PENDING
        assert len(authority.pickup_calls) == 3

    def test_status_needing_approval_returns_pending_without_polling(self) -> None:
        """
        GIVEN a submitted certificate in "Requested" status
        WHEN picked up
        THEN the outcome is PENDING with the approval message and nothing is polled.
        """
        authority = FakeAuthority()
        sleep = RecordingSleep()
        cert = RemoteCertificate(id=501, common_name="a.com", status="Requested")

        outcome = asyncio.run(_poller(authority, sleep).pickup(cert))

        assert outcome.disposition is Disposition.PENDING
        assert outcome.message == AWAITING_APPROVAL_MESSAGE
        assert outcome.request_id == "501"
        assert authority.pickup_calls == []
        assert sleep.calls == []

    def test_applied_status_is_collectable(self) -> None:
        authority = FakeAuthority()
        authority.pickups[502] = [picked()]

        outcome = asyncio.run(
            _poller(authority, RecordingSleep()).pickup(issued(502, status="Applied"))
        )

        assert outcome.disposition is Disposition.ISSUED
