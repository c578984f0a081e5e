"""
Unit tests for domain models — value objects.

Verifies frozen dataclass behavior, the sync record invariants and the
enrollment outcome factories.
"""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from sectigo_gateway.domain.models import (
    CanonicalStatus,
    Disposition,
    EnrollmentOutcome,
    LocalSyncRecord,
    Profile,
    RemoteCertificate,
    RevocationReason,
    SyncOptions,
)

NOW = datetime(2024, 5, 1, tzinfo=UTC)


class TestRemoteCertificate:
    def test_frozen_prevents_mutation(self) -> None:
        """
        GIVEN a frozen RemoteCertificate
        WHEN attempting to modify a field
        THEN an AttributeError is raised.
        """
        cert = RemoteCertificate(id=139, common_name="ccmqa.com")
        with pytest.raises(AttributeError):
            cert.status = "Revoked"  # type: ignore[misc]

    def test_defaults_describe_unissued_certificate(self) -> None:
        cert = RemoteCertificate(id=139)
        assert cert.serial_number == ""
        assert cert.profile is None
        assert cert.subject_alternative_names == ()

    def test_str_identifies_certificate(self) -> None:
        cert = RemoteCertificate(id=139, common_name="ccmqa.com", serial_number="0A1B")
        assert str(cert) == "sslId:139 | commonName:ccmqa.com | serialNumber:0A1B"


class TestLocalSyncRecord:
    def test_issued_record_requires_bytes(self) -> None:
        """
        GIVEN status ISSUED and no certificate bytes
        WHEN a LocalSyncRecord is created
        THEN ValueError is raised.
        """
        with pytest.raises(ValueError, match="must carry certificate bytes"):
            LocalSyncRecord(
                request_id="139",
                product_id="2846",
                status=CanonicalStatus.ISSUED,
                revoked_at=NOW,
            )

    def test_pending_record_rejects_bytes(self) -> None:
        with pytest.raises(ValueError, match="must not carry certificate bytes"):
            LocalSyncRecord(
                request_id="139",
                product_id="2846",
                status=CanonicalStatus.PENDING_APPROVAL,
                revoked_at=NOW,
                certificate=b"\x30\x00",
            )

    def test_revoked_record_with_reason(self) -> None:
        record = LocalSyncRecord(
            request_id="139",
            product_id="2846",
            status=CanonicalStatus.REVOKED,
            revoked_at=NOW,
            revocation_reason=RevocationReason.UNSPECIFIED,
        )
        assert record.certificate is None
        assert record.revocation_reason is RevocationReason.UNSPECIFIED


class TestEnrollmentOutcome:
    def test_issued_outcome(self) -> None:
        outcome = EnrollmentOutcome.issued("500", b"\x30\x00", "Successfully enrolled")
        assert outcome.disposition is Disposition.ISSUED
        assert outcome.status is CanonicalStatus.ISSUED
        assert outcome.certificate == b"\x30\x00"

    def test_pending_outcome_has_no_bytes(self) -> None:
        outcome = EnrollmentOutcome.pending("500", "awaiting approval")
        assert outcome.disposition is Disposition.PENDING
        assert outcome.status is CanonicalStatus.PENDING_APPROVAL
        assert outcome.certificate is None

    def test_failed_outcome(self) -> None:
        outcome = EnrollmentOutcome.failed("The request is missing a O= value")
        assert outcome.disposition is Disposition.FAILED
        assert int(outcome.disposition) == 30
        assert outcome.request_id is None


class TestDefaults:
    def test_sync_options_defaults(self) -> None:
        options = SyncOptions()
        assert options.page_size == 25
        assert options.sync_filter == {}
        assert options.force_complete_sync is False
        assert options.queue_capacity == 100

    def test_profile_terms_default_empty(self) -> None:
        assert Profile(id=1).terms == ()

    def test_canonical_status_codes(self) -> None:
        assert CanonicalStatus.PENDING_APPROVAL.value == 13
        assert CanonicalStatus.ISSUED.value == 20
        assert CanonicalStatus.REVOKED.value == 21
