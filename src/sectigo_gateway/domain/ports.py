"""
Ports — Protocol-based interfaces for infrastructure adapters.

These define WHAT the gateway needs without specifying HOW it's done:

  Domain ← Ports (protocols) ← Adapters (implementations)

  RemoteAuthority  → the certificate authority's management API (async, Result-returning)
  LocalRecordStore → the host's system of record, queried during reconciliation
  SyncRecordSink   → where reconciled records finally land on the host side

Each port is a Protocol (structural typing) so adapters and test fakes satisfy the
contract simply by implementing the methods.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from sectigo_gateway.domain.models import (
    CustomField,
    EnrollmentSubmission,
    LocalCertificate,
    LocalSyncRecord,
    Organization,
    OrganizationDetails,
    PickedUpCertificate,
    Profile,
    RemoteCertificate,
)
from sectigo_gateway.domain.result import Result


@runtime_checkable
class RemoteAuthority(Protocol):
    """
    Port: single request/response operations against the authority.

    Stateless per call and safe to share between the concurrent producer and
    consumer of a sync cycle. Failures are REMOTE_API_ERROR (structured code and
    description from the authority) or TRANSPORT_ERROR (connectivity).
    """

    async def list_certificates(
        self,
        position: int,
        size: int,
        filter_clause: tuple[str, str] | None = None,
    ) -> Result[list[RemoteCertificate]]: ...

    async def get_certificate(self, ssl_id: int) -> Result[RemoteCertificate]: ...

    async def pickup_certificate(self, ssl_id: int) -> Result[PickedUpCertificate]:
        """Issued bytes, or Failure(NOT_FOUND) while the certificate cannot be collected."""
        ...

    async def enroll(self, submission: EnrollmentSubmission) -> Result[int]: ...

    async def revoke(self, ssl_id: int, reason: str) -> Result[bool]: ...

    async def list_organizations(self) -> Result[list[Organization]]: ...

    async def get_organization_details(self, org_id: int) -> Result[OrganizationDetails]: ...

    async def list_ssl_profiles(self, org_id: int | None = None) -> Result[list[Profile]]: ...

    async def list_custom_fields(self) -> Result[list[CustomField]]: ...


@runtime_checkable
class LocalRecordStore(Protocol):
    """
    Port: look up what the host already holds for a serial number.

    Called from a worker thread during a sync cycle; implementations must be
    thread-safe. Storage errors are raised and end the cycle gracefully.
    """

    def lookup(self, serial_number: str) -> LocalCertificate | None: ...


@runtime_checkable
class SyncRecordSink(Protocol):
    """Port: persist one reconciled record; returns the stored request id."""

    def save(self, record: LocalSyncRecord) -> Result[str]: ...
