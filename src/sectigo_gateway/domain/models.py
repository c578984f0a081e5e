"""
Domain models — immutable data structures exchanged between the gateway components.

Remote-side entities (RemoteCertificate, Organization, Profile, ...) are read from the
certificate authority and never mutated. Local-side entities (LocalCertificate,
LocalSyncRecord) describe the host's system of record. Enrollment types carry one
request from the host through the orchestrator and back.

All models are frozen dataclasses (immutable).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum, unique


@unique
class CanonicalStatus(Enum):
    """
    The four lifecycle states used internally.

    Values are the host's disposition codes so the storage boundary can persist
    them directly; code only ever compares members.
    """

    UNKNOWN = 0
    PENDING_APPROVAL = 13
    ISSUED = 20
    REVOKED = 21


@unique
class RevocationReason(IntEnum):
    """RFC 5280 reason codes understood by the authority."""

    UNSPECIFIED = 0
    KEY_COMPROMISE = 1
    CA_COMPROMISE = 2
    AFFILIATION_CHANGED = 3
    SUPERSEDED = 4
    CESSATION_OF_OPERATION = 5
    CERTIFICATE_HOLD = 6


@unique
class Disposition(IntEnum):
    """Outcome codes returned to the host for an enrollment."""

    PENDING = 13
    ISSUED = 20
    FAILED = 30


@unique
class EnrollmentKind(Enum):
    NEW = "new"
    RENEW = "renew"
    REISSUE = "reissue"


# ─────────────────────── Remote reference data ───────────────────────


@dataclass(frozen=True, slots=True)
class Profile:
    """An SSL certificate type (profile) with its allowed terms in days."""

    id: int
    name: str = ""
    terms: tuple[int, ...] = ()


@dataclass(frozen=True, slots=True)
class Department:
    id: int
    name: str


@dataclass(frozen=True, slots=True)
class Organization:
    id: int
    name: str
    departments: tuple[Department, ...] = ()


@dataclass(frozen=True, slots=True)
class OrganizationDetails:
    """Organization (or department) detail; cert_types is empty when nothing may be issued."""

    id: int
    name: str
    cert_types: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class CustomField:
    name: str
    mandatory: bool = False
    value: str | None = None


# ─────────────────────── Remote certificates ───────────────────────


@dataclass(frozen=True, slots=True)
class RemoteCertificate:
    """
    A certificate as reported by the authority.

    serial_number is empty while the certificate is not issued. A later read of
    the same id may report another status; the latest read wins.
    """

    id: int
    common_name: str = ""
    serial_number: str = ""
    profile: Profile | None = None
    status: str = ""
    requested: datetime | None = None
    approved: datetime | None = None
    revoked: datetime | None = None
    subject_alternative_names: tuple[str, ...] = ()

    def __str__(self) -> str:
        return (
            f"sslId:{self.id} | commonName:{self.common_name} "
            f"| serialNumber:{self.serial_number}"
        )


@dataclass(frozen=True, slots=True)
class PickedUpCertificate:
    """Issued certificate bytes (DER) collected from the authority, with its subject."""

    certificate: bytes = field(repr=False)
    subject: str = ""


# ─────────────────────── Local records ───────────────────────


@dataclass(frozen=True, slots=True)
class LocalCertificate:
    """
    A certificate already held by the host's system of record.

    request_id may be composite ("<id>-<suffix>") for legacy re-issued records.
    """

    request_id: str
    status: CanonicalStatus
    certificate: bytes = field(default=b"", repr=False)


@dataclass(frozen=True, slots=True)
class LocalSyncRecord:
    """
    The reconciled unit pushed toward the host.

    An issued record always carries certificate bytes; a pending one never does.
    revocation_reason is None unless the status is REVOKED.
    """

    request_id: str
    product_id: str
    status: CanonicalStatus
    revoked_at: datetime
    serial_number: str = ""
    certificate: bytes | None = field(default=None, repr=False)
    submitted_at: datetime | None = None
    resolved_at: datetime | None = None
    revocation_reason: RevocationReason | None = None

    def __post_init__(self) -> None:
        if self.status is CanonicalStatus.ISSUED and not self.certificate:
            raise ValueError(f"Issued record {self.request_id} must carry certificate bytes")
        if self.status is CanonicalStatus.PENDING_APPROVAL and self.certificate:
            raise ValueError(f"Pending record {self.request_id} must not carry certificate bytes")


# ─────────────────────── Synchronization ───────────────────────


type SyncFilter = dict[str, list[str]]


@dataclass(frozen=True, slots=True)
class SyncOptions:
    """Knobs of one synchronization cycle."""

    page_size: int = 25
    sync_filter: SyncFilter = field(default_factory=dict)
    force_complete_sync: bool = False
    queue_capacity: int = 100
    put_timeout_seconds: float = 0.05


# ─────────────────────── Enrollment ───────────────────────


@dataclass(frozen=True, slots=True)
class EnrollmentRequest:
    """
    One enrollment as described by the host.

    custom_fields holds every enrollment field value supplied by the host; mandatory
    remote custom fields and the external requester field are looked up there.
    """

    csr: str
    subject: str
    profile_id: int
    sans: dict[str, list[str]] = field(default_factory=dict)
    organization: str | None = None
    department: str | None = None
    multi_domain: bool = False
    custom_fields: dict[str, str] = field(default_factory=dict)
    requester: str | None = None
    kind: EnrollmentKind = EnrollmentKind.NEW


@dataclass(frozen=True, slots=True)
class EnrollmentContext:
    """Per-request aggregate resolved from the request descriptor; discarded after submission."""

    organization: str
    common_name: str | None = None
    organizational_unit: str | None = None
    department: str | None = None
    sans: tuple[str, ...] = ()
    multi_domain: bool = False
    custom_fields: dict[str, str] = field(default_factory=dict)
    external_requester: str | None = None


@dataclass(frozen=True, slots=True)
class EnrollmentSubmission:
    """Payload of an enroll call to the authority."""

    org_id: int
    csr: str
    cert_type: int
    term: int
    subject_alt_names: str = ""
    number_servers: int = 1
    server_type: int = -1
    comments: str | None = None
    custom_fields: tuple[CustomField, ...] = ()
    external_requester: str | None = None


@dataclass(frozen=True, slots=True)
class EnrollmentOutcome:
    """
    The single answer returned to the host for an enrollment.

    ISSUED carries the certificate bytes; PENDING and FAILED carry an operator message.
    """

    disposition: Disposition
    message: str
    request_id: str | None = None
    certificate: bytes | None = field(default=None, repr=False)

    @property
    def status(self) -> CanonicalStatus:
        if self.disposition is Disposition.ISSUED:
            return CanonicalStatus.ISSUED
        if self.disposition is Disposition.PENDING:
            return CanonicalStatus.PENDING_APPROVAL
        return CanonicalStatus.UNKNOWN

    @classmethod
    def issued(cls, request_id: str, certificate: bytes, message: str) -> EnrollmentOutcome:
        return cls(Disposition.ISSUED, message, request_id, certificate)

    @classmethod
    def pending(cls, request_id: str, message: str) -> EnrollmentOutcome:
        return cls(Disposition.PENDING, message, request_id)

    @classmethod
    def failed(cls, message: str, request_id: str | None = None) -> EnrollmentOutcome:
        return cls(Disposition.FAILED, message, request_id)
