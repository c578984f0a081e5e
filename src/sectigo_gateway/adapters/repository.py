"""
PostgreSQL repository adapter — the host's certificate system of record.

Adapter layer: implements both LocalRecordStore (lookup by serial number, used
during reconciliation) and SyncRecordSink (upsert of reconciled records) using
psycopg (v3) with parameterized queries.

Table mapping:
  LocalSyncRecord → sectigo_certificates (one row per request id)

Storage conventions:
  - status            → disposition code (CanonicalStatus value: 0, 13, 20, 21)
  - revocation_reason → integer with 0xFFFFFF meaning "not revoked"
  - serial_number     → upper-case hex without separators

Raw parameterized SQL, no ORM.
"""

from __future__ import annotations

import psycopg
import structlog

from sectigo_gateway.domain.models import CanonicalStatus, LocalCertificate, LocalSyncRecord
from sectigo_gateway.domain.result import ErrorCode, Result
from sectigo_gateway.domain.status import legacy_revocation_code

log = structlog.get_logger()

_SELECT_BY_SERIAL = """
SELECT request_id, status, certificate
FROM sectigo_certificates
WHERE serial_number = %s
ORDER BY updated_at DESC
LIMIT 1
"""

_UPSERT = """
INSERT INTO sectigo_certificates (
    request_id, product_id, status, serial_number, certificate,
    submitted_at, resolved_at, revocation_reason, revoked_at, updated_at
) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, now())
ON CONFLICT (request_id) DO UPDATE SET
    product_id = EXCLUDED.product_id,
    status = EXCLUDED.status,
    serial_number = EXCLUDED.serial_number,
    certificate = COALESCE(EXCLUDED.certificate, sectigo_certificates.certificate),
    submitted_at = EXCLUDED.submitted_at,
    resolved_at = EXCLUDED.resolved_at,
    revocation_reason = EXCLUDED.revocation_reason,
    revoked_at = EXCLUDED.revoked_at,
    updated_at = now()
"""


def normalize_serial(serial_number: str) -> str:
    """Upper-case hex with colons and blanks removed."""
    return "".join(ch for ch in serial_number if ch not in ": ").upper()


class PsycopgCertificateStore:
    """
    Read and persist local certificate records in PostgreSQL.

    Implements the LocalRecordStore and SyncRecordSink ports. Each call opens its own
    connection, so one instance is safe to use from worker threads.
    """

    def __init__(self, dsn: str) -> None:
        self._dsn = dsn

    def lookup(self, serial_number: str) -> LocalCertificate | None:
        """
        The most recently updated record holding this serial, or None.

        Database errors propagate; the sync cycle treats them as fatal.
        """
        with psycopg.connect(self._dsn) as conn, conn.cursor() as cur:
            cur.execute(_SELECT_BY_SERIAL, (normalize_serial(serial_number),))
            row = cur.fetchone()
        if row is None:
            return None
        request_id, status, certificate = row
        return LocalCertificate(
            request_id=request_id,
            status=_status_from_code(status),
            certificate=bytes(certificate) if certificate is not None else b"",
        )

    def save(self, record: LocalSyncRecord) -> Result[str]:
        """Insert or update the record keyed by request id; returns the request id."""
        return Result.from_computation(
            lambda: self._upsert(record),
            ErrorCode.DATABASE_ERROR,
            f"Failed to persist certificate record {record.request_id}",
        )

    def _upsert(self, record: LocalSyncRecord) -> str:
        with psycopg.connect(self._dsn) as conn, conn.transaction(), conn.cursor() as cur:
            cur.execute(
                _UPSERT,
                (
                    record.request_id,
                    record.product_id,
                    record.status.value,
                    normalize_serial(record.serial_number),
                    record.certificate,
                    record.submitted_at,
                    record.resolved_at,
                    legacy_revocation_code(record.revocation_reason),
                    record.revoked_at,
                ),
            )
        log.debug(
            "repository.saved",
            request_id=record.request_id,
            status=record.status.name,
        )
        return record.request_id


def _status_from_code(code: int) -> CanonicalStatus:
    try:
        return CanonicalStatus(code)
    except ValueError:
        return CanonicalStatus.UNKNOWN
