"""
Status mapping — free-text authority vocabulary to the canonical lifecycle states.

Also holds the two small translation tables that live at the same boundary:
revocation reasons (enumeration ↔ authority phrase ↔ legacy host code) and
request identifiers (legacy composite "<id>-<suffix>" → numeric id).
"""

from __future__ import annotations

from sectigo_gateway.domain.models import CanonicalStatus, RevocationReason

_STATUS_TABLE: dict[str, CanonicalStatus] = {
    "issued": CanonicalStatus.ISSUED,
    "enrolled - pending download": CanonicalStatus.ISSUED,
    "approved": CanonicalStatus.ISSUED,
    "applied": CanonicalStatus.ISSUED,
    "downloaded": CanonicalStatus.ISSUED,
    "requested": CanonicalStatus.PENDING_APPROVAL,
    "awaiting approval": CanonicalStatus.PENDING_APPROVAL,
    "not enrolled": CanonicalStatus.PENDING_APPROVAL,
    "revoked": CanonicalStatus.REVOKED,
}


def map_status(remote_status: str | None) -> CanonicalStatus:
    """
    Translate an authority status string, case-insensitively.

    Anything not in the table ("Any", typos, None) is UNKNOWN, never an error.

        >>> map_status("ISSUED")
        <CanonicalStatus.ISSUED: 20>
        >>> map_status("bogus")
        <CanonicalStatus.UNKNOWN: 0>
    """
    if not remote_status:
        return CanonicalStatus.UNKNOWN
    return _STATUS_TABLE.get(remote_status.strip().lower(), CanonicalStatus.UNKNOWN)


# ─────────────────────── Revocation reasons ───────────────────────

NOT_REVOKED_CODE = 0xFFFFFF
"""Legacy host code meaning "no revocation reason"."""

_REASON_PHRASES: dict[RevocationReason, str] = {
    RevocationReason.KEY_COMPROMISE: "Compromised Key",
    RevocationReason.CA_COMPROMISE: "CA Compromised",
    RevocationReason.AFFILIATION_CHANGED: "Affiliation Changed",
    RevocationReason.SUPERSEDED: "Superseded",
    RevocationReason.CESSATION_OF_OPERATION: "Cessation of Operation",
    RevocationReason.CERTIFICATE_HOLD: "Certificate Hold",
}
_PHRASE_REASONS = {phrase.lower(): reason for reason, phrase in _REASON_PHRASES.items()}


def reason_to_phrase(reason: RevocationReason | int) -> str:
    """Authority phrase for a reason code; unknown codes are "Unspecified"."""
    try:
        return _REASON_PHRASES.get(RevocationReason(reason), "Unspecified")
    except ValueError:
        return "Unspecified"


def phrase_to_reason(phrase: str) -> RevocationReason:
    return _PHRASE_REASONS.get(phrase.strip().lower(), RevocationReason.UNSPECIFIED)


def revocation_reason_for(status: CanonicalStatus) -> RevocationReason | None:
    """A record carries a reason only when it is revoked."""
    if status is CanonicalStatus.REVOKED:
        return RevocationReason.UNSPECIFIED
    return None


def legacy_revocation_code(reason: RevocationReason | None) -> int:
    """Encode a reason for hosts that store an integer column with a sentinel."""
    if reason is None:
        return NOT_REVOKED_CODE
    return int(reason)


# ─────────────────────── Request identifiers ───────────────────────


def parse_request_id(request_id: str) -> int:
    """
    Numeric authority id of a local request identifier.

    Re-issued legacy records are stored as "<id>-<suffix>"; only the prefix
    identifies the remote certificate. Raises ValueError for non-numeric ids.

        >>> parse_request_id("139-2")
        139
    """
    prefix = request_id.strip().split("-", 1)[0]
    return int(prefix)
