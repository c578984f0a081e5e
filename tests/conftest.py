"""
Shared test fixtures for the sectigo-gateway test suite.

Provides a freshly generated self-signed certificate (PEM chain and DER) so
pickup parsing is exercised against real X.509 encoding.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import Encoding
from cryptography.x509.oid import NameOID

from tests.fakes import SampleCertificate


def _self_signed(common_name: str) -> x509.Certificate:
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name(
        [
            x509.NameAttribute(NameOID.COMMON_NAME, common_name),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Acme"),
        ]
    )
    now = datetime.now(UTC)
    return (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=365))
        .sign(key, hashes.SHA256())
    )


@pytest.fixture(scope="session")
def sample_certificate() -> SampleCertificate:
    """Leaf certificate followed by an unrelated 'issuer' in the PEM chain."""
    leaf = _self_signed("ccmqa.com")
    issuer = _self_signed("Example Issuing CA")
    return SampleCertificate(
        pem=leaf.public_bytes(Encoding.PEM) + issuer.public_bytes(Encoding.PEM),
        der=leaf.public_bytes(Encoding.DER),
        subject=leaf.subject.rfc4514_string(),
    )
