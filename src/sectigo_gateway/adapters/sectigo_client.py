"""
HTTP adapter — Sectigo Certificate Manager REST API via httpx.

Adapter layer: implements the RemoteAuthority port with an httpx.AsyncClient
that already carries the base URL and authentication (see open_sectigo_client).

Authentication (one of):
  - password:    customerUri + login + password headers on every request
  - certificate: customerUri + login headers, client certificate in the TLS handshake

Every operation returns a Result:
  - 2xx with a readable body          → Success
  - non-2xx with {"code", "description"} → Failure(REMOTE_API_ERROR, "<code> | <description>")
  - 2xx with an unreadable body       → Failure(INVALID_RESPONSE)
  - connection / timeout problems     → Failure(TRANSPORT_ERROR)

Retry/backoff via tenacity on transient errors (network, timeout) only;
structured API errors are answers, not glitches, and are never retried.
"""

from __future__ import annotations

import ssl
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any, TypeVar

import httpx
import structlog
from cryptography import x509
from cryptography.hazmat.primitives.serialization import Encoding
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from sectigo_gateway.domain.models import (
    CustomField,
    Department,
    EnrollmentSubmission,
    Organization,
    OrganizationDetails,
    PickedUpCertificate,
    Profile,
    RemoteCertificate,
)
from sectigo_gateway.domain.result import ErrorCode, Result

log = structlog.get_logger()

T = TypeVar("T")


class SectigoApiError(Exception):
    """A structured error answered by the authority."""

    def __init__(self, code: int | str | None, description: str | None) -> None:
        self.code = code
        self.description = description or ""
        super().__init__(f"{code} | {self.description}")


class SectigoApiClient:
    """
    Async client for the certificate authority's management API.

    Implements the RemoteAuthority port. Holds no per-call state, so the producer
    and the consumer of a sync cycle share one instance.
    """

    def __init__(self, http: httpx.AsyncClient) -> None:
        self._http = http

    # ──────────────────────── Certificates ────────────────────────

    async def list_certificates(
        self,
        position: int,
        size: int,
        filter_clause: tuple[str, str] | None = None,
    ) -> Result[list[RemoteCertificate]]:
        params: dict[str, Any] = {"position": position, "size": size}
        if filter_clause is not None:
            params[filter_clause[0]] = filter_clause[1]
        return await self._call(
            "GET",
            "api/ssl/v1",
            lambda body: [parse_certificate(item) for item in body],
            "Certificate page could not be decoded",
            params=params,
        )

    async def get_certificate(self, ssl_id: int) -> Result[RemoteCertificate]:
        return await self._call(
            "GET",
            f"api/ssl/v1/{ssl_id}",
            parse_certificate,
            f"Certificate {ssl_id} could not be decoded",
        )

    async def pickup_certificate(self, ssl_id: int) -> Result[PickedUpCertificate]:
        """
        Collect the issued certificate (first block of the PEM chain) as DER.

        Non-2xx answers and empty bodies mean the certificate cannot be collected
        yet and come back as Failure(NOT_FOUND).
        """
        try:
            response = await self._send("GET", f"api/ssl/v1/collect/{ssl_id}/x509CO")
        except httpx.TransportError as e:
            return _transport_failure(e)

        if response.is_error or not response.content.strip():
            log.debug("sectigo.pickup_unavailable", ssl_id=ssl_id, status=response.status_code)
            return Result.failure(
                ErrorCode.NOT_FOUND, f"Certificate {ssl_id} is not available for pickup"
            )
        return Result.from_computation(
            lambda: parse_pem_chain(response.content),
            ErrorCode.INVALID_RESPONSE,
            f"Certificate {ssl_id} chain could not be decoded",
        )

    async def enroll(self, submission: EnrollmentSubmission) -> Result[int]:
        return await self._call(
            "POST",
            "api/ssl/v1/enroll",
            _ssl_id,
            "Enrollment response could not be decoded",
            json=enrollment_payload(submission),
        )

    async def revoke(self, ssl_id: int, reason: str) -> Result[bool]:
        return await self._call(
            "POST",
            f"api/ssl/v1/revoke/{ssl_id}",
            lambda _: True,
            "Revocation response could not be decoded",
            json={"reason": reason},
            expect_body=False,
        )

    # ──────────────────────── Reference data ────────────────────────

    async def list_organizations(self) -> Result[list[Organization]]:
        return await self._call(
            "GET",
            "api/organization/v1",
            lambda body: [parse_organization(item) for item in body],
            "Organization list could not be decoded",
        )

    async def get_organization_details(self, org_id: int) -> Result[OrganizationDetails]:
        return await self._call(
            "GET",
            f"api/organization/v1/{org_id}",
            lambda body: OrganizationDetails(
                id=int(body["id"]),
                name=body.get("name") or "",
                cert_types=tuple(body.get("certTypes") or ()),
            ),
            f"Organization {org_id} could not be decoded",
        )

    async def list_ssl_profiles(self, org_id: int | None = None) -> Result[list[Profile]]:
        params = {"organizationId": org_id} if org_id is not None else None
        return await self._call(
            "GET",
            "api/ssl/v1/types",
            lambda body: [parse_profile(item) for item in body],
            "SSL profile list could not be decoded",
            params=params,
        )

    async def list_custom_fields(self) -> Result[list[CustomField]]:
        return await self._call(
            "GET",
            "api/ssl/v1/customFields",
            lambda body: [
                CustomField(name=item["name"], mandatory=bool(item.get("mandatory", False)))
                for item in body
            ],
            "Custom field list could not be decoded",
        )

    # ──────────────────────── Plumbing ────────────────────────

    async def _call(
        self,
        method: str,
        url: str,
        parse: Callable[[Any], T],
        decode_error: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        expect_body: bool = True,
    ) -> Result[T]:
        """Send one request and fold every outcome into a Result."""
        try:
            response = await self._send(method, url, params=params, json=json)
        except httpx.TransportError as e:
            return _transport_failure(e)

        if response.is_error:
            return _api_failure(response)

        body = (
            Result.from_computation(response.json, ErrorCode.INVALID_RESPONSE, decode_error)
            if expect_body
            else Result.success(response.content)
        )
        return body.flat_map(
            lambda decoded: Result.from_computation(
                lambda: parse(decoded), ErrorCode.INVALID_RESPONSE, decode_error
            )
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=0.1, max=30),
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
        reraise=True,
    )
    async def _send(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> httpx.Response:
        """HTTP call with retry; transport exceptions are folded by the caller."""
        log.debug("sectigo.request", method=method, url=url, params=params)
        response = await self._http.request(method, url, params=params, json=json)
        log.debug("sectigo.response", method=method, url=url, status=response.status_code)
        return response


# ──────────────────────── Client construction ────────────────────────


@asynccontextmanager
async def open_sectigo_client(
    endpoint: str,
    customer_uri: str,
    username: str,
    password: str | None = None,
    client_cert_path: str | None = None,
    client_key_path: str | None = None,
    timeout: float = 60.0,
) -> AsyncIterator[SectigoApiClient]:
    """
    Build an authenticated client for one unit of work.

    A client certificate path selects certificate authentication; otherwise the
    password is sent as a header.
    """
    headers = {"customerUri": customer_uri, "login": username}
    verify: ssl.SSLContext | bool = True
    if client_cert_path:
        verify = ssl.create_default_context()
        verify.load_cert_chain(client_cert_path, client_key_path)
        log.debug("sectigo.client_certificate_auth", cert_path=client_cert_path)
    elif password is not None:
        headers["password"] = password

    base_url = endpoint if endpoint.endswith("/") else f"{endpoint}/"
    async with httpx.AsyncClient(
        base_url=base_url, headers=headers, verify=verify, timeout=timeout
    ) as http:
        yield SectigoApiClient(http)


# ──────────────────────── Parsing ────────────────────────


def parse_certificate(body: dict[str, Any]) -> RemoteCertificate:
    cert_type = body.get("certType")
    return RemoteCertificate(
        id=int(body["sslId"]),
        common_name=body.get("commonName") or "",
        serial_number=body.get("serialNumber") or "",
        profile=parse_profile(cert_type) if cert_type else None,
        status=body.get("status") or "",
        requested=_parse_timestamp(body.get("requested")),
        approved=_parse_timestamp(body.get("approved")),
        revoked=_parse_timestamp(body.get("revoked")),
        subject_alternative_names=tuple(body.get("subjectAlternativeNames") or ()),
    )


def parse_profile(body: dict[str, Any]) -> Profile:
    return Profile(
        id=int(body["id"]),
        name=body.get("name") or "",
        terms=tuple(int(t) for t in body.get("terms") or ()),
    )


def parse_organization(body: dict[str, Any]) -> Organization:
    return Organization(
        id=int(body["id"]),
        name=body.get("name") or "",
        departments=tuple(
            Department(id=int(d["id"]), name=d.get("name") or "")
            for d in body.get("departments") or ()
        ),
    )


def parse_pem_chain(pem: bytes) -> PickedUpCertificate:
    """DER bytes and RFC 4514 subject of the first certificate in a PEM chain."""
    first = x509.load_pem_x509_certificates(pem)[0]
    return PickedUpCertificate(
        certificate=first.public_bytes(Encoding.DER),
        subject=first.subject.rfc4514_string(),
    )


def enrollment_payload(submission: EnrollmentSubmission) -> dict[str, Any]:
    """JSON body of an enroll call; optional members are omitted when empty."""
    payload: dict[str, Any] = {
        "orgId": submission.org_id,
        "csr": submission.csr,
        "certType": submission.cert_type,
        "numberServers": submission.number_servers,
        "serverType": submission.server_type,
        "term": submission.term,
    }
    if submission.subject_alt_names:
        payload["subjAltNames"] = submission.subject_alt_names
    if submission.comments:
        payload["comments"] = submission.comments
    if submission.custom_fields:
        payload["customFields"] = [
            {"name": f.name, "value": f.value} for f in submission.custom_fields
        ]
    if submission.external_requester:
        payload["externalRequester"] = submission.external_requester
    return payload


def _ssl_id(body: dict[str, Any]) -> int:
    return int(body["sslId"])


def _parse_timestamp(raw: str | None) -> datetime | None:
    if not raw:
        return None
    parsed = datetime.fromisoformat(raw)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def _api_failure(response: httpx.Response) -> Result[Any]:
    try:
        body = response.json()
        error = SectigoApiError(body.get("code"), body.get("description"))
    except (ValueError, AttributeError) as e:
        log.warning("sectigo.unreadable_error", status=response.status_code, error=str(e))
        return Result.failure(
            ErrorCode.INVALID_RESPONSE,
            f"HTTP {response.status_code} with an unreadable error body",
            e,
        )
    log.warning(
        "sectigo.api_error",
        url=str(response.request.url),
        status=response.status_code,
        code=error.code,
        description=error.description,
    )
    return Result.failure(ErrorCode.REMOTE_API_ERROR, str(error), error)


def _transport_failure(e: httpx.TransportError) -> Result[Any]:
    log.error("sectigo.transport_error", error=str(e), error_type=type(e).__name__)
    return Result.failure(ErrorCode.TRANSPORT_ERROR, f"Transport failure: {e}", e)


