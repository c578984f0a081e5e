"""
Enrollment orchestrator — resolves organizational context, submits, then picks up.

Flow (each step returns Result; the first failure becomes the outcome):

  build_enrollment_context(request)          CN / O / OU from the subject DN
    → mandatory custom fields present?       list_custom_fields
      → organization (and department) id     list_organizations + get_organization_details
        → SAN string                         compose_san_list
          → profile + first allowed term     list_ssl_profiles
            → enroll                         every request kind
              → certificate detail           get_certificate
                → PickupPoller.pickup

Validation problems, remote-API errors and transport errors all end as a FAILED
EnrollmentOutcome carrying the message (the authority's own description where it
gave one). Nothing raises past enroll().
"""

from __future__ import annotations

import structlog

from sectigo_gateway.domain.models import (
    CustomField,
    EnrollmentContext,
    EnrollmentOutcome,
    EnrollmentRequest,
    EnrollmentSubmission,
    Profile,
)
from sectigo_gateway.domain.ports import RemoteAuthority
from sectigo_gateway.domain.result import ErrorCode, Result
from sectigo_gateway.domain.subject import compose_san_list, flatten_sans, parse_rdn
from sectigo_gateway.enrollment.pickup import PickupPoller

log = structlog.get_logger()


def build_enrollment_context(
    request: EnrollmentRequest,
    external_requester_field_name: str | None = None,
) -> Result[EnrollmentContext]:
    """
    Resolve the per-request context from the subject DN and enrollment fields.

    An explicit organization wins over the DN's O= component; one of the two is required.
    """
    organization = request.organization or parse_rdn(request.subject, "O")
    if not organization:
        return Result.failure(ErrorCode.VALIDATION_ERROR, "The request is missing a O= value")

    external_requester = None
    if external_requester_field_name:
        external_requester = request.custom_fields.get(external_requester_field_name) or None

    return Result.success(
        EnrollmentContext(
            organization=organization,
            common_name=parse_rdn(request.subject, "CN"),
            organizational_unit=parse_rdn(request.subject, "OU"),
            department=request.department or None,
            sans=tuple(flatten_sans(request.sans)),
            multi_domain=request.multi_domain,
            custom_fields=dict(request.custom_fields),
            external_requester=external_requester,
        )
    )


class EnrollmentOrchestrator:
    """Drives one new, renew or reissue enrollment against the authority."""

    def __init__(
        self,
        remote: RemoteAuthority,
        poller: PickupPoller,
        external_requester_field_name: str | None = None,
    ) -> None:
        self._remote = remote
        self._poller = poller
        self._external_requester_field_name = external_requester_field_name

    async def enroll(self, request: EnrollmentRequest) -> EnrollmentOutcome:
        log.info("enroll.started", kind=request.kind.value, subject=request.subject)
        try:
            return await self._enroll(request)
        except Exception as e:
            log.error("enroll.unexpected_error", error=str(e), subject=request.subject)
            return EnrollmentOutcome.failed(str(e))

    async def validate_profile(self, profile_id: int) -> Result[Profile]:
        """The profile must exist among the authority's SSL profiles."""
        return await self._find_profile(profile_id)

    async def _enroll(self, request: EnrollmentRequest) -> EnrollmentOutcome:
        context_result = build_enrollment_context(request, self._external_requester_field_name)
        if context_result.is_failure():
            return _rejected(context_result)
        context = context_result.value()
        log.debug(
            "enroll.context",
            common_name=context.common_name,
            organization=context.organization,
            department=context.department,
        )

        fields_result = await self._custom_fields_for(context, request.profile_id)
        if fields_result.is_failure():
            return _rejected(fields_result)

        org_id_result = await self._resolve_org_id(context)
        if org_id_result.is_failure():
            return _rejected(org_id_result)

        profile_result = (await self._find_profile(request.profile_id)).flat_map(_first_term)
        if profile_result.is_failure():
            return _rejected(profile_result)
        profile, term = profile_result.value()

        submission = EnrollmentSubmission(
            org_id=org_id_result.value(),
            csr=request.csr,
            cert_type=profile.id,
            term=term,
            subject_alt_names=compose_san_list(
                context.sans, context.common_name, context.multi_domain
            ),
            comments=f"CERTIFICATE_REQUESTOR: {request.requester}" if request.requester else None,
            custom_fields=fields_result.value(),
            external_requester=context.external_requester,
        )

        ssl_id_result = await self._submit(request, submission)
        if ssl_id_result.is_failure():
            return _rejected(ssl_id_result)
        ssl_id = ssl_id_result.value()

        detail = await self._remote.get_certificate(ssl_id)
        if detail.is_failure():
            return _rejected(detail, request_id=str(ssl_id))
        certificate = detail.value()
        log.info(
            "enroll.submitted",
            common_name=certificate.common_name,
            ssl_id=certificate.id,
            status=certificate.status,
        )
        return await self._poller.pickup(certificate)

    async def _custom_fields_for(
        self, context: EnrollmentContext, profile_id: int
    ) -> Result[tuple[CustomField, ...]]:
        """Check mandatory custom fields; return the supplied values the authority knows."""
        listed = await self._remote.list_custom_fields()
        if listed.is_failure():
            return Result.failure(listed.error().code, listed.error().message, listed.error().exception)

        for remote_field in listed.value():
            if remote_field.mandatory and remote_field.name not in context.custom_fields:
                return Result.failure(
                    ErrorCode.VALIDATION_ERROR,
                    f"Profile {profile_id} or enrollment fields do not contain a mandatory "
                    f"custom field value for {remote_field.name}",
                )

        return Result.success(
            tuple(
                CustomField(name=f.name, value=context.custom_fields[f.name])
                for f in listed.value()
                if f.name in context.custom_fields
            )
        )

    async def _resolve_org_id(self, context: EnrollmentContext) -> Result[int]:
        organizations = await self._remote.list_organizations()
        if organizations.is_failure():
            return Result.failure(
                organizations.error().code,
                organizations.error().message,
                organizations.error().exception,
            )

        wanted = context.organization.lower()
        org = next((o for o in organizations.value() if o.name.lower() == wanted), None)
        if org is None:
            return Result.failure(
                ErrorCode.VALIDATION_ERROR,
                f"Unable to find Organization by Name {context.organization}",
            )

        if context.department:
            if not org.departments:
                return Result.failure(
                    ErrorCode.VALIDATION_ERROR,
                    f"Department {context.department} not found: no departments found "
                    f"in organization {context.organization}",
                )
            department = next(
                (d for d in org.departments if d.name.lower() == context.department.lower()),
                None,
            )
            if department is None:
                return Result.failure(
                    ErrorCode.VALIDATION_ERROR,
                    f"{context.department} does not exist as a department of "
                    f"{context.organization}. Please verify configuration",
                )
            return (await self._remote.get_organization_details(department.id)).flat_map(
                lambda details: Result.success(department.id)
                if details.cert_types
                else Result.failure(
                    ErrorCode.VALIDATION_ERROR,
                    f"Department {context.department} does not contain a valid certificate "
                    f"type configuration. Please verify account configuration.",
                )
            )

        details = await self._remote.get_organization_details(org.id)
        if details.is_success() and not details.value().cert_types:
            if context.organizational_unit:
                log.error(
                    "enroll.organizational_unit_deprecated",
                    message="The OU subject field no longer selects a department; "
                    "department names must be configured on the enrollment profile.",
                )
            return Result.failure(
                ErrorCode.VALIDATION_ERROR,
                f"Organization {context.organization} does not contain a valid certificate "
                f"type configuration, and no department was specified. "
                f"Please verify account configuration.",
            )
        return details.map(lambda d: org.id)

    async def _find_profile(self, profile_id: int) -> Result[Profile]:
        profiles = await self._remote.list_ssl_profiles()
        return profiles.flat_map(
            lambda listed: Result.from_optional(
                next((p for p in listed if p.id == profile_id), None),
                f"Unable to find SSL profile with ID {profile_id}",
            )
        )

    async def _submit(self, request: EnrollmentRequest, submission: EnrollmentSubmission) -> Result[int]:
        """Renewals and reissues are fresh enrollments so each issued certificate gets its own id."""
        log.debug("enroll.submit", kind=request.kind.value, org_id=submission.org_id)
        return await self._remote.enroll(submission)


def _first_term(profile: Profile) -> Result[tuple[Profile, int]]:
    if not profile.terms:
        return Result.failure(
            ErrorCode.VALIDATION_ERROR,
            f"SSL profile {profile.id} does not define an allowed term",
        )
    return Result.success((profile, profile.terms[0]))


def _rejected(result: Result, request_id: str | None = None) -> EnrollmentOutcome:
    error = result.error()
    log.error("enroll.rejected", code=error.code.value, error=error.message)
    return EnrollmentOutcome.failed(error.message, request_id)
