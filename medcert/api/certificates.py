"""Certificate endpoints.

- POST /registrations/{id}/certificate   issue (or return / reissue)
- GET  /certificates                     paginated list for operators
- GET  /certificates/{id}                full detail
- GET  /certificates/verify/{number}     public verification
- POST /certificates/{id}/revoke         revoke with a reason
- GET  /user/certificates                the caller's active certificates

Service exceptions are translated to HTTP status codes here; the services
know nothing about HTTP.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel

from medcert.api.dependencies import actor_id, require_permission, require_user
from medcert.api.providers import (
    StoresDep,
    get_issuance_service,
    get_revocation_service,
    get_verification_service,
)
from medcert.api.ratelimit import require_rate_limit
from medcert.models.certificate import Certificate, IssuanceOutcome
from medcert.models.principal import Principal
from medcert.repos.registration_repo import RegistrationDirectory
from medcert.services.errors import (
    AlreadyRevoked,
    EncodingFailure,
    IssuanceFailed,
    NotEligible,
    NotFound,
    ReasonRequired,
)
from medcert.services.issuance_service import IssuanceService
from medcert.services.rate_limiter import RateLimitConfig
from medcert.services.revocation_service import RevocationService
from medcert.services.verification_service import VerificationService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["certificates"])

# A QR scan plus a few reloads pass; enumerating numbers does not.
VERIFY_RATE_LIMIT = RateLimitConfig(capacity=30, refill_rate=0.5)


# Schemas


class CertificateOut(BaseModel):
    id: UUID
    registration_id: UUID
    certificate_number: str
    verification_url: str
    qr_code: str
    issued_at: datetime
    revoked: bool
    revoked_reason: str | None = None
    revoked_at: datetime | None = None
    revoked_by_id: UUID | None = None

    @staticmethod
    def from_domain(cert: Certificate) -> CertificateOut:
        return CertificateOut(
            id=cert.id,
            registration_id=cert.registration_id,
            certificate_number=cert.certificate_number,
            verification_url=cert.verification_url,
            qr_code=cert.qr_code,
            issued_at=cert.issued_at,
            revoked=cert.revoked,
            revoked_reason=cert.revoked_reason,
            revoked_at=cert.revoked_at,
            revoked_by_id=cert.revoked_by_id,
        )


class IssueOut(BaseModel):
    outcome: IssuanceOutcome
    certificate: CertificateOut


class RegistrationOut(BaseModel):
    id: UUID
    status: str
    attendance_confirmed: bool


class EventOut(BaseModel):
    id: UUID
    title: str
    location: str
    start_date: datetime
    end_date: datetime


class HolderOut(BaseModel):
    id: UUID
    full_name: str
    email: str
    organization: str | None = None
    position: str | None = None


class CertificateDetailOut(CertificateOut):
    registration: RegistrationOut | None = None
    event: EventOut | None = None
    holder: HolderOut | None = None


class CertificateListOut(BaseModel):
    items: list[CertificateDetailOut]
    total: int
    page: int
    limit: int
    total_pages: int


class RevokeIn(BaseModel):
    reason: str


class VerifiedEventOut(BaseModel):
    title: str
    start_date: datetime
    end_date: datetime


class VerifiedHolderOut(BaseModel):
    full_name: str
    organization: str | None = None
    position: str | None = None


class VerificationOut(BaseModel):
    """Same shape for every answer; fields that do not apply are null."""

    valid: bool
    reason: str | None = None
    certificate_number: str | None = None
    issued_at: datetime | None = None
    event: VerifiedEventOut | None = None
    holder: VerifiedHolderOut | None = None
    revoked_at: datetime | None = None
    revoked_reason: str | None = None


# Helpers


async def _detail(
    cert: Certificate, directory: RegistrationDirectory
) -> CertificateDetailOut:
    out = CertificateDetailOut(**CertificateOut.from_domain(cert).model_dump())
    registration = await directory.get_registration(cert.registration_id)
    if registration is None:
        return out

    out.registration = RegistrationOut(
        id=registration.id,
        status=registration.status,
        attendance_confirmed=registration.attendance_confirmed,
    )
    event = await directory.get_event(registration.event_id)
    if event is not None:
        out.event = EventOut(
            id=event.id,
            title=event.title,
            location=event.location,
            start_date=event.start_date,
            end_date=event.end_date,
        )
    holder = await directory.get_holder(registration.user_id)
    if holder is not None:
        out.holder = HolderOut(
            id=holder.id,
            full_name=holder.full_name,
            email=holder.email,
            organization=holder.organization,
            position=holder.position,
        )
    return out


def _not_found(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


# Routes


@router.post(
    "/registrations/{registration_id}/certificate",
    response_model=IssueOut,
    status_code=status.HTTP_200_OK,
)
async def issue_certificate(
    registration_id: UUID,
    response: Response,
    principal: Annotated[
        Principal, Depends(require_permission("certificate:generate"))
    ],
    service: Annotated[IssuanceService, Depends(get_issuance_service)],
) -> IssueOut:
    """Issue the registration's certificate.

    201 when a new certificate was created; 200 when the active one is
    returned unchanged or a revoked one was reissued under the same number.
    """
    try:
        result = await service.issue(registration_id, actor_id(principal))
    except NotFound:
        raise _not_found("registration not found") from None
    except NotEligible:
        raise HTTPException(
            status_code=422,
            detail="registration is not approved or attendance is not confirmed",
        ) from None
    except (IssuanceFailed, EncodingFailure):
        logger.exception("Certificate issuance failed registration=%s", registration_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="certificate could not be issued",
        ) from None

    if result.outcome is IssuanceOutcome.CREATED:
        response.status_code = status.HTTP_201_CREATED
    return IssueOut(
        outcome=result.outcome,
        certificate=CertificateOut.from_domain(result.certificate),
    )


@router.get("/certificates", response_model=CertificateListOut)
async def list_certificates(
    _principal: Annotated[Principal, Depends(require_permission("certificate:read"))],
    stores: StoresDep,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
    search: str | None = None,
    event_id: UUID | None = None,
    revoked: bool | None = None,
) -> CertificateListOut:
    registration_ids = None
    if event_id is not None:
        registration_ids = await stores.directory.registration_ids_for_event(event_id)

    # The search text matches the number, the holder's name or email, or the
    # event title.
    search_registration_ids = None
    if search and search.strip():
        search_registration_ids = await stores.directory.registration_ids_matching(
            search
        )

    result = await stores.ledger.list(
        page,
        limit,
        search=search,
        search_registration_ids=search_registration_ids,
        revoked=revoked,
        registration_ids=registration_ids,
    )
    return CertificateListOut(
        items=[await _detail(c, stores.directory) for c in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
        total_pages=result.total_pages,
    )


@router.get(
    "/certificates/verify/{certificate_number}",
    response_model=VerificationOut,
    dependencies=[Depends(require_rate_limit(VERIFY_RATE_LIMIT))],
)
async def verify_certificate(
    certificate_number: str,
    _principal: Annotated[
        Principal, Depends(require_permission("certificate:verify"))
    ],
    service: Annotated[VerificationService, Depends(get_verification_service)],
) -> VerificationOut:
    result = await service.verify(certificate_number)
    return VerificationOut(
        valid=result.valid,
        reason=result.reason,
        certificate_number=result.certificate_number,
        issued_at=result.issued_at,
        event=(
            VerifiedEventOut(
                title=result.event.title,
                start_date=result.event.start_date,
                end_date=result.event.end_date,
            )
            if result.event is not None
            else None
        ),
        holder=(
            VerifiedHolderOut(
                full_name=result.holder.full_name,
                organization=result.holder.organization,
                position=result.holder.position,
            )
            if result.holder is not None
            else None
        ),
        revoked_at=result.revoked_at,
        revoked_reason=result.revoked_reason,
    )


@router.get("/certificates/{certificate_id}", response_model=CertificateDetailOut)
async def get_certificate(
    certificate_id: UUID,
    _principal: Annotated[Principal, Depends(require_permission("certificate:read"))],
    stores: StoresDep,
) -> CertificateDetailOut:
    cert = await stores.ledger.get(certificate_id)
    if cert is None:
        raise _not_found("certificate not found")
    return await _detail(cert, stores.directory)


@router.post("/certificates/{certificate_id}/revoke", response_model=CertificateOut)
async def revoke_certificate(
    certificate_id: UUID,
    body: RevokeIn,
    principal: Annotated[
        Principal, Depends(require_permission("certificate:revoke"))
    ],
    service: Annotated[RevocationService, Depends(get_revocation_service)],
) -> CertificateOut:
    try:
        cert = await service.revoke(certificate_id, actor_id(principal), body.reason)
    except ReasonRequired as e:
        raise HTTPException(
            status_code=422, detail=str(e)
        ) from None
    except NotFound:
        raise _not_found("certificate not found") from None
    except AlreadyRevoked:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="certificate is already revoked",
        ) from None
    return CertificateOut.from_domain(cert)


@router.get("/user/certificates", response_model=CertificateListOut)
async def my_certificates(
    principal: Annotated[Principal, Depends(require_user)],
    stores: StoresDep,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
) -> CertificateListOut:
    registration_ids = await stores.directory.registration_ids_for_user(
        actor_id(principal)
    )
    # Active certificates only.
    result = await stores.ledger.list(
        page, limit, revoked=False, registration_ids=registration_ids
    )
    return CertificateListOut(
        items=[await _detail(c, stores.directory) for c in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
        total_pages=result.total_pages,
    )
