"""Certificate issuance.

issue() is idempotent per registration:

  no certificate       -> generate number, render QR, insert   -> CREATED
  active certificate   -> returned unchanged                   -> ALREADY_ACTIVE
  revoked certificate  -> same number, fresh QR and issued_at  -> REISSUED

The number is kept across reissue so codes already printed or shared keep
resolving.  Concurrent calls for one registration are settled by the
ledger's uniqueness guarantee: the losers see DuplicateRegistration and
fall back to the existing row.
"""

from __future__ import annotations

import asyncio
import logging
from uuid import UUID

from medcert.core.metrics import CERTIFICATE_ISSUANCES, CERTIFICATE_NUMBER_COLLISIONS
from medcert.models.audit import (
    GENERATE_CERTIFICATE,
    REISSUE_CERTIFICATE,
    ActivityRecord,
)
from medcert.models.certificate import Certificate, IssuanceOutcome, IssuanceResult
from medcert.repos.audit_repo import AuditSink
from medcert.repos.certificate_repo import CertificateLedger
from medcert.repos.registration_repo import RegistrationDirectory
from medcert.services.activity import record_activity
from medcert.services.certificate_number import CertificateNumberGenerator
from medcert.services.errors import (
    DuplicateCertificateNumber,
    DuplicateRegistration,
    EncodingFailure,
    IssuanceFailed,
    NotEligible,
    RegistrationNotFound,
)
from medcert.services.verification_token import (
    VerificationToken,
    VerificationTokenEncoder,
)

logger = logging.getLogger(__name__)


class IssuanceService:
    def __init__(
        self,
        *,
        ledger: CertificateLedger,
        directory: RegistrationDirectory,
        audit: AuditSink,
        generator: CertificateNumberGenerator,
        encoder: VerificationTokenEncoder,
        base_url: str,
        max_attempts: int = 5,
    ) -> None:
        self._ledger = ledger
        self._directory = directory
        self._audit = audit
        self._generator = generator
        self._encoder = encoder
        self._base_url = base_url
        self._max_attempts = max_attempts

    async def issue(
        self, registration_id: UUID, actor_id: UUID | None
    ) -> IssuanceResult:
        registration = await self._directory.get_registration(registration_id)
        if registration is None:
            raise RegistrationNotFound(str(registration_id))
        if not registration.eligible:
            logger.warning(
                "Issuance refused registration=%s status=%s attended=%s",
                registration_id,
                registration.status,
                registration.attendance_confirmed,
            )
            raise NotEligible(str(registration_id))

        try:
            result = await self._issue(registration_id)
        except (IssuanceFailed, EncodingFailure):
            CERTIFICATE_ISSUANCES.labels(outcome="failed").inc()
            raise

        CERTIFICATE_ISSUANCES.labels(outcome=result.outcome.value).inc()
        if result.outcome is not IssuanceOutcome.ALREADY_ACTIVE:
            action = (
                GENERATE_CERTIFICATE
                if result.outcome is IssuanceOutcome.CREATED
                else REISSUE_CERTIFICATE
            )
            await record_activity(
                self._audit,
                ActivityRecord(
                    actor_id=actor_id,
                    action=action,
                    resource_id=result.certificate.id,
                    details={
                        "certificate_number": result.certificate.certificate_number,
                        "registration_id": str(registration_id),
                    },
                ),
            )
        logger.info(
            "Certificate %s registration=%s number=%s",
            result.outcome.value,
            registration_id,
            result.certificate.certificate_number,
        extra={
            "certificate_number": result.certificate.certificate_number,
            "actor_id": actor_id,
        },
        )
        return result

    async def _issue(self, registration_id: UUID) -> IssuanceResult:
        for attempt in range(1, self._max_attempts + 1):
            existing = await self._ledger.find_by_registration(registration_id)
            if existing is not None:
                result = await self._from_existing(existing)
                if result is not None:
                    return result
                continue  # lost a reissue race; re-read

            number = self._generator.generate()
            token = await self._render(number)
            try:
                cert = await self._ledger.insert(registration_id, number, token)
            except DuplicateRegistration:
                logger.info(
                    "Concurrent issuance for registration=%s; using existing row",
                    registration_id,
                )
                continue
            except DuplicateCertificateNumber:
                CERTIFICATE_NUMBER_COLLISIONS.inc()
                logger.warning(
                    "Certificate number collision number=%s attempt=%d/%d",
                    number,
                    attempt,
                    self._max_attempts,
                )
                continue
            return IssuanceResult(IssuanceOutcome.CREATED, cert)

        logger.error(
            "Issuance gave up after %d attempts registration=%s",
            self._max_attempts,
            registration_id,
        )
        raise IssuanceFailed(str(registration_id))

    async def _from_existing(self, existing: Certificate) -> IssuanceResult | None:
        if existing.is_active:
            return IssuanceResult(IssuanceOutcome.ALREADY_ACTIVE, existing)

        token = await self._render(existing.certificate_number)
        reissued = await self._ledger.reissue(existing.id, token)
        if reissued is None:
            return None
        return IssuanceResult(IssuanceOutcome.REISSUED, reissued)

    async def _render(self, number: str) -> VerificationToken:
        # QR rendering is CPU work; keep it off the event loop.
        return await asyncio.to_thread(self._encoder.encode, number, self._base_url)
