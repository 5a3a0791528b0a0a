"""Public certificate verification.

Anyone holding a certificate number (typed in or scanned from the QR code)
may ask whether it is valid.  Every negative answer has the same shape;
malformed numbers and unknown numbers are both "not_found", and malformed
input is rejected before any storage lookup.  Revocation reasons are
operator-written and disclosed as-is.

The only write on this path is the best-effort audit entry; validity is
read from the ledger on every call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime

from medcert.core.metrics import CERTIFICATE_VERIFICATIONS
from medcert.models.audit import VERIFY_CERTIFICATE, ActivityRecord
from medcert.repos.audit_repo import AuditSink
from medcert.repos.certificate_repo import CertificateLedger
from medcert.repos.registration_repo import RegistrationDirectory
from medcert.services.activity import record_activity
from medcert.services.certificate_number import CertificateNumberGenerator

logger = logging.getLogger(__name__)

NOT_FOUND = "not_found"
REVOKED = "revoked"


@dataclass(frozen=True, slots=True)
class EventSummary:
    title: str
    start_date: date | datetime
    end_date: date | datetime


@dataclass(frozen=True, slots=True)
class HolderSummary:
    """Publicly disclosable holder fields.  No contact details."""

    full_name: str
    organization: str | None
    position: str | None


@dataclass(frozen=True, slots=True)
class VerificationResult:
    valid: bool
    reason: str | None = None
    certificate_number: str | None = None
    issued_at: datetime | None = None
    event: EventSummary | None = None
    holder: HolderSummary | None = None
    revoked_at: datetime | None = None
    revoked_reason: str | None = None


_NOT_FOUND_RESULT = VerificationResult(valid=False, reason=NOT_FOUND)


class VerificationService:
    def __init__(
        self,
        *,
        ledger: CertificateLedger,
        directory: RegistrationDirectory,
        audit: AuditSink,
        numbers: CertificateNumberGenerator,
    ) -> None:
        self._ledger = ledger
        self._directory = directory
        self._audit = audit
        self._numbers = numbers

    async def verify(self, certificate_number: str) -> VerificationResult:
        if not self._numbers.is_well_formed(certificate_number):
            CERTIFICATE_VERIFICATIONS.labels(result=NOT_FOUND).inc()
            logger.info("Verification rejected malformed number")
            return _NOT_FOUND_RESULT

        cert = await self._ledger.find_by_number(certificate_number)
        if cert is None:
            CERTIFICATE_VERIFICATIONS.labels(result=NOT_FOUND).inc()
            logger.info(
                "Verification miss number=%s",
                certificate_number,
                extra={"certificate_number": certificate_number},
            )
            return _NOT_FOUND_RESULT

        if cert.revoked:
            CERTIFICATE_VERIFICATIONS.labels(result=REVOKED).inc()
            logger.info(
                "Verification of revoked number=%s",
                certificate_number,
                extra={"certificate_number": certificate_number},
            )
            return VerificationResult(
                valid=False,
                reason=REVOKED,
                revoked_at=cert.revoked_at,
                revoked_reason=cert.revoked_reason,
            )

        event_summary = None
        holder_summary = None
        registration = await self._directory.get_registration(cert.registration_id)
        if registration is not None:
            event = await self._directory.get_event(registration.event_id)
            if event is not None:
                event_summary = EventSummary(
                    title=event.title,
                    start_date=event.start_date,
                    end_date=event.end_date,
                )
            holder = await self._directory.get_holder(registration.user_id)
            if holder is not None:
                holder_summary = HolderSummary(
                    full_name=holder.full_name,
                    organization=holder.organization,
                    position=holder.position,
                )
        else:
            logger.warning(
                "Valid certificate %s points at missing registration=%s",
                cert.certificate_number,
                cert.registration_id,
            )

        CERTIFICATE_VERIFICATIONS.labels(result="valid").inc()
        await record_activity(
            self._audit,
            ActivityRecord(
                actor_id=None,
                action=VERIFY_CERTIFICATE,
                resource_id=cert.id,
                details={"certificate_number": cert.certificate_number},
            ),
        )
        return VerificationResult(
            valid=True,
            certificate_number=cert.certificate_number,
            issued_at=cert.issued_at,
            event=event_summary,
            holder=holder_summary,
        )
