from __future__ import annotations

import logging
from uuid import UUID

from medcert.core.metrics import CERTIFICATE_REVOCATIONS
from medcert.models.audit import REVOKE_CERTIFICATE, ActivityRecord
from medcert.models.certificate import Certificate
from medcert.repos.audit_repo import AuditSink
from medcert.repos.certificate_repo import CertificateLedger
from medcert.services.activity import record_activity
from medcert.services.errors import AlreadyRevoked, ReasonRequired

logger = logging.getLogger(__name__)


class RevocationService:
    """Close a certificate's validity window.

    There is no undo; a revoked certificate becomes valid again only
    through reissue, which is a separate audited action.
    """

    def __init__(self, *, ledger: CertificateLedger, audit: AuditSink) -> None:
        self._ledger = ledger
        self._audit = audit

    async def revoke(
        self, certificate_id: UUID, actor_id: UUID, reason: str
    ) -> Certificate:
        reason = (reason or "").strip()
        if not reason:
            logger.warning("Revocation without reason rejected cert=%s", certificate_id)
            raise ReasonRequired("revocation reason must be non-empty")

        try:
            cert = await self._ledger.revoke(certificate_id, reason, actor_id)
        except AlreadyRevoked:
            logger.warning(
                "Double revocation attempt cert=%s actor=%s", certificate_id, actor_id
            )
            raise

        CERTIFICATE_REVOCATIONS.inc()
        logger.info(
            "Certificate revoked number=%s actor=%s",
            cert.certificate_number,
            actor_id,
            extra={
                "certificate_number": cert.certificate_number,
                "actor_id": actor_id,
            },
        )
        await record_activity(
            self._audit,
            ActivityRecord(
                actor_id=actor_id,
                action=REVOKE_CERTIFICATE,
                resource_id=cert.id,
                details={
                    "certificate_number": cert.certificate_number,
                    "reason": reason,
                },
            ),
        )
        return cert
