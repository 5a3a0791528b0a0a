"""Per-request wiring of stores and services.

Without DATABASE_URL every request shares the module-level in-memory
stores.  With it, each request gets one AsyncSession shared by the
ledger, the directory and the audit sink, committed when the handler
returns and rolled back when it raises.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Annotated
from uuid import UUID

from fastapi import Depends

from medcert.core.config import SETTINGS
from medcert.db.engine import async_session_factory, session_scope
from medcert.models.registration import Event, Holder, Registration
from medcert.repos.audit_repo import AuditSink, InMemoryAuditSink
from medcert.repos.certificate_repo import CertificateLedger, InMemoryCertificateLedger
from medcert.repos.pg_audit_repo import PgAuditSink
from medcert.repos.pg_certificate_repo import PgCertificateLedger
from medcert.repos.pg_registration_repo import PgRegistrationDirectory
from medcert.repos.registration_repo import (
    InMemoryRegistrationDirectory,
    RegistrationDirectory,
)
from medcert.services.certificate_number import CertificateNumberGenerator
from medcert.services.issuance_service import IssuanceService
from medcert.services.revocation_service import RevocationService
from medcert.services.verification_service import VerificationService
from medcert.services.verification_token import VerificationTokenEncoder

logger = logging.getLogger(__name__)

IN_MEMORY_LEDGER = InMemoryCertificateLedger()
IN_MEMORY_DIRECTORY = InMemoryRegistrationDirectory()
IN_MEMORY_AUDIT = InMemoryAuditSink()

NUMBER_GENERATOR = CertificateNumberGenerator(SETTINGS.certificate_prefix)
TOKEN_ENCODER = VerificationTokenEncoder(size_px=SETTINGS.qr_code_size)


@dataclass(frozen=True, slots=True)
class Stores:
    ledger: CertificateLedger
    directory: RegistrationDirectory
    audit: AuditSink


async def get_stores() -> AsyncGenerator[Stores, None]:
    if async_session_factory is None:
        yield Stores(
            ledger=IN_MEMORY_LEDGER,
            directory=IN_MEMORY_DIRECTORY,
            audit=IN_MEMORY_AUDIT,
        )
        return

    async with session_scope() as session:
        yield Stores(
            ledger=PgCertificateLedger(session),
            directory=PgRegistrationDirectory(session),
            audit=PgAuditSink(session),
        )


StoresDep = Annotated[Stores, Depends(get_stores)]


def get_issuance_service(stores: StoresDep) -> IssuanceService:
    return IssuanceService(
        ledger=stores.ledger,
        directory=stores.directory,
        audit=stores.audit,
        generator=NUMBER_GENERATOR,
        encoder=TOKEN_ENCODER,
        base_url=SETTINGS.public_base_url,
        max_attempts=SETTINGS.max_issue_attempts,
    )


def get_verification_service(stores: StoresDep) -> VerificationService:
    return VerificationService(
        ledger=stores.ledger,
        directory=stores.directory,
        audit=stores.audit,
        numbers=NUMBER_GENERATOR,
    )


def get_revocation_service(stores: StoresDep) -> RevocationService:
    return RevocationService(ledger=stores.ledger, audit=stores.audit)


# Fixed ids so the dev server can be exercised with curl.
DEMO_EVENT_ID = UUID("5b7c0a8e-0d1e-4c51-9a3a-0e6f4c1d2a01")
DEMO_USER_ID = UUID("5b7c0a8e-0d1e-4c51-9a3a-0e6f4c1d2a02")
DEMO_REGISTRATION_ID = UUID("5b7c0a8e-0d1e-4c51-9a3a-0e6f4c1d2a03")


def seed_demo_data() -> None:
    """Populate the in-memory directory with one eligible registration."""
    IN_MEMORY_DIRECTORY.add_event(
        Event(
            id=DEMO_EVENT_ID,
            title="Emergency Airway Management Workshop",
            start_date=datetime(2024, 3, 14, 9, tzinfo=UTC),
            end_date=datetime(2024, 3, 15, 17, tzinfo=UTC),
            location="Training Center, Hall B",
        )
    )
    IN_MEMORY_DIRECTORY.add_holder(
        Holder(
            id=DEMO_USER_ID,
            full_name="Dr. Dana Reyes",
            email="dana.reyes@example.org",
            organization="City General Hospital",
            position="Attending Physician",
        )
    )
    IN_MEMORY_DIRECTORY.add_registration(
        Registration(
            id=DEMO_REGISTRATION_ID,
            event_id=DEMO_EVENT_ID,
            user_id=DEMO_USER_ID,
            status="approved",
            attendance_confirmed=True,
        )
    )
    logger.info("Seeded demo registration=%s", DEMO_REGISTRATION_ID)
