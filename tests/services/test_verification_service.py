from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from uuid import uuid4

import pytest
from prometheus_client import REGISTRY

from medcert.models.audit import VERIFY_CERTIFICATE
from medcert.models.registration import Event, Holder, Registration
from medcert.repos.audit_repo import InMemoryAuditSink
from medcert.repos.certificate_repo import InMemoryCertificateLedger
from medcert.repos.registration_repo import InMemoryRegistrationDirectory
from medcert.services.certificate_number import CertificateNumberGenerator
from medcert.services.verification_service import (
    NOT_FOUND,
    REVOKED,
    VerificationService,
)
from medcert.services.verification_token import VerificationTokenEncoder

NUMBER = "MEDEVENT-2405-Q7RT2X"


def _sample(name: str, labels: dict) -> float:
    value = REGISTRY.get_sample_value(name, labels=labels)
    return value if value is not None else 0.0


class _SpyLedger(InMemoryCertificateLedger):
    def __init__(self) -> None:
        super().__init__()
        self.lookups: list[str] = []

    async def find_by_number(self, certificate_number: str):
        self.lookups.append(certificate_number)
        return await super().find_by_number(certificate_number)


class _BrokenAudit:
    async def record(self, entry) -> None:
        raise ConnectionError("audit store unavailable")


def _setup(audit=None):
    ledger = _SpyLedger()
    directory = InMemoryRegistrationDirectory()
    audit = audit if audit is not None else InMemoryAuditSink()
    event = Event(
        id=uuid4(),
        title="Sepsis Management Symposium",
        start_date=datetime(2024, 5, 20, 8, tzinfo=UTC),
        end_date=datetime(2024, 5, 21, 16, tzinfo=UTC),
    )
    holder = Holder(
        id=uuid4(),
        full_name="Dr. Ana Silva",
        email="ana.silva@example.org",
        organization="St. Mary's Hospital",
        position="Intensivist",
    )
    registration = Registration(
        id=uuid4(),
        event_id=event.id,
        user_id=holder.id,
        status="approved",
        attendance_confirmed=True,
    )
    directory.add_event(event)
    directory.add_holder(holder)
    directory.add_registration(registration)

    token = VerificationTokenEncoder().encode(NUMBER, "http://localhost:8000")
    cert = asyncio.run(ledger.insert(registration.id, NUMBER, token))

    service = VerificationService(
        ledger=ledger,
        directory=directory,
        audit=audit,
        numbers=CertificateNumberGenerator("MEDEVENT"),
    )
    return service, ledger, audit, cert


def test_valid_certificate_returns_public_summary() -> None:
    service, _, audit, cert = _setup()

    result = asyncio.run(service.verify(NUMBER))

    assert result.valid is True
    assert result.reason is None
    assert result.certificate_number == NUMBER
    assert result.issued_at == cert.issued_at
    assert result.event is not None
    assert result.event.title == "Sepsis Management Symposium"
    assert result.holder is not None
    assert result.holder.full_name == "Dr. Ana Silva"
    assert result.holder.organization == "St. Mary's Hospital"
    assert not hasattr(result.holder, "email")

    (entry,) = audit.entries
    assert entry.action == VERIFY_CERTIFICATE
    assert entry.actor_id is None


def test_revoked_certificate_reports_reason() -> None:
    service, ledger, _, cert = _setup()
    asyncio.run(ledger.revoke(cert.id, "attendance record corrected", uuid4()))

    before = _sample("certificate_verifications_total", {"result": REVOKED})
    result = asyncio.run(service.verify(NUMBER))
    after = _sample("certificate_verifications_total", {"result": REVOKED})

    assert result.valid is False
    assert result.reason == REVOKED
    assert result.revoked_reason == "attendance record corrected"
    assert result.revoked_at is not None
    assert result.holder is None
    assert result.event is None
    assert after - before == 1


def test_unknown_number_is_not_found() -> None:
    service, ledger, _, _ = _setup()

    result = asyncio.run(service.verify("MEDEVENT-2405-000000"))

    assert result.valid is False
    assert result.reason == NOT_FOUND
    assert ledger.lookups == ["MEDEVENT-2405-000000"]


@pytest.mark.parametrize(
    "value",
    ["", "not-a-number", "medevent-2405-q7rt2x", "MEDEVENT-2405-Q7RT2X%00", "A" * 4096],
)
def test_malformed_input_never_reaches_ledger(value: str) -> None:
    service, ledger, audit, _ = _setup()

    result = asyncio.run(service.verify(value))

    assert result.valid is False
    assert result.reason == NOT_FOUND
    assert ledger.lookups == []
    assert audit.entries == []


def test_malformed_and_unknown_are_indistinguishable() -> None:
    service, _, _, _ = _setup()
    malformed = asyncio.run(service.verify("garbage"))
    unknown = asyncio.run(service.verify("MEDEVENT-2405-ZZZZZZ"))
    assert malformed == unknown


def test_audit_failure_does_not_block_verification() -> None:
    service, _, _, _ = _setup(audit=_BrokenAudit())
    result = asyncio.run(service.verify(NUMBER))
    assert result.valid is True
