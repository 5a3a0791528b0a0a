from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID, uuid4

from medcert.models.certificate import Certificate, CertificatePage
from medcert.services.errors import (
    AlreadyRevoked,
    CertificateNotFound,
    DuplicateCertificateNumber,
    DuplicateRegistration,
)
from medcert.services.verification_token import VerificationToken


class CertificateLedger(Protocol):
    async def get(self, certificate_id: UUID) -> Certificate | None: ...
    async def find_by_registration(
        self, registration_id: UUID
    ) -> Certificate | None: ...
    async def find_by_number(self, certificate_number: str) -> Certificate | None: ...
    async def insert(
        self, registration_id: UUID, certificate_number: str, token: VerificationToken
    ) -> Certificate: ...
    async def reissue(
        self, certificate_id: UUID, token: VerificationToken
    ) -> Certificate | None: ...
    async def revoke(
        self, certificate_id: UUID, reason: str, actor_id: UUID
    ) -> Certificate: ...
    async def list(
        self,
        page: int = 1,
        limit: int = 10,
        *,
        search: str | None = None,
        search_registration_ids: set[UUID] | None = None,
        revoked: bool | None = None,
        registration_ids: set[UUID] | None = None,
    ) -> CertificatePage: ...


class InMemoryCertificateLedger:
    """Single-process ledger.

    The lock makes each uniqueness check and its write one step, the same
    guarantee the unique constraints give the Postgres ledger.
    """

    def __init__(self) -> None:
        self._by_id: dict[UUID, Certificate] = {}
        self._by_registration: dict[UUID, UUID] = {}
        self._by_number: dict[str, UUID] = {}
        self._lock = asyncio.Lock()

    def clear(self) -> None:
        self._by_id.clear()
        self._by_registration.clear()
        self._by_number.clear()
        self._lock = asyncio.Lock()

    async def get(self, certificate_id: UUID) -> Certificate | None:
        return self._by_id.get(certificate_id)

    async def find_by_registration(self, registration_id: UUID) -> Certificate | None:
        cert_id = self._by_registration.get(registration_id)
        return self._by_id.get(cert_id) if cert_id is not None else None

    async def find_by_number(self, certificate_number: str) -> Certificate | None:
        cert_id = self._by_number.get(certificate_number)
        return self._by_id.get(cert_id) if cert_id is not None else None

    async def insert(
        self, registration_id: UUID, certificate_number: str, token: VerificationToken
    ) -> Certificate:
        async with self._lock:
            if registration_id in self._by_registration:
                raise DuplicateRegistration(str(registration_id))
            if certificate_number in self._by_number:
                raise DuplicateCertificateNumber(certificate_number)

            now = datetime.now(UTC)
            cert = Certificate(
                id=uuid4(),
                registration_id=registration_id,
                certificate_number=certificate_number,
                verification_url=token.url,
                qr_code=token.data_url,
                issued_at=now,
                created_at=now,
                updated_at=now,
            )
            self._by_id[cert.id] = cert
            self._by_registration[registration_id] = cert.id
            self._by_number[certificate_number] = cert.id
            return cert

    async def reissue(
        self, certificate_id: UUID, token: VerificationToken
    ) -> Certificate | None:
        async with self._lock:
            cert = self._by_id.get(certificate_id)
            if cert is None:
                raise CertificateNotFound(str(certificate_id))
            if not cert.revoked:
                return None

            now = datetime.now(UTC)
            updated = replace(
                cert,
                verification_url=token.url,
                qr_code=token.data_url,
                issued_at=now,
                revoked=False,
                revoked_reason=None,
                revoked_at=None,
                revoked_by_id=None,
                updated_at=now,
            )
            self._by_id[certificate_id] = updated
            return updated

    async def revoke(
        self, certificate_id: UUID, reason: str, actor_id: UUID
    ) -> Certificate:
        async with self._lock:
            cert = self._by_id.get(certificate_id)
            if cert is None:
                raise CertificateNotFound(str(certificate_id))
            if cert.revoked:
                raise AlreadyRevoked(cert.certificate_number)

            now = datetime.now(UTC)
            updated = replace(
                cert,
                revoked=True,
                revoked_reason=reason,
                revoked_at=now,
                revoked_by_id=actor_id,
                updated_at=now,
            )
            self._by_id[certificate_id] = updated
            return updated

    async def list(
        self,
        page: int = 1,
        limit: int = 10,
        *,
        search: str | None = None,
        search_registration_ids: set[UUID] | None = None,
        revoked: bool | None = None,
        registration_ids: set[UUID] | None = None,
    ) -> CertificatePage:
        needle = search.strip().casefold() if search else ""
        also = search_registration_ids or set()
        matches = [
            c
            for c in self._by_id.values()
            if (
                not needle
                or needle in c.certificate_number.casefold()
                or c.registration_id in also
            )
            and (revoked is None or c.revoked == revoked)
            and (registration_ids is None or c.registration_id in registration_ids)
        ]
        matches.sort(key=lambda c: c.issued_at, reverse=True)
        offset = (page - 1) * limit
        return CertificatePage(
            items=matches[offset : offset + limit],
            total=len(matches),
            page=page,
            limit=limit,
        )
