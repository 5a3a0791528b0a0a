"""PostgreSQL implementation of CertificateLedger."""

from __future__ import annotations

from datetime import UTC, datetime
from uuid import UUID, uuid4

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from medcert.db.tables import CertificateRow
from medcert.models.certificate import Certificate, CertificatePage
from medcert.services.errors import (
    AlreadyRevoked,
    CertificateNotFound,
    DuplicateCertificateNumber,
    DuplicateRegistration,
)
from medcert.services.verification_token import VerificationToken


class PgCertificateLedger:
    """Satisfies the CertificateLedger Protocol using PostgreSQL.

    Uniqueness of registration_id and certificate_number comes from the
    table's unique constraints; revoke and reissue are conditional UPDATEs,
    so concurrent callers cannot both win.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, certificate_id: UUID) -> Certificate | None:
        return await self._one(CertificateRow.id == certificate_id)

    async def find_by_registration(self, registration_id: UUID) -> Certificate | None:
        return await self._one(CertificateRow.registration_id == registration_id)

    async def find_by_number(self, certificate_number: str) -> Certificate | None:
        return await self._one(CertificateRow.certificate_number == certificate_number)

    async def insert(
        self, registration_id: UUID, certificate_number: str, token: VerificationToken
    ) -> Certificate:
        now = datetime.now(UTC)
        row = CertificateRow(
            id=uuid4(),
            registration_id=registration_id,
            certificate_number=certificate_number,
            verification_url=token.url,
            qr_code=token.data_url,
            issued_at=now,
            revoked=False,
            created_at=now,
            updated_at=now,
        )
        try:
            # SAVEPOINT: a unique violation must not abort the request's
            # outer transaction.
            async with self._session.begin_nested():
                self._session.add(row)
                await self._session.flush()
        except IntegrityError as e:
            if await self.find_by_registration(registration_id) is not None:
                raise DuplicateRegistration(str(registration_id)) from e
            raise DuplicateCertificateNumber(certificate_number) from e
        return _row_to_certificate(row)

    async def reissue(
        self, certificate_id: UUID, token: VerificationToken
    ) -> Certificate | None:
        now = datetime.now(UTC)
        stmt = (
            update(CertificateRow)
            .where(CertificateRow.id == certificate_id)
            .where(CertificateRow.revoked.is_(True))
            .values(
                verification_url=token.url,
                qr_code=token.data_url,
                issued_at=now,
                revoked=False,
                revoked_reason=None,
                revoked_at=None,
                revoked_by_id=None,
                updated_at=now,
            )
            .returning(CertificateRow)
            .execution_options(populate_existing=True)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is not None:
            return _row_to_certificate(row)

        if await self.get(certificate_id) is None:
            raise CertificateNotFound(str(certificate_id))
        return None  # a concurrent reissue got there first

    async def revoke(
        self, certificate_id: UUID, reason: str, actor_id: UUID
    ) -> Certificate:
        now = datetime.now(UTC)
        stmt = (
            update(CertificateRow)
            .where(CertificateRow.id == certificate_id)
            .where(CertificateRow.revoked.is_(False))
            .values(
                revoked=True,
                revoked_reason=reason,
                revoked_at=now,
                revoked_by_id=actor_id,
                updated_at=now,
            )
            .returning(CertificateRow)
            .execution_options(populate_existing=True)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is not None:
            return _row_to_certificate(row)

        current = await self.get(certificate_id)
        if current is None:
            raise CertificateNotFound(str(certificate_id))
        raise AlreadyRevoked(current.certificate_number)

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
        conditions = []
        if search and search.strip():
            pattern = f"%{escape_like(search.strip())}%"
            by_number = CertificateRow.certificate_number.ilike(pattern, escape="\\")
            if search_registration_ids:
                conditions.append(
                    or_(
                        by_number,
                        CertificateRow.registration_id.in_(search_registration_ids),
                    )
                )
            else:
                conditions.append(by_number)
        if revoked is not None:
            conditions.append(CertificateRow.revoked.is_(revoked))
        if registration_ids is not None:
            conditions.append(CertificateRow.registration_id.in_(registration_ids))

        count_stmt = select(func.count()).select_from(CertificateRow).where(*conditions)
        total = (await self._session.execute(count_stmt)).scalar_one()

        stmt = (
            select(CertificateRow)
            .where(*conditions)
            .order_by(CertificateRow.issued_at.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return CertificatePage(
            items=[_row_to_certificate(r) for r in rows],
            total=total,
            page=page,
            limit=limit,
        )

    async def _one(self, condition) -> Certificate | None:
        stmt = (
            select(CertificateRow)
            .where(condition)
            .execution_options(populate_existing=True)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_certificate(row)


def escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _row_to_certificate(row: CertificateRow) -> Certificate:
    return Certificate(
        id=row.id,
        registration_id=row.registration_id,
        certificate_number=row.certificate_number,
        verification_url=row.verification_url,
        qr_code=row.qr_code,
        issued_at=row.issued_at,
        revoked=row.revoked,
        revoked_reason=row.revoked_reason,
        revoked_at=row.revoked_at,
        revoked_by_id=row.revoked_by_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
