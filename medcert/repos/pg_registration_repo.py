"""PostgreSQL implementation of RegistrationDirectory."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from medcert.db.tables import EventRegistrationRow, EventRow, UserRow
from medcert.models.registration import Event, Holder, Registration
from medcert.repos.pg_certificate_repo import escape_like


class PgRegistrationDirectory:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_registration(self, registration_id: UUID) -> Registration | None:
        row = await self._session.get(EventRegistrationRow, registration_id)
        if row is None:
            return None
        return Registration(
            id=row.id,
            event_id=row.event_id,
            user_id=row.user_id,
            status=row.status,
            attendance_confirmed=row.attendance_confirmed,
        )

    async def get_event(self, event_id: UUID) -> Event | None:
        row = await self._session.get(EventRow, event_id)
        if row is None:
            return None
        return Event(
            id=row.id,
            title=row.title,
            start_date=row.start_date,
            end_date=row.end_date,
            location=row.location,
        )

    async def get_holder(self, user_id: UUID) -> Holder | None:
        row = await self._session.get(UserRow, user_id)
        if row is None:
            return None
        return Holder(
            id=row.id,
            full_name=row.full_name,
            email=row.email,
            organization=row.organization,
            position=row.position,
        )

    async def registration_ids_for_event(self, event_id: UUID) -> set[UUID]:
        stmt = select(EventRegistrationRow.id).where(
            EventRegistrationRow.event_id == event_id
        )
        return set((await self._session.execute(stmt)).scalars().all())

    async def registration_ids_for_user(self, user_id: UUID) -> set[UUID]:
        stmt = select(EventRegistrationRow.id).where(
            EventRegistrationRow.user_id == user_id
        )
        return set((await self._session.execute(stmt)).scalars().all())

    async def registration_ids_matching(self, text: str) -> set[UUID]:
        pattern = f"%{escape_like(text.strip())}%"
        stmt = (
            select(EventRegistrationRow.id)
            .join(UserRow, UserRow.id == EventRegistrationRow.user_id)
            .join(EventRow, EventRow.id == EventRegistrationRow.event_id)
            .where(
                or_(
                    UserRow.full_name.ilike(pattern, escape="\\"),
                    UserRow.email.ilike(pattern, escape="\\"),
                    EventRow.title.ilike(pattern, escape="\\"),
                )
            )
        )
        return set((await self._session.execute(stmt)).scalars().all())
