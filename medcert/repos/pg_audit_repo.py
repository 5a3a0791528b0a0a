"""PostgreSQL implementation of AuditSink (activity_logs table)."""

from __future__ import annotations

from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from medcert.db.tables import ActivityLogRow
from medcert.models.audit import ActivityRecord


class PgAuditSink:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def record(self, entry: ActivityRecord) -> None:
        # Own SAVEPOINT so a failed audit insert leaves the request's
        # certificate writes intact.
        async with self._session.begin_nested():
            self._session.add(
                ActivityLogRow(
                    id=uuid4(),
                    user_id=entry.actor_id,
                    action=entry.action,
                    resource_type=entry.resource_type,
                    resource_id=entry.resource_id,
                    details=entry.details,
                    created_at=entry.created_at,
                )
            )
            await self._session.flush()
