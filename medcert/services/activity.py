from __future__ import annotations

import logging

from medcert.models.audit import ActivityRecord
from medcert.repos.audit_repo import AuditSink

logger = logging.getLogger(__name__)


async def record_activity(audit: AuditSink, entry: ActivityRecord) -> None:
    """Write an audit entry; a failing sink is logged, never raised."""
    try:
        await audit.record(entry)
    except Exception:
        logger.warning(
            "Audit record dropped action=%s resource=%s",
            entry.action,
            entry.resource_id,
            exc_info=True,
        )
