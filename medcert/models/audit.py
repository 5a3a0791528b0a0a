from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

GENERATE_CERTIFICATE = "generate_certificate"
REISSUE_CERTIFICATE = "reissue_certificate"
REVOKE_CERTIFICATE = "revoke_certificate"
VERIFY_CERTIFICATE = "verify_certificate"


@dataclass(frozen=True, slots=True)
class ActivityRecord:
    """One audit-log entry.  actor_id is None for anonymous callers."""

    actor_id: UUID | None
    action: str
    resource_id: UUID
    details: dict[str, Any] = field(default_factory=dict)
    resource_type: str = "certificate"
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
