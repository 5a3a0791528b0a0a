from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Certificate:
    """An issued attendance certificate, one per event registration.

    The revocation fields are either all set (revoked) or all None.
    """

    id: UUID
    registration_id: UUID
    certificate_number: str
    verification_url: str
    qr_code: str  # data:image/png;base64,...
    issued_at: datetime
    revoked: bool = False
    revoked_reason: str | None = None
    revoked_at: datetime | None = None
    revoked_by_id: UUID | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return not self.revoked


class IssuanceOutcome(enum.StrEnum):
    CREATED = "created"
    ALREADY_ACTIVE = "already_active"
    REISSUED = "reissued"


@dataclass(frozen=True, slots=True)
class IssuanceResult:
    outcome: IssuanceOutcome
    certificate: Certificate


@dataclass(frozen=True, slots=True)
class CertificatePage:
    items: list[Certificate]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return -(-self.total // self.limit) if self.limit else 0
