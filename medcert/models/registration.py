"""Read-only views of the platform records a certificate is joined to.

Registrations, events and users are owned by the event-management side of
the platform; this service only reads them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Registration:
    id: UUID
    event_id: UUID
    user_id: UUID
    status: str = "pending"  # pending|approved|rejected
    attendance_confirmed: bool = False

    @property
    def eligible(self) -> bool:
        """A certificate may be issued for approved, attended registrations."""
        return self.status == "approved" and self.attendance_confirmed


@dataclass(frozen=True, slots=True)
class Event:
    id: UUID
    title: str
    start_date: datetime
    end_date: datetime
    location: str = ""


@dataclass(frozen=True, slots=True)
class Holder:
    id: UUID
    full_name: str
    email: str
    organization: str | None = None
    position: str | None = None
