from __future__ import annotations

from typing import Protocol
from uuid import UUID

from medcert.models.registration import Event, Holder, Registration


class RegistrationDirectory(Protocol):
    """Read access to registrations and the records they point at."""

    async def get_registration(self, registration_id: UUID) -> Registration | None: ...
    async def get_event(self, event_id: UUID) -> Event | None: ...
    async def get_holder(self, user_id: UUID) -> Holder | None: ...
    async def registration_ids_for_event(self, event_id: UUID) -> set[UUID]: ...
    async def registration_ids_for_user(self, user_id: UUID) -> set[UUID]: ...
    async def registration_ids_matching(self, text: str) -> set[UUID]: ...


class InMemoryRegistrationDirectory:
    def __init__(self) -> None:
        self._registrations: dict[UUID, Registration] = {}
        self._events: dict[UUID, Event] = {}
        self._holders: dict[UUID, Holder] = {}

    def clear(self) -> None:
        self._registrations.clear()
        self._events.clear()
        self._holders.clear()

    # Seeding (dev server and tests)

    def add_event(self, event: Event) -> None:
        self._events[event.id] = event

    def add_holder(self, holder: Holder) -> None:
        self._holders[holder.id] = holder

    def add_registration(self, registration: Registration) -> None:
        if registration.event_id not in self._events:
            raise KeyError("event not found")
        if registration.user_id not in self._holders:
            raise KeyError("user not found")
        self._registrations[registration.id] = registration

    # RegistrationDirectory

    async def get_registration(self, registration_id: UUID) -> Registration | None:
        return self._registrations.get(registration_id)

    async def get_event(self, event_id: UUID) -> Event | None:
        return self._events.get(event_id)

    async def get_holder(self, user_id: UUID) -> Holder | None:
        return self._holders.get(user_id)

    async def registration_ids_for_event(self, event_id: UUID) -> set[UUID]:
        return {r.id for r in self._registrations.values() if r.event_id == event_id}

    async def registration_ids_for_user(self, user_id: UUID) -> set[UUID]:
        return {r.id for r in self._registrations.values() if r.user_id == user_id}

    async def registration_ids_matching(self, text: str) -> set[UUID]:
        """Registrations whose holder name, holder email or event title
        contains `text`, ignoring case."""
        needle = text.strip().casefold()
        matched: set[UUID] = set()
        for r in self._registrations.values():
            holder = self._holders[r.user_id]
            event = self._events[r.event_id]
            fields = (holder.full_name, holder.email, event.title)
            if any(needle in f.casefold() for f in fields):
                matched.add(r.id)
        return matched
