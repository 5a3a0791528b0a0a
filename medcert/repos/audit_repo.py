from __future__ import annotations

from typing import Protocol

from medcert.models.audit import ActivityRecord


class AuditSink(Protocol):
    async def record(self, entry: ActivityRecord) -> None: ...


class InMemoryAuditSink:
    def __init__(self) -> None:
        self.entries: list[ActivityRecord] = []

    def clear(self) -> None:
        self.entries.clear()

    async def record(self, entry: ActivityRecord) -> None:
        self.entries.append(entry)
