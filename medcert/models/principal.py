from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

SUPER_ADMIN_ROLE = "super_admin"
ANONYMOUS_ROLE = "anonymous"

# What a caller without a bearer token may do.
ANONYMOUS_PERMISSIONS: frozenset[str] = frozenset({"certificate:verify"})


@dataclass(frozen=True, slots=True)
class Principal:
    """Caller identity resolved once per request.

    Authenticated callers come from a validated JWT (sub, roles,
    permissions).  Callers without a token are the anonymous principal,
    which is a regular principal holding ANONYMOUS_PERMISSIONS, so every
    route goes through the same permission check.
    """

    user_id: UUID | None
    roles: frozenset[str]
    permissions: frozenset[str]

    @staticmethod
    def anonymous() -> Principal:
        return Principal(
            user_id=None,
            roles=frozenset({ANONYMOUS_ROLE}),
            permissions=ANONYMOUS_PERMISSIONS,
        )

    @property
    def is_anonymous(self) -> bool:
        return self.user_id is None

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def has_permission(self, permission: str) -> bool:
        if self.has_role(SUPER_ADMIN_ROLE):
            return True
        return permission in self.permissions or permission in ANONYMOUS_PERMISSIONS
