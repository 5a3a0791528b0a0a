from __future__ import annotations

import os
from datetime import UTC, datetime
from uuid import UUID, uuid4

# Settings are read once at import; pin a hermetic environment first.
os.environ["APP_ENV"] = "test"
os.environ.pop("DATABASE_URL", None)
os.environ.pop("REDIS_URL", None)
os.environ.pop("JWT_PUBLIC_KEY", None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from medcert.api.providers import (  # noqa: E402
    IN_MEMORY_AUDIT,
    IN_MEMORY_DIRECTORY,
    IN_MEMORY_LEDGER,
)
from medcert.api.ratelimit import _fallback_limiter, _rate_limiter  # noqa: E402
from medcert.main import app  # noqa: E402
from medcert.models.registration import Event, Holder, Registration  # noqa: E402
from medcert.services import token_service  # noqa: E402

OPERATOR_PERMISSIONS = [
    "certificate:generate",
    "certificate:read",
    "certificate:revoke",
]


@pytest.fixture(autouse=True)
def reset_stores() -> None:
    """Empty the in-memory ledger, directory and audit log between tests."""
    IN_MEMORY_LEDGER.clear()
    IN_MEMORY_DIRECTORY.clear()
    IN_MEMORY_AUDIT.clear()


@pytest.fixture(autouse=True)
def reset_rate_limiter() -> None:
    """Clear rate limit buckets between tests so limits don't bleed."""
    if hasattr(_rate_limiter, "_buckets"):
        _rate_limiter._buckets.clear()  # type: ignore[union-attr]
    _fallback_limiter._buckets.clear()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(
    user_id: UUID | None = None,
    roles: list[str] | None = None,
    permissions: list[str] | None = None,
) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(
        sub=str(user_id or uuid4()), roles=roles, permissions=permissions
    )


def auth(token: str | None) -> dict[str, str]:
    if token is None:
        return {}
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def operator_token() -> str:
    """Token for an event organizer allowed to issue, read and revoke."""
    return mint_token(roles=["organizer"], permissions=OPERATOR_PERMISSIONS)


@pytest.fixture
def admin_token() -> str:
    return mint_token(roles=["super_admin"])


@pytest.fixture
def attendee_token() -> str:
    """Authenticated, but with no certificate permissions."""
    return mint_token(roles=["attendee"])


# ---------------------------------------------------------------------------
# Directory seeding helpers
# ---------------------------------------------------------------------------


def seed_registration(
    *,
    status: str = "approved",
    attendance_confirmed: bool = True,
    user_id: UUID | None = None,
    event: Event | None = None,
) -> Registration:
    """Add an event, a holder and a registration to the in-memory directory."""
    if event is None:
        event = Event(
            id=uuid4(),
            title="Advanced Cardiac Life Support",
            start_date=datetime(2024, 5, 2, 9, tzinfo=UTC),
            end_date=datetime(2024, 5, 3, 17, tzinfo=UTC),
            location="Main Auditorium",
        )
    IN_MEMORY_DIRECTORY.add_event(event)

    user_id = user_id or uuid4()
    if user_id not in IN_MEMORY_DIRECTORY._holders:
        IN_MEMORY_DIRECTORY.add_holder(
            Holder(
                id=user_id,
                full_name="Dr. Sam Okafor",
                email=f"sam-{user_id.hex[:6]}@example.org",
                organization="Regional Medical Center",
                position="Resident",
            )
        )

    registration = Registration(
        id=uuid4(),
        event_id=event.id,
        user_id=user_id,
        status=status,
        attendance_confirmed=attendance_confirmed,
    )
    IN_MEMORY_DIRECTORY.add_registration(registration)
    return registration
