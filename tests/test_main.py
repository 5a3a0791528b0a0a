from __future__ import annotations

from fastapi.testclient import TestClient

from medcert.api.providers import (
    DEMO_REGISTRATION_ID,
    IN_MEMORY_DIRECTORY,
    seed_demo_data,
)
from medcert.main import app
from tests.conftest import auth


def test_expected_routes_registered() -> None:
    paths = {getattr(r, "path", None) for r in app.routes}
    assert {
        "/registrations/{registration_id}/certificate",
        "/certificates",
        "/certificates/{certificate_id}",
        "/certificates/verify/{certificate_number}",
        "/certificates/{certificate_id}/revoke",
        "/user/certificates",
        "/health",
        "/ready",
        "/metrics",
    } <= paths


def test_docs_disabled_outside_dev() -> None:
    with TestClient(app) as client:
        assert client.get("/docs").status_code == 404


def test_lifespan_does_not_seed_outside_dev() -> None:
    with TestClient(app) as client:
        assert client.get("/health").status_code == 200
    assert IN_MEMORY_DIRECTORY._registrations == {}


def test_demo_registration_is_issuable(client: TestClient, admin_token: str) -> None:
    seed_demo_data()
    resp = client.post(
        f"/registrations/{DEMO_REGISTRATION_ID}/certificate", headers=auth(admin_token)
    )
    assert resp.status_code == 201
