"""Prometheus metrics tests.

The default registry is process-global and counters only go up, so every
assertion is on the delta around the action.
"""

from __future__ import annotations

from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from tests.conftest import auth, seed_registration


def _get_sample(name: str, labels: dict | None = None) -> float:
    value = REGISTRY.get_sample_value(name, labels=labels or {})
    return value if value is not None else 0.0


def test_request_counter_increments(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/health", "status_code": "200"}
    before = _get_sample("http_requests_total", labels)
    client.get("/health")
    after = _get_sample("http_requests_total", labels)
    assert after - before == 1


def test_request_duration_histogram_observes(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/health"}
    before = _get_sample("http_request_duration_seconds_count", labels)
    client.get("/health")
    after = _get_sample("http_request_duration_seconds_count", labels)
    assert after - before == 1


def test_endpoint_label_is_route_template(client: TestClient) -> None:
    labels = {
        "method": "GET",
        "endpoint": "/certificates/verify/{certificate_number}",
        "status_code": "200",
    }
    before = _get_sample("http_requests_total", labels)
    client.get("/certificates/verify/MEDEVENT-2405-AAAAAA")
    client.get("/certificates/verify/MEDEVENT-2405-BBBBBB")
    after = _get_sample("http_requests_total", labels)

    assert after - before == 2
    raw = {
        "method": "GET",
        "endpoint": "/certificates/verify/MEDEVENT-2405-AAAAAA",
        "status_code": "200",
    }
    assert _get_sample("http_requests_total", raw) == 0


def test_unmatched_paths_share_one_label(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "<unmatched>", "status_code": "404"}
    before = _get_sample("http_requests_total", labels)
    client.get("/no-such-route")
    after = _get_sample("http_requests_total", labels)
    assert after - before == 1


def test_metrics_endpoint_returns_prometheus_format(client: TestClient) -> None:
    client.get("/health")
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "http_requests_total" in resp.text
    assert "certificate_verifications_total" in resp.text


def test_metrics_endpoint_not_self_instrumented(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/metrics", "status_code": "200"}
    before = _get_sample("http_requests_total", labels)
    client.get("/metrics")
    client.get("/metrics")
    assert _get_sample("http_requests_total", labels) == before


def test_issuance_and_verification_counters(
    client: TestClient, operator_token: str
) -> None:
    reg = seed_registration()
    created_before = _get_sample("certificate_issuance_total", {"outcome": "created"})
    valid_before = _get_sample("certificate_verifications_total", {"result": "valid"})

    resp = client.post(
        f"/registrations/{reg.id}/certificate", headers=auth(operator_token)
    )
    number = resp.json()["certificate"]["certificate_number"]
    client.get(f"/certificates/verify/{number}")

    created_after = _get_sample("certificate_issuance_total", {"outcome": "created"})
    valid_after = _get_sample("certificate_verifications_total", {"result": "valid"})
    assert created_after - created_before == 1
    assert valid_after - valid_before == 1
