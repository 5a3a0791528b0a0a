"""Prometheus metrics inventory for medcert-service.

Every metric the service exports is declared here; the modules that own
the behavior import and increment them.  HTTP metrics are fed by
MetricsMiddleware, certificate metrics by the services.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

RATE_LIMIT_HITS = Counter(
    "rate_limit_hits_total",
    "Requests rejected by rate limiting (429s)",
    ["key_type"],  # user|ip
)

# ---------------------------------------------------------------------------
# Certificates
# ---------------------------------------------------------------------------

CERTIFICATE_ISSUANCES = Counter(
    "certificate_issuance_total",
    "Certificate issuance calls by outcome",
    ["outcome"],  # created|already_active|reissued|failed
)

CERTIFICATE_NUMBER_COLLISIONS = Counter(
    "certificate_number_collisions_total",
    "Generated certificate numbers rejected by the ledger as duplicates",
)

CERTIFICATE_VERIFICATIONS = Counter(
    "certificate_verifications_total",
    "Public verification lookups by result",
    ["result"],  # valid|revoked|not_found
)

CERTIFICATE_REVOCATIONS = Counter(
    "certificate_revocations_total",
    "Certificates revoked",
)
