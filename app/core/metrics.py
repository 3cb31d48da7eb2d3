"""Prometheus metric inventory for the service.

HTTP-level metrics are fed by MetricsMiddleware; the install-flow metrics
are incremented where the flow decides an outcome (app/api/shopify.py and
app/services/shopify_client.py).

Useful queries:
  rate(shopify_callbacks_total{result="hmac_invalid"}[5m])
    a spike means forged or mangled callbacks are arriving
  rate(shopify_upstream_requests_total{outcome!="ok"}[5m])
    the platform (or our network path to it) is failing
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
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
    # The callback makes two upstream round-trips, so the tail is longer
    # than a typical API.
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Install flow
# ---------------------------------------------------------------------------

INSTALLS_STARTED = Counter(
    "shopify_installs_started_total",
    "Install redirects issued to the platform authorization page",
)

CALLBACKS = Counter(
    "shopify_callbacks_total",
    "OAuth callbacks by outcome",
    # state_mismatch | hmac_invalid | missing_params | state_replayed |
    # upstream_error | success
    ["result"],
)

UPSTREAM_REQUESTS = Counter(
    "shopify_upstream_requests_total",
    "Outbound calls to the platform by call and outcome",
    ["call", "outcome"],  # call: access_token|shop_data, outcome: ok|retry|error
)
