"""Prometheus metrics for the relying party.

All metrics live in this module so there is one inventory of what the
fixture measures.  Modules import the metric they own and increment it at
the point of action.

The HTTP metrics are filled in by MetricsMiddleware.  The outcome counters
are the interesting ones for a test double: after a suite run, scraping
/metrics shows how many callbacks ended in each outcome and how many code
exchanges failed, without parsing a single log line.

Counters are process-global (the default REGISTRY), so tests compare
before/after values instead of absolute numbers.
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

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
    # /verify on the code path makes two outbound calls; anything past the
    # broker timeout shows up in the last buckets.
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

# ---------------------------------------------------------------------------
# Relying-party metrics
# ---------------------------------------------------------------------------

VERIFY_OUTCOMES = Counter(
    "rp_verify_outcomes_total",
    "Callbacks handled by /verify, by outcome",
    ["outcome"],  # "gotError", "invalidToken", "verified"
)

TOKEN_EXCHANGES = Counter(
    "rp_token_exchanges_total",
    "Authorization code exchanges at the broker token endpoint, by result",
    ["result"],  # "ok", "error", "invalid_response", "network_error"
)
