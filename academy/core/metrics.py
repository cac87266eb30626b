"""Prometheus metric inventory.

Every metric the service exposes is declared here; the modules that own
the behavior import the metric and increment or observe it at the point
of action.  ``/metrics`` serves the default registry.

Workflow counters are labelled with the error kind (or ``ok``) so a
dashboard can separate a spike of ``PAYMENT_FAILED`` (wallets declining)
from ``PAID_BUT_NOT_ENROLLED`` (learners who were charged and need
support) without reading logs.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by MetricsMiddleware)
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
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 15.0, 60.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Workflow metrics
# ---------------------------------------------------------------------------

ENROLLMENT_OUTCOMES = Counter(
    "enrollment_outcomes_total",
    "Enrollment attempts by outcome",
    ["kind"],  # ok|ALREADY_ENROLLED|PAYMENT_FAILED|PAID_BUT_NOT_ENROLLED|...
)

MODULE_COMPLETIONS = Counter(
    "module_completions_total",
    "complete_module calls by result",
    ["result"],  # recorded|duplicate|<error kind>
)

CERTIFICATE_MINTS = Counter(
    "certificate_mints_total",
    "Certificate mint attempts by result",
    ["result"],  # ok|<error kind>
)

LEDGER_CALL_DURATION = Histogram(
    "ledger_call_duration_seconds",
    "Wall time spent waiting on the ledger, including confirmation",
    ["operation"],  # transfer|signature|mint
    # Block confirmation dominates; sub-second buckets only matter for
    # signature prompts the wallet answers immediately.
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0],
)

HINT_REQUESTS = Counter(
    "hint_requests_total",
    "Hint assistant calls by result",
    ["result"],  # ok|fallback
)

CACHE_OPERATIONS = Counter(
    "cache_operations_total",
    "Course cache lookups by result",
    ["operation"],  # hit|miss
)
