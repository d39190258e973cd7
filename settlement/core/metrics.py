"""Prometheus metric inventory for settlement-service.

Every metric the service exports is declared here; the modules that own
the behavior import and update them at the point of action.  Counters
only go up, so tests assert on before/after deltas.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# --- HTTP (MetricsMiddleware) ---

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

# --- Settlement metrics ---

PAYMENT_TRANSITIONS = Counter(
    "payment_transitions_total",
    "Payments entering a state",
    ["status"],  # pending|successful|failed
)

GATEWAY_CALLS = Counter(
    "gateway_calls_total",
    "Calls to the payment gateway by operation and outcome",
    ["operation", "outcome"],  # initialize|verify, ok|error
)

GATEWAY_CALL_DURATION = Histogram(
    "gateway_call_duration_seconds",
    "Payment gateway round-trip time",
    ["operation"],
    # Gateway calls are network-bound and capped by GATEWAY_TIMEOUT_SECONDS
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

ENROLLMENTS_CREATED = Counter(
    "enrollments_created_total",
    "Enrollment rows created",
    ["source"],  # direct|payment|group
)

QUIZ_ATTEMPTS = Counter(
    "quiz_attempts_total",
    "Graded quiz attempts",
    ["passed"],  # "true" or "false"
)

PROGRESS_RECOMPUTES = Counter(
    "progress_recomputes_total",
    "Progress records rebuilt from source facts",
)

CACHE_OPERATIONS = Counter(
    "cache_operations_total",
    "Cache get operations by result",
    ["operation"],  # "hit" or "miss"
)

QUEUE_DEPTH = Gauge(
    "task_queue_depth",
    "Number of tasks waiting in a queue",
    ["queue_name"],
)
