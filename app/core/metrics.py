"""Prometheus metric inventory for lms-service.

Every metric the service exposes is declared here; the owning modules
import and increment them at the point of action.

  Counters   only go up; dashboards use rate() over them.
  Gauges     go up and down (in-flight requests).
  Histograms bucket observations so Prometheus can derive percentiles.
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
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Application-specific metrics
# ---------------------------------------------------------------------------

RATE_LIMIT_HITS = Counter(
    "rate_limit_hits_total",
    "Requests rejected by rate limiting (429s)",
    ["scope"],  # "enroll" or "api"
)

CACHE_OPERATIONS = Counter(
    "cache_operations_total",
    "Cache get operations by result",
    ["operation"],  # "hit" or "miss"
)

QUIZ_SUBMISSIONS = Counter(
    "quiz_submissions_total",
    "Scored quiz attempts by how the submit was triggered",
    ["mode"],  # "manual" or "auto"
)

ENROLLMENT_TRANSITIONS = Counter(
    "enrollment_transitions_total",
    "Enrollment status changes",
    ["status"],  # pending|active|cancelled|deleted
)

UPSTREAM_FAILURES = Counter(
    "upstream_failures_total",
    "Calls to external providers that failed",
    ["provider"],  # "stripe"
)

PEER_REVIEW_EVENTS = Counter(
    "peer_review_events_total",
    "Project submissions, peer reviews and the lesson completions they unlock",
    ["event"],  # submitted|reviewed|lesson_completed
)
