"""Prometheus metrics definitions and helpers."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests processed",
    ("method", "route", "status"),
)

REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ("method", "route"),
    buckets=(
        0.005,
        0.01,
        0.025,
        0.05,
        0.1,
        0.25,
        0.5,
        1.0,
        2.5,
        5.0,
        10.0,
    ),
)

ERROR_COUNTER = Counter(
    "app_internal_errors_total",
    "Number of requests ending in internal server error responses",
    ("method", "route"),
)

TRANSCRIPTION_COUNTER = Counter(
    "answer_transcriptions_total",
    "Speech-to-text attempts by outcome",
    ("outcome",),
)

ANALYSIS_COUNTER = Counter(
    "answer_analyses_total",
    "Answer analyses by outcome (ok or fallback)",
    ("outcome",),
)

ANALYSIS_LATENCY = Histogram(
    "answer_analysis_duration_seconds",
    "Time spent obtaining an answer analysis, fallbacks included",
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0, 60.0),
)

PERSISTENCE_FAILURES = Counter(
    "session_persistence_failures_total",
    "Document store writes that failed and were surfaced as warnings",
    ("operation",),
)


def observe_request(
    method: str,
    route: str,
    status_code: int,
    duration_seconds: float,
) -> None:
    """Record metrics for a completed HTTP request."""

    safe_route = route or "unknown"
    safe_method = method or "UNKNOWN"
    status_label = str(status_code)
    observed_duration = duration_seconds if duration_seconds >= 0 else 0

    REQUEST_COUNT.labels(
        method=safe_method,
        route=safe_route,
        status=status_label,
    ).inc()
    REQUEST_LATENCY.labels(
        method=safe_method,
        route=safe_route,
    ).observe(observed_duration)

    if status_code >= 500:
        ERROR_COUNTER.labels(
            method=safe_method,
            route=safe_route,
        ).inc()


def record_transcription(outcome: str) -> None:
    TRANSCRIPTION_COUNTER.labels(outcome=outcome).inc()


def record_analysis(outcome: str, duration_seconds: float) -> None:
    """Count one analysis and observe how long it took."""

    ANALYSIS_COUNTER.labels(outcome=outcome).inc()
    ANALYSIS_LATENCY.observe(max(duration_seconds, 0))


def record_persistence_failure(operation: str) -> None:
    PERSISTENCE_FAILURES.labels(operation=operation).inc()
