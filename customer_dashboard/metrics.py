"""
Prometheus metrics for the customer dashboard.

Tracks HTTP traffic, calls to the customer backend, list fetches and
customer mutations.
"""

from fastapi import Response
from prometheus_client import (CONTENT_TYPE_LATEST, Counter, Gauge, Histogram,
                               generate_latest)

# Request metrics
http_requests_total = Counter(
    "dashboard_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

http_request_duration_seconds = Histogram(
    "dashboard_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.025, 0.05, 0.075, 0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0),
)

# Backend API metrics
backend_requests_total = Counter(
    "dashboard_backend_requests_total",
    "Total requests to the customer backend",
    ["operation", "status"],
)

backend_request_duration_seconds = Histogram(
    "dashboard_backend_request_duration_seconds",
    "Customer backend request duration in seconds",
    ["operation"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

backend_errors_total = Counter(
    "dashboard_backend_errors_total",
    "Total customer backend request errors",
    ["operation", "error_type"],
)

# Customer list metrics
customer_list_fetches_total = Counter(
    "dashboard_customer_list_fetches_total",
    "Customer list fetches by outcome",
    ["outcome"],
)

# Mutation metrics
customer_mutations_total = Counter(
    "dashboard_customer_mutations_total",
    "Customer create/delete operations",
    ["operation", "status"],
)

# Sessions
dashboard_active_sessions = Gauge(
    "dashboard_active_sessions", "Number of live browser sessions"
)


def track_request_metrics(
    method: str, endpoint: str, status_code: int, duration: float
):
    """Track HTTP request metrics."""
    http_requests_total.labels(
        method=method, endpoint=endpoint, status=status_code
    ).inc()
    http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(
        duration
    )


def track_backend_request(operation: str, status_code: int, duration: float):
    """Track a completed backend call."""
    backend_requests_total.labels(operation=operation, status=status_code).inc()
    backend_request_duration_seconds.labels(operation=operation).observe(duration)


def track_backend_error(operation: str, error_type: str):
    """Track a backend call that failed before a response arrived."""
    backend_errors_total.labels(operation=operation, error_type=error_type).inc()


def track_list_fetch(outcome: str):
    """Track a list fetch outcome: applied, failed or discarded."""
    customer_list_fetches_total.labels(outcome=outcome).inc()


def track_customer_mutation(operation: str, success: bool):
    """Track customer create/delete operations."""
    status = "success" if success else "failure"
    customer_mutations_total.labels(operation=operation, status=status).inc()


def update_active_sessions(count: int):
    """Update active sessions gauge."""
    dashboard_active_sessions.set(count)


async def metrics_endpoint():
    """
    Prometheus metrics endpoint.

    Returns:
        Response with Prometheus metrics in text format
    """
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
