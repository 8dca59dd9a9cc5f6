"""Prometheus metrics for the CampusFeed data layer.

Metric Types:
    Counters (always increase):
        - http_requests_total: Backend requests by method and status
        - repository_operations_total: Repository calls by aggregate, operation, status
        - moderation_decisions_total: Review outcomes by decision
        - errors_total: Errors by type and component

    Histograms (track distributions):
        - http_request_duration_seconds: Backend request latency
        - repository_operation_duration_seconds: Repository call latency

Usage:
    ```python
    from campusfeed.metrics import track_operation

    with track_operation("posts", "like"):
        state = await posts.like_post(post_id)
    ```

    All metrics live in a private CollectorRegistry; ``generate_metrics_output``
    renders them in the Prometheus exposition format.
"""

from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

# Custom registry for explicit metric control
registry = CollectorRegistry()

# In-memory calls sleep 0-400ms; remote calls are bounded by the request timeout
DEFAULT_LATENCY_BUCKETS = (
    0.005,
    0.01,
    0.05,
    0.1,
    0.25,
    0.5,
    1.0,
    2.5,
    5.0,
    10.0,
)


# ========== COUNTER METRICS (always increase) ==========

http_requests_total = Counter(
    "http_requests_total",
    "Total number of backend HTTP requests",
    labelnames=["method", "status"],
    registry=registry,
)
"""Counter for backend requests.

Labels:
    method: HTTP method (e.g., "GET", "POST")
    status: HTTP status code, or "error" when no response arrived
"""

repository_operations_total = Counter(
    "repository_operations_total",
    "Total number of repository operations",
    labelnames=["aggregate", "operation", "status"],
    registry=registry,
)
"""Counter for repository calls.

Labels:
    aggregate: Repository aggregate (e.g., "posts", "comments", "users", "admin")
    operation: Operation name (e.g., "like", "review")
    status: "success" or "error"
"""

moderation_decisions_total = Counter(
    "moderation_decisions_total",
    "Total number of moderation decisions",
    labelnames=["decision"],
    registry=registry,
)

errors_total = Counter(
    "errors_total",
    "Total number of errors encountered",
    labelnames=["error_type", "component"],
    registry=registry,
)
"""Counter for errors.

Labels:
    error_type: Exception class name (e.g., "NotFoundError")
    component: Component where the error surfaced (e.g., "api", "posts")
"""


# ========== HISTOGRAM METRICS (track distributions) ==========

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "Duration of backend HTTP requests in seconds",
    labelnames=["method"],
    buckets=DEFAULT_LATENCY_BUCKETS,
    registry=registry,
)

repository_operation_duration_seconds = Histogram(
    "repository_operation_duration_seconds",
    "Duration of repository operations in seconds",
    labelnames=["aggregate", "operation"],
    buckets=DEFAULT_LATENCY_BUCKETS,
    registry=registry,
)


# ========== HELPER FUNCTIONS ==========


@contextmanager
def track_operation(aggregate: str, operation: str) -> Iterator[None]:
    """Count and time a repository operation.

    Exceptions are counted under ``errors_total`` and re-raised unchanged.

    Args:
        aggregate: Repository aggregate name
        operation: Operation name
    """
    start = time.perf_counter()
    try:
        yield
    except Exception as exc:
        repository_operations_total.labels(
            aggregate=aggregate, operation=operation, status="error"
        ).inc()
        errors_total.labels(error_type=type(exc).__name__, component=aggregate).inc()
        raise
    else:
        repository_operations_total.labels(
            aggregate=aggregate, operation=operation, status="success"
        ).inc()
    finally:
        repository_operation_duration_seconds.labels(
            aggregate=aggregate, operation=operation
        ).observe(time.perf_counter() - start)


def generate_metrics_output() -> bytes:
    """Generate Prometheus metrics output in text format.

    Returns:
        Metrics output as bytes
    """
    return generate_latest(registry)


def get_sample_value(name: str, labels: dict[str, str] | None = None) -> float | None:
    """Read one sample from the registry (mainly for tests and the CLI)."""
    return registry.get_sample_value(name, labels or {})


__all__ = [
    "registry",
    "http_requests_total",
    "repository_operations_total",
    "moderation_decisions_total",
    "errors_total",
    "http_request_duration_seconds",
    "repository_operation_duration_seconds",
    "track_operation",
    "generate_metrics_output",
    "get_sample_value",
    "DEFAULT_LATENCY_BUCKETS",
]
