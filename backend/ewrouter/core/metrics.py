"""
Prometheus metrics collection module.

Metrics Categories:
- RED Metrics: Rate, Errors, Duration of the HTTP surface
- Classification Metrics: classifier provenance, escalation state, pattern cache hits/misses
- Resolution Metrics: conflicts by type and resolution
- Store Metrics: best-effort persistence failures

All metrics follow Prometheus naming conventions:
- Counters: _total suffix
- Histograms: _seconds suffix for duration
"""
from prometheus_client import (
    Counter,
    Histogram,
    generate_latest,
    REGISTRY,
    CONTENT_TYPE_LATEST,
)

from ewrouter.core.logging import get_logger

logger = get_logger(__name__)

registry = REGISTRY

# ============================================================================
# RED METRICS - Rate, Errors, Duration
# ============================================================================

http_requests_total = Counter(
    "http_requests_total",
    "Total number of HTTP requests",
    ["method", "endpoint", "status"],
    registry=registry,
)

http_errors_total = Counter(
    "http_errors_total",
    "Total number of HTTP errors",
    ["method", "endpoint", "status_code"],
    registry=registry,
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
    registry=registry,
)

# ============================================================================
# CLASSIFICATION METRICS
# ============================================================================

classifications_total = Counter(
    "classifications_total",
    "Total number of query classifications",
    ["classifier", "escalation"],  # classifier: fast-path | llm
    registry=registry,
)

classification_latency_seconds = Histogram(
    "classification_latency_seconds",
    "Query classification latency in seconds",
    buckets=[0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25],
    registry=registry,
)

cache_hits_total = Counter(
    "cache_hits_total",
    "Total number of cache hits",
    ["cache_type"],  # e.g., "pattern"
    registry=registry,
)

cache_misses_total = Counter(
    "cache_misses_total",
    "Total number of cache misses",
    ["cache_type"],
    registry=registry,
)

classification_boosts_total = Counter(
    "classification_boosts_total",
    "Total number of classifications raised by session history",
    registry=registry,
)

# ============================================================================
# RESOLUTION METRICS
# ============================================================================

constraint_conflicts_total = Counter(
    "constraint_conflicts_total",
    "Total number of detected constraint conflicts",
    ["type", "resolution"],  # type: structural | semantic
    registry=registry,
)

constraint_input_errors_total = Counter(
    "constraint_input_errors_total",
    "Total number of rejected constraint inputs",
    registry=registry,
)

# ============================================================================
# STORE METRICS
# ============================================================================

store_failures_total = Counter(
    "store_failures_total",
    "Total number of swallowed cache/history I/O failures",
    ["store", "operation"],
    registry=registry,
)


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def normalize_endpoint(path: str) -> str:
    """
    Normalize endpoint path for metrics.

    Strips query parameters and trailing slashes to keep label cardinality low.

    Examples:
        /classify?x=1 -> /classify
        /health/ -> /health
    """
    if "?" in path:
        path = path.split("?")[0]
    if len(path) > 1 and path.endswith("/"):
        path = path.rstrip("/")
    return path


def record_http_request(
    method: str,
    endpoint: str,
    status_code: int,
    duration_seconds: float,
) -> None:
    """
    Record HTTP request metrics (RED metrics).

    Args:
        method: HTTP method (GET, POST, etc.)
        endpoint: Request path
        status_code: HTTP status code
        duration_seconds: Request duration in seconds
    """
    normalized_endpoint = normalize_endpoint(endpoint)

    http_requests_total.labels(
        method=method,
        endpoint=normalized_endpoint,
        status=str(status_code),
    ).inc()

    if status_code >= 400:
        http_errors_total.labels(
            method=method,
            endpoint=normalized_endpoint,
            status_code=str(status_code),
        ).inc()

    http_request_duration_seconds.labels(
        method=method,
        endpoint=normalized_endpoint,
    ).observe(duration_seconds)


def record_classification(classifier: str, escalation: str, latency_seconds: float) -> None:
    """
    Record a completed classification.

    Args:
        classifier: "fast-path" or "llm"
        escalation: "accepted", "provisional" or "unclassified"
        latency_seconds: Time spent classifying
    """
    classifications_total.labels(classifier=classifier, escalation=escalation).inc()
    classification_latency_seconds.observe(latency_seconds)


def record_cache_hit(cache_type: str) -> None:
    """Record a cache hit."""
    cache_hits_total.labels(cache_type=cache_type).inc()


def record_cache_miss(cache_type: str) -> None:
    """Record a cache miss."""
    cache_misses_total.labels(cache_type=cache_type).inc()


def record_classification_boost() -> None:
    """Record a classification whose confidence was raised by session history."""
    classification_boosts_total.inc()


def record_conflict(conflict_type: str, resolution: str) -> None:
    """
    Record a detected conflict and how it was arbitrated.

    Args:
        conflict_type: "structural" or "semantic"
        resolution: "resolved-auto", "resolved-priority" or "unresolved"
    """
    constraint_conflicts_total.labels(type=conflict_type, resolution=resolution).inc()


def record_constraint_input_error() -> None:
    """Record a constraint input rejected as malformed."""
    constraint_input_errors_total.inc()


def record_store_failure(store: str, operation: str) -> None:
    """
    Record a swallowed store failure.

    Args:
        store: Store name (e.g., "pattern_cache", "session_history")
        operation: "read" or "write"
    """
    store_failures_total.labels(store=store, operation=operation).inc()


def get_metrics() -> bytes:
    """
    Get Prometheus metrics in text format.

    Returns:
        Metrics in Prometheus text format
    """
    return generate_latest(registry)


def get_metrics_content_type() -> str:
    """Get content type for Prometheus metrics."""
    return CONTENT_TYPE_LATEST
