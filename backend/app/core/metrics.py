"""
Prometheus metrics collection.

Metrics Categories:
- RED Metrics: HTTP rate, errors, duration
- Routing Metrics: classification scores, routing decisions
- LLM Metrics: provider calls, latency, tokens, client cache
- Retrieval Metrics: which retrieval pass produced results
- Resource Metrics: CPU, memory

Naming follows Prometheus conventions (_total for counters,
_seconds for durations).
"""
from typing import Optional

import psutil
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from app.core.logging import get_logger

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
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
    registry=registry,
)

# ============================================================================
# ROUTING METRICS
# ============================================================================

classification_complexity = Histogram(
    "classification_complexity",
    "Distribution of query complexity scores",
    buckets=[1, 2, 3, 4, 5, 6, 7, 8, 9, 10],
    registry=registry,
)

classification_sensitivity = Histogram(
    "classification_sensitivity",
    "Distribution of query sensitivity scores",
    buckets=[0, 1, 2, 3, 4, 5, 6, 7, 8, 9, 10],
    registry=registry,
)

routing_decisions_total = Counter(
    "routing_decisions_total",
    "Total number of model selections",
    ["model_id", "source"],  # source: rule, default, direct
    registry=registry,
)

# ============================================================================
# LLM METRICS
# ============================================================================

llm_requests_total = Counter(
    "llm_requests_total",
    "Total number of provider calls",
    ["provider", "model", "status"],  # status: success, error
    registry=registry,
)

llm_request_duration_seconds = Histogram(
    "llm_request_duration_seconds",
    "Provider call latency in seconds",
    ["provider", "model"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
    registry=registry,
)

llm_tokens_total = Counter(
    "llm_tokens_total",
    "Total number of tokens reported by providers",
    ["model", "kind"],  # kind: prompt, completion
    registry=registry,
)

llm_client_cache_events_total = Counter(
    "llm_client_cache_events_total",
    "Client cache hits, misses and clears",
    ["event"],
    registry=registry,
)

# ============================================================================
# RETRIEVAL METRICS
# ============================================================================

retrieval_requests_total = Counter(
    "retrieval_requests_total",
    "Retrieval requests by the pass that produced the result",
    ["result_pass"],  # text, fallback, empty, error
    registry=registry,
)

# ============================================================================
# RESOURCE METRICS
# ============================================================================

system_cpu_usage_percent = Gauge(
    "system_cpu_usage_percent",
    "System CPU usage percentage",
    registry=registry,
)

system_memory_usage_bytes = Gauge(
    "system_memory_usage_bytes",
    "System memory usage in bytes",
    registry=registry,
)


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def normalize_endpoint(path: str) -> str:
    """
    Normalize endpoint path for metrics labels.

    Replaces model and rule ids with placeholders to keep cardinality low.

    Examples:
        /v1/models/abc123 -> /v1/models/{model_id}
        /admin/routing-rules/r1/active -> /admin/routing-rules/{rule_id}/active
    """
    if "?" in path:
        path = path.split("?")[0]

    parts = path.rstrip("/").split("/")
    for index, segment in enumerate(parts[:-1]):
        if segment == "models" and index + 1 < len(parts):
            parts[index + 1] = "{model_id}"
        elif segment == "routing-rules" and index + 1 < len(parts):
            parts[index + 1] = "{rule_id}"

    return "/".join(parts) or "/"


def record_http_request(
    method: str,
    endpoint: str,
    status_code: int,
    duration_seconds: float,
) -> None:
    """Record HTTP RED metrics for one request."""
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


def record_classification(complexity: float, sensitivity: float) -> None:
    classification_complexity.observe(complexity)
    classification_sensitivity.observe(sensitivity)


def record_routing_decision(model_id: str, source: str) -> None:
    """
    Record which model was selected and why.

    Args:
        model_id: Selected model id
        source: "rule", "default" or "direct"
    """
    routing_decisions_total.labels(model_id=model_id, source=source).inc()


def record_llm_request(
    provider: str,
    model: str,
    status: str,
    duration_seconds: float,
) -> None:
    """Record one provider call (success or error) and its latency."""
    llm_requests_total.labels(provider=provider, model=model, status=status).inc()
    llm_request_duration_seconds.labels(provider=provider, model=model).observe(duration_seconds)


def record_llm_tokens(
    model: str,
    prompt_tokens: Optional[int],
    completion_tokens: Optional[int],
) -> None:
    if prompt_tokens:
        llm_tokens_total.labels(model=model, kind="prompt").inc(prompt_tokens)
    if completion_tokens:
        llm_tokens_total.labels(model=model, kind="completion").inc(completion_tokens)


def record_client_cache_event(event: str) -> None:
    llm_client_cache_events_total.labels(event=event).inc()


def record_retrieval(result_pass: str) -> None:
    retrieval_requests_total.labels(result_pass=result_pass).inc()


def update_resource_metrics() -> None:
    """Refresh CPU and memory gauges (called on scrape)."""
    try:
        system_cpu_usage_percent.set(psutil.cpu_percent(interval=None))
        system_memory_usage_bytes.set(psutil.virtual_memory().used)
    except Exception as e:
        logger.warning(
            "metrics_resource_update_failed",
            error=str(e),
            error_type=type(e).__name__,
        )


def get_metrics() -> bytes:
    """Prometheus text exposition of the registry."""
    update_resource_metrics()
    return generate_latest(registry)


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
