"""
Unit tests for Prometheus metrics collection.

Tests verify:
- RED metrics (Rate, Errors, Duration) are recorded correctly
- Routing, LLM, client-cache and retrieval metrics are recorded correctly
- Resource metrics (CPU, memory) are updated correctly
- Endpoint normalization keeps label cardinality low
- Metrics endpoint returns valid Prometheus format
"""
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from app.core.metrics import (
    get_metrics,
    get_metrics_content_type,
    http_errors_total,
    http_request_duration_seconds,
    http_requests_total,
    normalize_endpoint,
    record_classification,
    record_client_cache_event,
    record_http_request,
    record_llm_request,
    record_llm_tokens,
    record_retrieval,
    record_routing_decision,
    registry,
    system_cpu_usage_percent,
    system_memory_usage_bytes,
    update_resource_metrics,
)


def sample(name, labels=None):
    return registry.get_sample_value(name, labels or {}) or 0.0


class TestEndpointNormalization:
    def test_model_ids_are_replaced(self):
        assert normalize_endpoint("/v1/models/gpt-4") == "/v1/models/{model_id}"
        assert normalize_endpoint("/admin/models/abc/active") == "/admin/models/{model_id}/active"

    def test_rule_ids_are_replaced(self):
        assert normalize_endpoint("/admin/routing-rules/r1") == "/admin/routing-rules/{rule_id}"

    def test_collections_are_unchanged(self):
        assert normalize_endpoint("/v1/models") == "/v1/models"
        assert normalize_endpoint("/admin/routing-rules") == "/admin/routing-rules"
        assert normalize_endpoint("/rag/query?debug=1") == "/rag/query"
        assert normalize_endpoint("/health/") == "/health"


class TestREDMetrics:
    """Test RED metrics (Rate, Errors, Duration)."""

    def test_record_http_request_success(self):
        record_http_request(method="POST", endpoint="/rag/query", status_code=200, duration_seconds=0.1)

        samples = list(http_requests_total.collect()[0].samples)
        assert any(
            s.labels["method"] == "POST"
            and s.labels["endpoint"] == "/rag/query"
            and s.labels["status"] == "200"
            for s in samples
        )

        duration_samples = list(http_request_duration_seconds.collect()[0].samples)
        assert any(
            s.labels["method"] == "POST" and s.labels["endpoint"] == "/rag/query"
            for s in duration_samples
        )

    def test_record_http_request_error(self):
        record_http_request(method="POST", endpoint="/v1/chat/completions", status_code=502, duration_seconds=0.2)

        samples = list(http_errors_total.collect()[0].samples)
        assert any(
            s.labels["endpoint"] == "/v1/chat/completions" and s.labels["status_code"] == "502"
            for s in samples
        )

    def test_record_http_request_normalizes_endpoint(self):
        record_http_request(method="GET", endpoint="/v1/models/claude-3", status_code=200, duration_seconds=0.01)

        samples = list(http_requests_total.collect()[0].samples)
        assert any(s.labels["endpoint"] == "/v1/models/{model_id}" for s in samples)


class TestRoutingAndLLMMetrics:
    def test_routing_decision(self):
        labels = {"model_id": "local-only", "source": "rule"}
        before = sample("routing_decisions_total", labels)
        record_routing_decision("local-only", "rule")
        assert sample("routing_decisions_total", labels) == before + 1

    def test_classification_histograms(self):
        before = sample("classification_complexity_count")
        record_classification(6.0, 7.0)
        assert sample("classification_complexity_count") == before + 1
        assert sample("classification_sensitivity_count") >= 1

    def test_llm_request(self):
        labels = {"provider": "openai", "model": "gpt-4-turbo", "status": "error"}
        before = sample("llm_requests_total", labels)
        record_llm_request("openai", "gpt-4-turbo", "error", 0.5)
        assert sample("llm_requests_total", labels) == before + 1

    def test_llm_tokens_skip_missing_counts(self):
        prompt = {"model": "tokens-test", "kind": "prompt"}
        completion = {"model": "tokens-test", "kind": "completion"}
        before_prompt = sample("llm_tokens_total", prompt)
        before_completion = sample("llm_tokens_total", completion)

        record_llm_tokens("tokens-test", 12, None)

        assert sample("llm_tokens_total", prompt) == before_prompt + 12
        assert sample("llm_tokens_total", completion) == before_completion

    @pytest.mark.parametrize("event", ["hit", "miss", "clear"])
    def test_client_cache_events(self, event):
        before = sample("llm_client_cache_events_total", {"event": event})
        record_client_cache_event(event)
        assert sample("llm_client_cache_events_total", {"event": event}) == before + 1

    @pytest.mark.parametrize("result_pass", ["text", "fallback", "empty", "error"])
    def test_retrieval(self, result_pass):
        labels = {"result_pass": result_pass}
        before = sample("retrieval_requests_total", labels)
        record_retrieval(result_pass)
        assert sample("retrieval_requests_total", labels) == before + 1


class TestResourceMetrics:
    """Test resource metrics."""

    @patch("app.core.metrics.psutil.cpu_percent")
    @patch("app.core.metrics.psutil.virtual_memory")
    def test_update_resource_metrics(self, mock_memory, mock_cpu):
        mock_cpu.return_value = 45.5
        mock_memory_obj = MagicMock()
        mock_memory_obj.used = 1024 * 1024 * 512
        mock_memory.return_value = mock_memory_obj

        update_resource_metrics()

        assert system_cpu_usage_percent._value.get() == 45.5
        assert system_memory_usage_bytes._value.get() == 1024 * 1024 * 512

    @patch("app.core.metrics.psutil.cpu_percent", side_effect=RuntimeError("no /proc"))
    def test_update_resource_metrics_failure_is_logged(self, mock_cpu):
        update_resource_metrics()


class TestMetricsEndpoint:
    def test_exposition_format(self):
        record_routing_decision("exposed-model", "default")
        body = get_metrics().decode()

        assert "routing_decisions_total" in body
        assert 'model_id="exposed-model"' in body
        assert get_metrics_content_type().startswith("text/plain")

    def test_endpoint(self):
        from app.main import app

        response = TestClient(app).get("/metrics")

        assert response.status_code == 200
        assert "http_requests_total" in response.text

    def test_http_error_counted_once(self):
        from app.main import app

        labels = {"method": "POST", "endpoint": "/rag/query", "status": "401"}
        error_labels = {"method": "POST", "endpoint": "/rag/query", "status_code": "401"}
        before = sample("http_requests_total", labels)
        before_errors = sample("http_errors_total", error_labels)

        response = TestClient(app).post("/rag/query", json={"query": "hi"})

        assert response.status_code == 401
        assert sample("http_requests_total", labels) == before + 1
        assert sample("http_errors_total", error_labels) == before_errors + 1
