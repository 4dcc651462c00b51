"""
Integration tests for trace ID propagation.

Tests verify:
- Trace ID is generated for requests without X-Trace-ID header
- Trace ID is extracted from X-Trace-ID / X-Request-ID headers
- Trace ID and request ID are echoed in response headers
- Error bodies carry the same trace ID as the response header
"""
import uuid

from fastapi.testclient import TestClient

from app.core.logging import get_trace_id, get_user_id
from app.main import app

client = TestClient(app)


class TestTraceIDPropagation:
    """Test trace ID propagation through HTTP requests."""

    def test_trace_id_generated_when_missing(self):
        response = client.get("/health/")

        assert response.status_code == 200
        trace_id = response.headers["X-Trace-ID"]
        assert len(trace_id) == 36
        assert trace_id.count("-") == 4

    def test_trace_id_extracted_from_header(self):
        custom_trace_id = str(uuid.uuid4())
        response = client.get("/health/", headers={"X-Trace-ID": custom_trace_id})

        assert response.headers["X-Trace-ID"] == custom_trace_id

    def test_trace_id_extracted_from_request_id_header(self):
        custom_trace_id = str(uuid.uuid4())
        response = client.get("/health/", headers={"X-Request-ID": custom_trace_id})

        assert response.headers["X-Trace-ID"] == custom_trace_id

    def test_traceparent_header_sets_trace_id(self):
        traceparent = "00-4bf92f3577b34da6a3ce929d0e0e4736-00f067aa0ba902b7-01"
        response = client.get("/health/", headers={"traceparent": traceparent})

        assert response.headers["X-Trace-ID"] == "4bf92f35-77b3-4da6-a3ce-929d0e0e4736"

    def test_request_ids_are_unique(self):
        request_ids = {client.get("/health/").headers["X-Request-ID"] for _ in range(5)}
        assert len(request_ids) == 5

    def test_trace_id_in_error_responses(self):
        custom_trace_id = str(uuid.uuid4())
        response = client.post("/rag/query", json={"query": "hi"}, headers={"X-Trace-ID": custom_trace_id})

        assert response.status_code == 401
        assert response.headers["X-Trace-ID"] == custom_trace_id
        assert response.json()["trace_id"] == custom_trace_id

    def test_trace_id_in_openai_error_responses(self):
        custom_trace_id = str(uuid.uuid4())
        response = client.post(
            "/v1/chat/completions",
            json={"messages": "not a list"},
            headers={"X-Trace-ID": custom_trace_id, "X-User-ID": "alice"},
        )

        assert response.status_code == 400
        assert response.json()["trace_id"] == custom_trace_id
        assert response.headers["X-Trace-ID"] == custom_trace_id


class TestContextCleanup:
    def test_context_is_cleared_after_request(self):
        client.get("/health/", headers={"X-Trace-ID": "trace-to-clear", "X-User-ID": "alice"})

        assert get_trace_id() is None
        assert get_user_id() is None
