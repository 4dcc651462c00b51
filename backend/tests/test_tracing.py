"""
Unit tests for OpenTelemetry tracing helpers.

Tests verify:
- Tracing can be configured without an exporter
- Trace id is read from the active span
- Span attributes, status and exceptions are recorded on the active span
"""
import re

import pytest

from app.core.tracing import (
    StatusCode,
    configure_tracing,
    get_trace_id_from_context,
    get_tracer,
    record_exception,
    set_span_attribute,
    set_span_status,
)


@pytest.fixture(scope="module", autouse=True)
def tracer_provider():
    configure_tracing(service_name="ragroute_test", otlp_endpoint=None, sampling_rate=1.0)


class TestTraceContext:
    def test_no_trace_id_outside_span(self):
        assert get_trace_id_from_context() is None

    def test_trace_id_inside_span(self):
        with get_tracer().start_as_current_span("test.span"):
            trace_id = get_trace_id_from_context()

        assert trace_id is not None
        assert re.fullmatch(r"[0-9a-f]{32}", trace_id)


class TestSpanHelpers:
    def test_set_span_attribute(self):
        with get_tracer().start_as_current_span("test.attributes") as span:
            set_span_attribute("routing.model_id", "local-only")

        assert span.attributes["routing.model_id"] == "local-only"

    def test_set_span_status(self):
        with get_tracer().start_as_current_span("test.status") as span:
            set_span_status(StatusCode.OK)

        assert span.status.status_code == StatusCode.OK

    def test_record_exception_marks_span_as_error(self):
        with get_tracer().start_as_current_span("test.exception") as span:
            record_exception(ValueError("provider down"))

        assert span.status.status_code == StatusCode.ERROR
        assert span.status.description == "provider down"
        assert any(event.name == "exception" for event in span.events)

    def test_helpers_are_safe_without_span(self):
        set_span_attribute("ignored", 1)
        set_span_status(StatusCode.ERROR, "ignored")
        record_exception(RuntimeError("ignored"))
