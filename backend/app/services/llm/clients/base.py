"""
Base class for provider clients.

A client is a stateless wrapper around one ModelDescriptor. Subclasses only
shape the wire payload and read the provider's response back; timing,
logging, metrics and error propagation live here.

There is no retry and no fallback at this layer: a failed provider call is
logged and the original exception is re-raised.
"""
import os
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from app.core.logging import get_logger
from app.core.metrics import record_llm_request, record_llm_tokens
from app.core.tracing import get_tracer, record_exception, set_span_attribute
from app.models.domain import ModelDescriptor
from app.services.llm.schema import NormalizedRequest, NormalizedResponse

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 60.0


def get_request_timeout() -> float:
    return float(os.getenv("LLM_REQUEST_TIMEOUT_SECONDS", str(DEFAULT_TIMEOUT_SECONDS)) or DEFAULT_TIMEOUT_SECONDS)


class BaseLLMClient(ABC):
    """One client per model; query() is the only public capability."""

    provider_label = "base"

    def __init__(
        self,
        model: ModelDescriptor,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.model = model
        self.timeout_seconds = timeout_seconds or get_request_timeout()
        # Injected in tests (httpx.MockTransport)
        self._transport = transport

    @property
    @abstractmethod
    def url(self) -> str:
        """Endpoint the payload is POSTed to."""

    @abstractmethod
    def build_payload(self, request: NormalizedRequest) -> Dict[str, Any]:
        """Translate the normalized request into the provider wire shape."""

    @abstractmethod
    def parse_response(self, data: Dict[str, Any]) -> NormalizedResponse:
        """Translate the provider response body into a NormalizedResponse."""

    def build_headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    def resolve_system_prompt(self, request: NormalizedRequest) -> str:
        """Explicit prompt, else the model default, else empty."""
        return request.system_prompt or self.model.default_system_prompt or ""

    def resolve_temperature(self, request: NormalizedRequest) -> float:
        return request.temperature if request.temperature is not None else self.model.temperature

    def resolve_max_tokens(self, request: NormalizedRequest) -> int:
        return request.max_tokens if request.max_tokens is not None else self.model.max_tokens

    async def _post(self, payload: Dict[str, Any]) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
            return await client.post(self.url, headers=self.build_headers(), json=payload)

    async def query(self, request: NormalizedRequest) -> NormalizedResponse:
        """
        Send one request to the provider.

        Raises:
            httpx.HTTPError: provider call failed; propagated unchanged
        """
        payload = self.build_payload(request)
        tracer = get_tracer()
        start = time.perf_counter()

        with tracer.start_as_current_span("llm.provider_call"):
            set_span_attribute("llm.provider", self.provider_label)
            set_span_attribute("llm.model", self.model.model_name)
            try:
                response = await self._post(payload)
                response.raise_for_status()
                data = response.json()
            except Exception as exc:
                elapsed = time.perf_counter() - start
                record_llm_request(self.provider_label, self.model.model_name, "error", elapsed)
                record_exception(exc)
                logger.error(
                    "llm_provider_call_failed",
                    provider=self.provider_label,
                    model_id=self.model.id,
                    model_name=self.model.model_name,
                    error=str(exc),
                    error_type=type(exc).__name__,
                    latency_ms=int(elapsed * 1000),
                )
                raise

        elapsed = time.perf_counter() - start
        result = self.parse_response(data)
        result.model_id = self.model.id
        result.time_taken_ms = int(elapsed * 1000)

        record_llm_request(self.provider_label, self.model.model_name, "success", elapsed)
        record_llm_tokens(self.model.model_name, result.prompt_tokens, result.completion_tokens)

        logger.info(
            "llm_provider_call_completed",
            provider=self.provider_label,
            model_id=self.model.id,
            model_name=result.model,
            finish_reason=result.finish_reason,
            total_tokens=result.total_tokens,
            latency_ms=result.time_taken_ms,
        )
        return result


def optional_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
