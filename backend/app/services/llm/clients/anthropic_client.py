"""
Message-style commercial client (Anthropic /messages over httpx).

One system field plus a single user turn. Context passages are prefixed
to the question as a labeled block:

    Context information:
    <passage 1>

    <passage 2>

    Question: <query>
"""
import os
from typing import Any, Dict

from app.core.errors import ConfigurationError
from app.models.domain import ModelDescriptor
from app.services.llm.clients.base import BaseLLMClient, optional_int
from app.services.llm.schema import NormalizedRequest, NormalizedResponse

DEFAULT_ANTHROPIC_API_BASE = "https://api.anthropic.com/v1"
DEFAULT_ANTHROPIC_API_VERSION = "2023-06-01"


class AnthropicClient(BaseLLMClient):
    provider_label = "anthropic"

    def __init__(self, model: ModelDescriptor, **kwargs):
        if not model.api_key:
            raise ConfigurationError("Anthropic API key is required", model_id=model.id)
        super().__init__(model, **kwargs)
        self.api_base = (
            model.endpoint or os.getenv("ANTHROPIC_API_BASE", DEFAULT_ANTHROPIC_API_BASE)
        ).rstrip("/")
        self.api_version = model.api_version or os.getenv(
            "ANTHROPIC_API_VERSION", DEFAULT_ANTHROPIC_API_VERSION
        )

    @property
    def url(self) -> str:
        return f"{self.api_base}/messages"

    def build_headers(self) -> Dict[str, str]:
        headers = super().build_headers()
        headers["x-api-key"] = self.model.api_key
        headers["anthropic-version"] = self.api_version
        return headers

    def build_user_message(self, request: NormalizedRequest) -> str:
        if not request.context:
            return request.query
        context_block = "\n\n".join(request.context)
        return f"Context information:\n{context_block}\n\nQuestion: {request.query}"

    def build_payload(self, request: NormalizedRequest) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.model.model_name,
            "messages": [{"role": "user", "content": self.build_user_message(request)}],
            "temperature": self.resolve_temperature(request),
            "max_tokens": self.resolve_max_tokens(request),
        }
        system_prompt = self.resolve_system_prompt(request)
        if system_prompt:
            payload["system"] = system_prompt
        return payload

    def parse_response(self, data: Dict[str, Any]) -> NormalizedResponse:
        text = "".join(
            block.get("text", "")
            for block in data.get("content") or []
            if block.get("type", "text") == "text"
        )
        usage = data.get("usage") or {}
        input_tokens = optional_int(usage.get("input_tokens"))
        output_tokens = optional_int(usage.get("output_tokens"))
        total_tokens = None
        if input_tokens is not None or output_tokens is not None:
            total_tokens = (input_tokens or 0) + (output_tokens or 0)

        return NormalizedResponse(
            text=text,
            model=self.model.model_name,
            prompt_tokens=input_tokens,
            completion_tokens=output_tokens,
            total_tokens=total_tokens,
            finish_reason=data.get("stop_reason"),
        )
