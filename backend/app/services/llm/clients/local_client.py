"""
Self-hosted model client.

Posts a flat payload to the model's configured endpoint:
    {prompt, temperature, max_tokens, system_prompt?, context?}
and reads the text back from "response", "text" or "output", whichever
is present.
"""
from typing import Any, Dict

from app.core.errors import ConfigurationError
from app.models.domain import ModelDescriptor
from app.services.llm.clients.base import BaseLLMClient, optional_int
from app.services.llm.schema import NormalizedRequest, NormalizedResponse


class LocalLLMClient(BaseLLMClient):
    provider_label = "self_hosted"

    def __init__(self, model: ModelDescriptor, **kwargs):
        if not model.endpoint:
            raise ConfigurationError("Local LLM endpoint is required", model_id=model.id)
        super().__init__(model, **kwargs)

    @property
    def url(self) -> str:
        return self.model.endpoint

    def build_headers(self) -> Dict[str, str]:
        headers = super().build_headers()
        if self.model.api_key:
            headers["Authorization"] = f"Bearer {self.model.api_key}"
        return headers

    def build_payload(self, request: NormalizedRequest) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "prompt": request.query,
            "temperature": self.resolve_temperature(request),
            "max_tokens": self.resolve_max_tokens(request),
        }
        system_prompt = self.resolve_system_prompt(request)
        if system_prompt:
            payload["system_prompt"] = system_prompt
        if request.context:
            payload["context"] = list(request.context)
        return payload

    def parse_response(self, data: Dict[str, Any]) -> NormalizedResponse:
        text = ""
        for key in ("response", "text", "output"):
            if data.get(key):
                text = data[key]
                break

        usage = data.get("usage") or {}
        return NormalizedResponse(
            text=text,
            model=self.model.model_name,
            prompt_tokens=optional_int(usage.get("prompt_tokens")),
            completion_tokens=optional_int(usage.get("completion_tokens")),
            total_tokens=optional_int(usage.get("total_tokens")),
            finish_reason=data.get("finish_reason"),
        )
