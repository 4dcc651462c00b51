"""
Chat-style commercial client (OpenAI /chat/completions over httpx).

Message sequence:
    [system]                           if a system prompt resolves
    user: <context passages>           if context is present
    assistant: <acknowledgement>       if context is present
    user: <query>
"""
import os
from typing import Any, Dict, List

from app.core.errors import ConfigurationError
from app.models.domain import ModelDescriptor
from app.services.llm.clients.base import BaseLLMClient, optional_int
from app.services.llm.schema import NormalizedRequest, NormalizedResponse

DEFAULT_OPENAI_API_BASE = "https://api.openai.com/v1"
CONTEXT_ACKNOWLEDGEMENT = "I have reviewed the information you provided. How can I help you with this context?"


class OpenAIClient(BaseLLMClient):
    provider_label = "openai"

    def __init__(self, model: ModelDescriptor, **kwargs):
        if not model.api_key:
            raise ConfigurationError("OpenAI API key is required", model_id=model.id)
        super().__init__(model, **kwargs)
        self.api_base = (
            model.endpoint or os.getenv("OPENAI_API_BASE", DEFAULT_OPENAI_API_BASE)
        ).rstrip("/")

    @property
    def url(self) -> str:
        return f"{self.api_base}/chat/completions"

    def build_headers(self) -> Dict[str, str]:
        headers = super().build_headers()
        headers["Authorization"] = f"Bearer {self.model.api_key}"
        return headers

    def build_messages(self, request: NormalizedRequest) -> List[Dict[str, str]]:
        messages: List[Dict[str, str]] = []

        system_prompt = self.resolve_system_prompt(request)
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})

        if request.context:
            messages.append({"role": "user", "content": "\n\n".join(request.context)})
            messages.append({"role": "assistant", "content": CONTEXT_ACKNOWLEDGEMENT})

        messages.append({"role": "user", "content": request.query})
        return messages

    def build_payload(self, request: NormalizedRequest) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.model.model_name,
            "messages": self.build_messages(request),
            "temperature": self.resolve_temperature(request),
            "max_tokens": self.resolve_max_tokens(request),
        }
        if request.user:
            payload["user"] = request.user
        return payload

    def parse_response(self, data: Dict[str, Any]) -> NormalizedResponse:
        choice = (data.get("choices") or [{}])[0]
        usage = data.get("usage") or {}
        return NormalizedResponse(
            text=(choice.get("message") or {}).get("content") or "",
            model=self.model.model_name,
            prompt_tokens=optional_int(usage.get("prompt_tokens")),
            completion_tokens=optional_int(usage.get("completion_tokens")),
            total_tokens=optional_int(usage.get("total_tokens")),
            finish_reason=choice.get("finish_reason"),
        )
