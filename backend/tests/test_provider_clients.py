"""
Tests for the provider clients, using httpx.MockTransport (no network).

Tests verify:
- Wire payload and headers per provider family
- Response parsing into NormalizedResponse
- System prompt precedence: explicit > model default > none
- Provider errors propagate unchanged (no retry)
"""
import json

import httpx
import pytest

from app.core.errors import ConfigurationError
from app.services.llm.clients import AnthropicClient, LocalLLMClient, OpenAIClient
from app.services.llm.clients.openai_client import CONTEXT_ACKNOWLEDGEMENT
from app.services.llm.schema import NormalizedRequest

from fakes import make_anthropic_model, make_model, make_openai_model


class Recorder:
    """MockTransport handler that records requests and replies with a fixed body."""

    def __init__(self, body, status_code=200):
        self.body = body
        self.status_code = status_code
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.body)

    @property
    def payload(self):
        return json.loads(self.requests[-1].content)

    @property
    def headers(self):
        return self.requests[-1].headers


OPENAI_BODY = {
    "choices": [{"message": {"role": "assistant", "content": "Rotate keys monthly."}, "finish_reason": "stop"}],
    "usage": {"prompt_tokens": 12, "completion_tokens": 4, "total_tokens": 16},
}

ANTHROPIC_BODY = {
    "content": [{"type": "text", "text": "Rotate "}, {"type": "text", "text": "keys monthly."}],
    "usage": {"input_tokens": 20, "output_tokens": 5},
    "stop_reason": "end_turn",
}


class TestOpenAIClient:
    @pytest.mark.asyncio
    async def test_message_sequence_with_context(self):
        recorder = Recorder(OPENAI_BODY)
        client = OpenAIClient(make_openai_model(), transport=httpx.MockTransport(recorder))

        result = await client.query(NormalizedRequest(
            query="How often should keys rotate?",
            context=["Policy A", "Policy B"],
            system_prompt="Be brief.",
            user="u-1",
        ))

        assert recorder.requests[0].url == "https://api.openai.com/v1/chat/completions"
        assert recorder.headers["authorization"] == "Bearer sk-test"
        assert recorder.payload["messages"] == [
            {"role": "system", "content": "Be brief."},
            {"role": "user", "content": "Policy A\n\nPolicy B"},
            {"role": "assistant", "content": CONTEXT_ACKNOWLEDGEMENT},
            {"role": "user", "content": "How often should keys rotate?"},
        ]
        assert recorder.payload["model"] == "gpt-4-turbo"
        assert recorder.payload["user"] == "u-1"

        assert result.text == "Rotate keys monthly."
        assert result.model == "gpt-4-turbo"
        assert result.model_id == "gpt"
        assert (result.prompt_tokens, result.completion_tokens, result.total_tokens) == (12, 4, 16)
        assert result.finish_reason == "stop"

    @pytest.mark.asyncio
    async def test_no_context_and_no_system_prompt(self):
        recorder = Recorder(OPENAI_BODY)
        client = OpenAIClient(make_openai_model(), transport=httpx.MockTransport(recorder))

        await client.query(NormalizedRequest(query="hi"))

        assert recorder.payload["messages"] == [{"role": "user", "content": "hi"}]
        assert "user" not in recorder.payload

    @pytest.mark.asyncio
    async def test_model_defaults_fill_unset_fields(self):
        recorder = Recorder(OPENAI_BODY)
        model = make_openai_model(default_system_prompt="You are helpful.", temperature=0.2, max_tokens=256)
        client = OpenAIClient(model, transport=httpx.MockTransport(recorder))

        await client.query(NormalizedRequest(query="hi"))

        assert recorder.payload["messages"][0] == {"role": "system", "content": "You are helpful."}
        assert recorder.payload["temperature"] == 0.2
        assert recorder.payload["max_tokens"] == 256

    @pytest.mark.asyncio
    async def test_request_values_override_model_defaults(self):
        recorder = Recorder(OPENAI_BODY)
        model = make_openai_model(default_system_prompt="You are helpful.", temperature=0.2, max_tokens=256)
        client = OpenAIClient(model, transport=httpx.MockTransport(recorder))

        await client.query(NormalizedRequest(query="hi", system_prompt="Answer in French.", temperature=0.0, max_tokens=10))

        assert recorder.payload["messages"][0]["content"] == "Answer in French."
        assert recorder.payload["temperature"] == 0.0
        assert recorder.payload["max_tokens"] == 10

    @pytest.mark.asyncio
    async def test_endpoint_override(self):
        recorder = Recorder(OPENAI_BODY)
        model = make_openai_model(endpoint="https://proxy.internal/v1/")
        client = OpenAIClient(model, transport=httpx.MockTransport(recorder))

        await client.query(NormalizedRequest(query="hi"))
        assert recorder.requests[0].url == "https://proxy.internal/v1/chat/completions"

    @pytest.mark.asyncio
    async def test_provider_error_propagates(self):
        recorder = Recorder({"error": {"message": "rate limited"}}, status_code=429)
        client = OpenAIClient(make_openai_model(), transport=httpx.MockTransport(recorder))

        with pytest.raises(httpx.HTTPStatusError) as exc_info:
            await client.query(NormalizedRequest(query="hi"))

        assert exc_info.value.response.status_code == 429
        assert len(recorder.requests) == 1

    def test_missing_key_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            OpenAIClient(make_openai_model(api_key=None))


class TestAnthropicClient:
    @pytest.mark.asyncio
    async def test_payload_and_parsing(self):
        recorder = Recorder(ANTHROPIC_BODY)
        client = AnthropicClient(make_anthropic_model(), transport=httpx.MockTransport(recorder))

        result = await client.query(NormalizedRequest(
            query="How often should keys rotate?",
            context=["Policy A", "Policy B"],
            system_prompt="Be brief.",
        ))

        assert recorder.requests[0].url == "https://api.anthropic.com/v1/messages"
        assert recorder.headers["x-api-key"] == "ak-test"
        assert recorder.headers["anthropic-version"] == "2023-06-01"
        assert recorder.payload["system"] == "Be brief."
        assert recorder.payload["messages"] == [{
            "role": "user",
            "content": "Context information:\nPolicy A\n\nPolicy B\n\nQuestion: How often should keys rotate?",
        }]

        assert result.text == "Rotate keys monthly."
        assert result.model == "claude-3-sonnet"
        assert (result.prompt_tokens, result.completion_tokens, result.total_tokens) == (20, 5, 25)
        assert result.finish_reason == "end_turn"

    @pytest.mark.asyncio
    async def test_no_context_sends_bare_query_without_system(self):
        recorder = Recorder(ANTHROPIC_BODY)
        client = AnthropicClient(make_anthropic_model(), transport=httpx.MockTransport(recorder))

        await client.query(NormalizedRequest(query="hi"))

        assert recorder.payload["messages"] == [{"role": "user", "content": "hi"}]
        assert "system" not in recorder.payload

    @pytest.mark.asyncio
    async def test_missing_usage_leaves_counts_unset(self):
        recorder = Recorder({"content": [{"type": "text", "text": "ok"}]})
        client = AnthropicClient(make_anthropic_model(), transport=httpx.MockTransport(recorder))

        result = await client.query(NormalizedRequest(query="hi"))
        assert result.total_tokens is None


class TestLocalLLMClient:
    @pytest.mark.asyncio
    async def test_flat_payload(self):
        recorder = Recorder({"response": "local answer", "usage": {"total_tokens": 9}})
        model = make_model("llama", default_system_prompt="Local default.")
        client = LocalLLMClient(model, transport=httpx.MockTransport(recorder))

        result = await client.query(NormalizedRequest(query="hi", context=["doc one"]))

        assert recorder.requests[0].url == "http://llm.local/llama/generate"
        assert recorder.payload == {
            "prompt": "hi",
            "temperature": 0.7,
            "max_tokens": 1024,
            "system_prompt": "Local default.",
            "context": ["doc one"],
        }
        assert "authorization" not in recorder.headers
        assert result.text == "local answer"
        assert result.total_tokens == 9

    @pytest.mark.asyncio
    async def test_bearer_header_when_credential_configured(self):
        recorder = Recorder({"text": "ok"})
        client = LocalLLMClient(make_model("llama", api_key="local-key"), transport=httpx.MockTransport(recorder))

        result = await client.query(NormalizedRequest(query="hi"))

        assert recorder.headers["authorization"] == "Bearer local-key"
        assert result.text == "ok"

    @pytest.mark.asyncio
    async def test_timeout_propagates(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client = LocalLLMClient(make_model("llama"), transport=httpx.MockTransport(handler))

        with pytest.raises(httpx.ReadTimeout):
            await client.query(NormalizedRequest(query="hi"))

    def test_missing_endpoint_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            LocalLLMClient(make_model("llama", endpoint=None))
