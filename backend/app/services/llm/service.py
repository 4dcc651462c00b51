"""
LLM dispatch service.

Resolves a model (via ModelRouter or direct id lookup), obtains the
provider client for it from a process-wide cache, builds the normalized
request and returns the normalized response.

Client cache:
- keyed by model id, at most one client per id
- populated lazily; cleared only by clear_client_cache()
- a client that fails to construct is never cached
"""
from typing import Any, Dict, List, Optional

import httpx

from app.core.errors import ConfigurationError, ModelNotFoundError, UnsupportedProviderError
from app.core.logging import get_logger
from app.core.metrics import record_client_cache_event, record_routing_decision
from app.core.tracing import get_tracer, set_span_attribute
from app.models.domain import PROVIDER_ANTHROPIC, PROVIDER_OPENAI, Caller, ModelDescriptor, ModelKind
from app.services.llm.clients import AnthropicClient, BaseLLMClient, LocalLLMClient, OpenAIClient
from app.services.llm.schema import NormalizedRequest, NormalizedResponse
from app.services.routing.model_router import ModelRouter, get_model_router

logger = get_logger(__name__)

COMMERCIAL_CLIENTS = {
    PROVIDER_OPENAI: OpenAIClient,
    PROVIDER_ANTHROPIC: AnthropicClient,
}


def create_client(
    model: ModelDescriptor,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> BaseLLMClient:
    """
    Construct the provider client for a model.

    Raises:
        ConfigurationError: missing credential (commercial) or endpoint (self-hosted)
        UnsupportedProviderError: commercial provider without a client
    """
    if model.kind == ModelKind.COMMERCIAL_API:
        if not model.api_key:
            raise ConfigurationError(
                f"API key is required for commercial model {model.id}", model_id=model.id
            )
        client_class = COMMERCIAL_CLIENTS.get(model.provider)
        if client_class is None:
            raise UnsupportedProviderError(model.provider, model_id=model.id)
        return client_class(model, transport=transport)

    return LocalLLMClient(model, transport=transport)


class LLMService:
    """Client dispatcher with a per-model client cache."""

    def __init__(
        self,
        model_router: Optional[ModelRouter] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.model_router = model_router or get_model_router()
        self._transport = transport
        self._client_cache: Dict[str, BaseLLMClient] = {}

    def get_client_for_model(self, model: ModelDescriptor) -> BaseLLMClient:
        client = self._client_cache.get(model.id)
        if client is not None:
            record_client_cache_event("hit")
            return client

        record_client_cache_event("miss")
        client = create_client(model, transport=self._transport)
        # setdefault keeps whichever client was published first
        client = self._client_cache.setdefault(model.id, client)
        logger.info(
            "llm_client_created",
            model_id=model.id,
            provider=model.provider,
            kind=model.kind.value,
            client=type(client).__name__,
        )
        return client

    def clear_client_cache(self) -> None:
        """Drop all cached clients (after configuration changes)."""
        size = len(self._client_cache)
        self._client_cache.clear()
        record_client_cache_event("clear")
        logger.info("llm_client_cache_cleared", cleared=size)

    @property
    def cached_model_ids(self) -> List[str]:
        return list(self._client_cache)

    async def execute_query(
        self,
        query: str,
        context: List[str],
        caller: Caller,
        system_prompt: Optional[str] = None,
        extra_context: Optional[Dict[str, Any]] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> NormalizedResponse:
        """
        Route the query to a model and run it.

        Raises:
            NoActiveModelsError, ConfigurationError, UnsupportedProviderError,
            httpx.HTTPError (provider failure, unchanged)
        """
        tracer = get_tracer()
        with tracer.start_as_current_span("llm.dispatch"):
            model = await self.model_router.select_model(query, caller, extra_context)
            request = NormalizedRequest(
                query=query,
                context=list(context or []),
                system_prompt=system_prompt,
                temperature=temperature,
                max_tokens=max_tokens,
                user=caller.id if caller else None,
            )
            return await self._dispatch(model, request)

    async def query_with_model(
        self,
        model_id: str,
        query: str,
        context: Optional[List[str]] = None,
        system_prompt: Optional[str] = None,
        user: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> NormalizedResponse:
        """
        Run the query on a specific model, bypassing routing rules.

        Raises:
            ModelNotFoundError: no model with that id
        """
        tracer = get_tracer()
        with tracer.start_as_current_span("llm.dispatch"):
            model = await self.model_router.get_model_by_id(model_id)
            if model is None:
                logger.warning("llm_model_not_found", model_id=model_id)
                raise ModelNotFoundError(model_id)

            record_routing_decision(model.id, "direct")
            request = NormalizedRequest(
                query=query,
                context=list(context or []),
                system_prompt=system_prompt,
                temperature=temperature,
                max_tokens=max_tokens,
                user=user,
            )
            return await self._dispatch(model, request)

    async def _dispatch(self, model: ModelDescriptor, request: NormalizedRequest) -> NormalizedResponse:
        set_span_attribute("llm.model_id", model.id)
        client = self.get_client_for_model(model)
        return await client.query(request)


_llm_service: Optional[LLMService] = None


def get_llm_service() -> LLMService:
    """Global service instance (owns the process-wide client cache)."""
    global _llm_service
    if _llm_service is None:
        _llm_service = LLMService()
    return _llm_service
