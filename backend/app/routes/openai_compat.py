"""
OpenAI-compatible endpoints.

POST /v1/chat/completions
POST /v1/completions
GET  /v1/models
GET  /v1/models/{model_id}

`model` absent or "auto" routes the query; any other value pins that model.
Streaming is not supported. Errors use OpenAI's
{"error": {"message", "type", "code"}} shape (rendered by the app's
exception handlers).
"""
import asyncio
import time
import uuid
from typing import List, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException

from app.core.logging import get_logger
from app.models.domain import Caller
from app.models.requests import ChatCompletionRequest, ChatMessage, CompletionRequest
from app.models.responses import (
    ChatCompletionChoice,
    ChatCompletionMessage,
    ChatCompletionResponse,
    CompletionChoice,
    CompletionResponse,
    OpenAIModel,
    OpenAIModelList,
    OpenAIUsage,
)
from app.routes.deps import get_caller
from app.services.llm.schema import NormalizedResponse
from app.services.llm.service import LLMService, get_llm_service
from app.services.stores.model_store import ModelStore, get_model_store

logger = get_logger(__name__)

router = APIRouter()

AUTO_MODEL_ID = "auto"
VALID_ROLES = {"system", "user", "assistant", "function", "tool"}
CONTENT_OPTIONAL_ROLES = {"function", "tool"}


def openai_error(
    status_code: int,
    message: str,
    error_type: str = "invalid_request_error",
    code: Optional[str] = None,
) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail={"message": message, "type": error_type, "code": code},
    )


def validate_sampling(temperature: Optional[float], max_tokens: Optional[int]) -> Optional[str]:
    if temperature is not None and not 0 <= temperature <= 2:
        return "temperature must be between 0 and 2"
    if max_tokens is not None and max_tokens <= 0:
        return "max_tokens must be a positive integer"
    return None


def validate_chat_request(body: ChatCompletionRequest) -> Optional[str]:
    """Returns the first validation error message, or None."""
    if not body.messages:
        return "messages must be a non-empty array"

    for index, message in enumerate(body.messages):
        if message.role not in VALID_ROLES:
            return f"messages[{index}].role must be one of {sorted(VALID_ROLES)}"
        if message.content is None and message.role not in CONTENT_OPTIONAL_ROLES:
            return f"messages[{index}].content is required"

    if not any(message.role == "user" for message in body.messages):
        return "messages must contain at least one user message"

    return validate_sampling(body.temperature, body.max_tokens)


def split_messages(messages: List[ChatMessage]) -> Tuple[str, Optional[str], List[str]]:
    """
    Map a chat transcript onto (query, system_prompt, context).

    query: last user message; system_prompt: first system message;
    context: every other non-system message as "role: content".
    """
    query_index = max(i for i, message in enumerate(messages) if message.role == "user")
    query = messages[query_index].content or ""

    system_prompt = next(
        (message.content for message in messages if message.role == "system"),
        None,
    )

    context = [
        f"{message.role}: {message.content or ''}"
        for i, message in enumerate(messages)
        if message.role != "system" and i != query_index
    ]
    return query, system_prompt, context


def _usage(result: NormalizedResponse) -> OpenAIUsage:
    return OpenAIUsage(
        prompt_tokens=result.prompt_tokens or 0,
        completion_tokens=result.completion_tokens or 0,
        total_tokens=result.total_tokens or 0,
    )


def format_chat_completion(result: NormalizedResponse) -> ChatCompletionResponse:
    return ChatCompletionResponse(
        id=f"chatcmpl-{uuid.uuid4().hex}",
        created=int(time.time()),
        model=result.model,
        choices=[
            ChatCompletionChoice(
                message=ChatCompletionMessage(content=result.text),
                finish_reason=result.finish_reason or "stop",
            )
        ],
        usage=_usage(result),
    )


def format_completion(result: NormalizedResponse) -> CompletionResponse:
    return CompletionResponse(
        id=f"cmpl-{uuid.uuid4().hex}",
        created=int(time.time()),
        model=result.model,
        choices=[CompletionChoice(text=result.text, finish_reason=result.finish_reason or "stop")],
        usage=_usage(result),
    )


async def _run(
    llm: LLMService,
    caller: Caller,
    model: Optional[str],
    query: str,
    context: List[str],
    system_prompt: Optional[str],
    user: Optional[str],
    temperature: Optional[float],
    max_tokens: Optional[int],
) -> NormalizedResponse:
    if model and model != AUTO_MODEL_ID:
        return await llm.query_with_model(
            model,
            query,
            context=context,
            system_prompt=system_prompt,
            user=user or caller.id,
            temperature=temperature,
            max_tokens=max_tokens,
        )
    return await llm.execute_query(
        query,
        context,
        caller,
        system_prompt=system_prompt,
        temperature=temperature,
        max_tokens=max_tokens,
    )


@router.post("/chat/completions", response_model=ChatCompletionResponse)
async def chat_completions(
    body: ChatCompletionRequest,
    caller: Caller = Depends(get_caller),
    llm: LLMService = Depends(get_llm_service),
):
    if body.stream:
        raise openai_error(400, "Streaming is not supported", code="unsupported_mode")

    error = validate_chat_request(body)
    if error:
        logger.warning("openai_chat_invalid_request", error=error)
        raise openai_error(400, error)

    query, system_prompt, context = split_messages(body.messages)
    result = await _run(
        llm, caller, body.model, query, context, system_prompt,
        body.user, body.temperature, body.max_tokens,
    )
    logger.info(
        "openai_chat_completed",
        requested_model=body.model,
        model_id=result.model_id,
        messages=len(body.messages),
    )
    return format_chat_completion(result)


@router.post("/completions", response_model=CompletionResponse)
async def completions(
    body: CompletionRequest,
    caller: Caller = Depends(get_caller),
    llm: LLMService = Depends(get_llm_service),
):
    if body.stream:
        raise openai_error(400, "Streaming is not supported", code="unsupported_mode")

    prompt = "\n".join(body.prompt) if isinstance(body.prompt, list) else body.prompt
    if not prompt:
        raise openai_error(400, "prompt is required")

    error = validate_sampling(body.temperature, body.max_tokens)
    if error:
        raise openai_error(400, error)

    result = await _run(
        llm, caller, body.model, prompt, [], None,
        body.user, body.temperature, body.max_tokens,
    )
    logger.info("openai_completion_completed", requested_model=body.model, model_id=result.model_id)
    return format_completion(result)


def _auto_entry() -> OpenAIModel:
    return OpenAIModel(id=AUTO_MODEL_ID, owned_by="ragroute")


def _to_openai_model(model) -> OpenAIModel:
    created = int(model.created_at.timestamp()) if model.created_at else 0
    return OpenAIModel(id=model.id, created=created, owned_by=model.provider)


@router.get("/models", response_model=OpenAIModelList)
async def list_models(
    caller: Caller = Depends(get_caller),
    model_store: ModelStore = Depends(get_model_store),
):
    models = await asyncio.to_thread(model_store.list_active_models)
    return OpenAIModelList(data=[_auto_entry()] + [_to_openai_model(model) for model in models])


@router.get("/models/{model_id}", response_model=OpenAIModel)
async def get_model(
    model_id: str,
    caller: Caller = Depends(get_caller),
    model_store: ModelStore = Depends(get_model_store),
):
    if model_id == AUTO_MODEL_ID:
        return _auto_entry()

    model = await asyncio.to_thread(model_store.get_model_by_id, model_id)
    if model is None or not model.is_active:
        raise openai_error(404, f"Model with ID {model_id} not found", code="model_not_found")
    return _to_openai_model(model)
