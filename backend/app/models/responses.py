"""
Response models for API endpoints.

These models define the structure of API responses.
"""
from typing import List, Optional

from pydantic import BaseModel


class SourceDoc(BaseModel):
    """Retrieved document as shown to the client (no full content)."""
    id: str
    title: str
    snippet: str
    source: str
    score: float


class TokenUsage(BaseModel):
    total: Optional[int] = None
    prompt: Optional[int] = None
    completion: Optional[int] = None


class RagQueryResponse(BaseModel):
    response: str
    model: str
    model_id: Optional[str] = None
    source_docs: List[SourceDoc]
    tokens: TokenUsage
    time_taken_ms: int


class ModelSummary(BaseModel):
    """Entry of GET /rag/models."""
    id: str
    name: str
    provider: str
    kind: str
    capabilities: List[str] = []


# OpenAI-compatible envelopes

class OpenAIUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatCompletionMessage(BaseModel):
    role: str = "assistant"
    content: str


class ChatCompletionChoice(BaseModel):
    index: int = 0
    message: ChatCompletionMessage
    finish_reason: str = "stop"


class ChatCompletionResponse(BaseModel):
    id: str
    object: str = "chat.completion"
    created: int
    model: str
    choices: List[ChatCompletionChoice]
    usage: OpenAIUsage


class CompletionChoice(BaseModel):
    text: str
    index: int = 0
    logprobs: Optional[dict] = None
    finish_reason: str = "stop"


class CompletionResponse(BaseModel):
    id: str
    object: str = "text_completion"
    created: int
    model: str
    choices: List[CompletionChoice]
    usage: OpenAIUsage


class OpenAIModel(BaseModel):
    id: str
    object: str = "model"
    created: int = 0
    owned_by: str


class OpenAIModelList(BaseModel):
    object: str = "list"
    data: List[OpenAIModel]
