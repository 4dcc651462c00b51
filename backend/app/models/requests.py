"""
Request bodies for API endpoints.
"""
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.domain import ROUTING_STRATEGIES, Condition, ModelKind


class RagQueryRequest(BaseModel):
    """POST /rag/query"""
    query: str = Field(..., min_length=1)
    system_prompt: Optional[str] = None
    model_id: Optional[str] = Field(None, description="Model id, or 'auto'/absent to route")
    accessible_doc_ids: Optional[List[str]] = None
    temperature: Optional[float] = Field(None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(None, gt=0)
    extra_context: Optional[Dict[str, Any]] = None


class ClassifyRequest(BaseModel):
    """POST /rag/classify"""
    query: str


# OpenAI-compatible bodies are validated in the route and reported in
# OpenAI's error shape.

class ChatMessage(BaseModel):
    role: str
    content: Optional[str] = None
    name: Optional[str] = None


class ChatCompletionRequest(BaseModel):
    """POST /v1/chat/completions"""
    model: Optional[str] = None
    messages: List[ChatMessage] = Field(default_factory=list)
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    stream: bool = False
    user: Optional[str] = None


class CompletionRequest(BaseModel):
    """POST /v1/completions"""
    model: Optional[str] = None
    prompt: Optional[Union[str, List[str]]] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    stream: bool = False
    user: Optional[str] = None


class ModelCreateRequest(BaseModel):
    """POST /admin/models"""
    model_config = ConfigDict(protected_namespaces=())

    id: Optional[str] = None
    name: str
    description: str = ""
    kind: ModelKind
    provider: str
    model_name: str
    context_window: int = Field(4096, gt=0)
    max_tokens: int = Field(1024, gt=0)
    temperature: float = Field(0.7, ge=0.0, le=2.0)
    is_active: bool = True
    priority: int = 100
    capabilities: List[str] = Field(default_factory=list)
    default_system_prompt: Optional[str] = None
    endpoint: Optional[str] = None
    api_key: Optional[str] = None
    api_version: Optional[str] = None
    cost_per_1k_tokens: float = 0.0
    rate_limit_per_minute: Optional[int] = None


class ModelUpdateRequest(BaseModel):
    """PUT /admin/models/{id} (only the fields sent are changed)"""
    model_config = ConfigDict(protected_namespaces=())

    name: Optional[str] = None
    description: Optional[str] = None
    kind: Optional[ModelKind] = None
    provider: Optional[str] = None
    model_name: Optional[str] = None
    context_window: Optional[int] = Field(None, gt=0)
    max_tokens: Optional[int] = Field(None, gt=0)
    temperature: Optional[float] = Field(None, ge=0.0, le=2.0)
    is_active: Optional[bool] = None
    priority: Optional[int] = None
    capabilities: Optional[List[str]] = None
    default_system_prompt: Optional[str] = None
    endpoint: Optional[str] = None
    api_key: Optional[str] = None
    api_version: Optional[str] = None
    cost_per_1k_tokens: Optional[float] = None
    rate_limit_per_minute: Optional[int] = None


def _check_strategy(value: Optional[str]) -> Optional[str]:
    if value is not None and value not in ROUTING_STRATEGIES:
        raise ValueError(f"strategy must be one of {sorted(ROUTING_STRATEGIES)}")
    return value


class RoutingRuleCreateRequest(BaseModel):
    """POST /admin/routing-rules"""
    id: Optional[str] = None
    name: str
    description: str = ""
    strategy: str = "content_based"
    is_active: bool = True
    priority: int = 100
    conditions: List[Condition] = Field(default_factory=list)
    target_model_ids: List[str] = Field(..., min_length=1)
    fallback_model_id: Optional[str] = None

    @field_validator("strategy")
    @classmethod
    def check_strategy(cls, value):
        return _check_strategy(value)


class RoutingRuleUpdateRequest(BaseModel):
    """PUT /admin/routing-rules/{id}"""
    name: Optional[str] = None
    description: Optional[str] = None
    strategy: Optional[str] = None
    is_active: Optional[bool] = None
    priority: Optional[int] = None
    conditions: Optional[List[Condition]] = None
    target_model_ids: Optional[List[str]] = None
    fallback_model_id: Optional[str] = None

    @field_validator("strategy")
    @classmethod
    def check_strategy(cls, value):
        return _check_strategy(value)


class ActiveToggleRequest(BaseModel):
    """PATCH .../active"""
    is_active: bool
