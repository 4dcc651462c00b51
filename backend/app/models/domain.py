"""
Domain models shared by the classifier, router, dispatcher and stores.

ModelDescriptor and RoutingRule rows are owned by the stores; the routing
core only reads them, so both are frozen.
"""
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ModelKind(str, Enum):
    SELF_HOSTED = "open_source"
    COMMERCIAL_API = "commercial_api"


# Only these provider tags have a commercial client; self-hosted models
# (llama, mistral, qwen, custom, ...) all go through the local client.
PROVIDER_OPENAI = "openai"
PROVIDER_ANTHROPIC = "anthropic"

# Routing strategy tags; stored with the rule, not used to select models
ROUTING_STRATEGIES = {"content_based", "cost_based", "load_based", "user_based", "failover"}


class ModelDescriptor(BaseModel):
    """A configured backend model."""

    model_config = ConfigDict(frozen=True, extra="ignore", protected_namespaces=())

    id: str
    name: str
    description: str = ""
    kind: ModelKind
    provider: str
    model_name: str = Field(..., description="Concrete provider model identifier, e.g. gpt-4-turbo")
    context_window: int = Field(4096, gt=0)
    max_tokens: int = Field(1024, gt=0)
    temperature: float = Field(0.7, ge=0.0, le=2.0)
    is_active: bool = True
    priority: int = Field(100, description="Lower value is tried first")
    capabilities: List[str] = Field(default_factory=list)
    default_system_prompt: Optional[str] = None
    endpoint: Optional[str] = None
    api_key: Optional[str] = Field(None, repr=False)
    api_version: Optional[str] = None
    cost_per_1k_tokens: float = 0.0
    rate_limit_per_minute: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Condition(BaseModel):
    """Declarative rule condition: field, operator, comparison value."""

    model_config = ConfigDict(frozen=True)

    field: str
    operator: str
    value: Any = None


class RoutingRule(BaseModel):
    """Priority-ordered, condition-gated mapping to candidate models."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    name: str = ""
    description: str = ""
    strategy: str = "content_based"
    is_active: bool = True
    priority: int = 100
    conditions: List[Condition] = Field(default_factory=list)
    target_model_ids: List[str] = Field(default_factory=list)
    fallback_model_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class QueryClassification(BaseModel):
    """Per-query heuristic scores. Never persisted."""

    complexity: float = Field(..., ge=1.0, le=10.0)
    sensitivity: float = Field(..., ge=0.0, le=10.0)
    category: str = "general"
    estimated_tokens: int = Field(..., ge=1)
    requires_code: bool = False
    requires_creativity: bool = False
    requires_factuality: bool = False


class Caller(BaseModel):
    """Authenticated caller record supplied by the identity gateway."""

    model_config = ConfigDict(frozen=True)

    id: str
    role: str = "user"
    department_id: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
