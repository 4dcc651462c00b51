"""
Provider-agnostic request/response shapes exchanged between LLMService
and the provider clients.
"""
from typing import List, Optional

from pydantic import BaseModel, Field


class NormalizedRequest(BaseModel):
    """What every provider client accepts."""

    query: str
    context: List[str] = Field(default_factory=list, description="Ordered context passages")
    system_prompt: Optional[str] = None
    temperature: Optional[float] = Field(None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(None, gt=0)
    user: Optional[str] = Field(None, description="Caller id, forwarded where the provider accepts it")


class NormalizedResponse(BaseModel):
    """What every provider client returns."""

    text: str
    model: str = Field(..., description="Provider model identifier that produced the text")
    model_id: Optional[str] = Field(None, description="ModelDescriptor id")
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None
    finish_reason: Optional[str] = None
    time_taken_ms: int = 0
