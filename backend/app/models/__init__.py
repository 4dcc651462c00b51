"""Pydantic models for the domain and the API surface."""

from .domain import Caller, Condition, ModelDescriptor, ModelKind, QueryClassification, RoutingRule
from .responses import RagQueryResponse, SourceDoc, TokenUsage

__all__ = [
    "Caller",
    "Condition",
    "ModelDescriptor",
    "ModelKind",
    "QueryClassification",
    "RoutingRule",
    "RagQueryResponse",
    "SourceDoc",
    "TokenUsage",
]
