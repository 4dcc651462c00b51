"""Document retrieval for grounding context."""

from .retrieval_service import RetrievalResult, RetrievalService, get_retrieval_service

__all__ = ["RetrievalResult", "RetrievalService", "get_retrieval_service"]
