"""Query classification and rule-based model routing."""

from .model_router import ModelRouter, get_model_router
from .query_classification import QueryClassifier, get_query_classifier

__all__ = ["ModelRouter", "get_model_router", "QueryClassifier", "get_query_classifier"]
