"""
Error taxonomy for routing and dispatch.

Routing, dispatch and client-construction errors abort only the request that
raised them. Provider call failures are NOT wrapped: the underlying
httpx exception propagates to the caller unchanged.
"""
from typing import Optional


class RagRouteError(Exception):
    """Base class for routing/dispatch errors."""


class ConfigurationError(RagRouteError):
    """Raised when a model lacks the credential or endpoint its client needs."""

    def __init__(self, message: str, model_id: Optional[str] = None):
        super().__init__(message)
        self.model_id = model_id


class UnsupportedProviderError(RagRouteError):
    """Raised for a commercial model whose provider tag has no client."""

    def __init__(self, provider: str, model_id: Optional[str] = None):
        super().__init__(f"Unsupported commercial API provider: {provider}")
        self.provider = provider
        self.model_id = model_id


class NoActiveModelsError(RagRouteError):
    """Raised when the router finds no active model to select."""

    def __init__(self, message: str = "No active models available"):
        super().__init__(message)


class ModelNotFoundError(RagRouteError):
    """Raised when a direct model lookup by id finds nothing."""

    def __init__(self, model_id: str):
        super().__init__(f"Model with ID {model_id} not found")
        self.model_id = model_id


class ClassificationDataLoadError(Exception):
    """
    Raised by the keyword table loader.

    Never escapes the classifier: it is caught and the built-in tables
    are used instead.
    """

    def __init__(self, path: str, message: str):
        super().__init__(f"{message} ({path})")
        self.path = path


class StoreUnavailableError(RagRouteError):
    """Raised when a store collaborator has no database connection."""

    def __init__(self, store: str):
        super().__init__(f"{store} is not available: database connection failed")
        self.store = store
