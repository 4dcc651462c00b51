"""Provider clients: one concrete class per provider family."""

from .anthropic_client import AnthropicClient
from .base import BaseLLMClient
from .local_client import LocalLLMClient
from .openai_client import OpenAIClient

__all__ = ["BaseLLMClient", "OpenAIClient", "AnthropicClient", "LocalLLMClient"]
