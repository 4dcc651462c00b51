"""
LLM dispatch package.

LLMService picks a provider client per model and normalizes the
request/response shapes across providers.
"""
