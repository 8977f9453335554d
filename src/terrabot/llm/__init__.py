"""LLM provider interfaces."""

from .provider import (
    AuthMissing,
    GeminiProvider,
    GroqProvider,
    HttpStatusError,
    LLMProvider,
    MalformedResponse,
    OpenAIProvider,
    ProviderError,
    ProviderTimeout,
    StaticResponseProvider,
    create_provider,
)

__all__ = [
    "LLMProvider",
    "ProviderError",
    "ProviderTimeout",
    "AuthMissing",
    "HttpStatusError",
    "MalformedResponse",
    "StaticResponseProvider",
    "OpenAIProvider",
    "GroqProvider",
    "GeminiProvider",
    "create_provider",
]
