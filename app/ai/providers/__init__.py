"""
AI Providers Module - Unified clients for multiple LLM providers.

This module provides consistent interfaces to different AI providers:
- Groq (Llama models, OpenAI-compatible; default primary)
- OpenAI (GPT models; default secondary)
- Anthropic (Claude; selectable for either slot)

Each provider has the same interface, making them interchangeable:
    response = await provider.complete(prompt, system_prompt, options)
"""

from typing import Dict, Type

from app.core.config import ConfigurationError, ProviderConfig
from app.ai.providers.base import (
    AIProvider,
    AIResponse,
    CompletionOptions,
    ProviderError,
    ProviderErrorKind,
    ProviderType,
    TokenUsage,
)
from app.ai.providers.openai_provider import OpenAIProvider
from app.ai.providers.groq_provider import GroqProvider
from app.ai.providers.anthropic_provider import AnthropicProvider

PROVIDER_CLASSES: Dict[str, Type[AIProvider]] = {
    ProviderType.GROQ.value: GroqProvider,
    ProviderType.OPENAI.value: OpenAIProvider,
    ProviderType.ANTHROPIC.value: AnthropicProvider,
}


def build_provider(config: ProviderConfig) -> AIProvider:
    """Instantiate the provider class registered under config.name."""
    try:
        provider_class = PROVIDER_CLASSES[config.name]
    except KeyError:
        raise ConfigurationError(f"Unknown AI provider '{config.name}'") from None
    return provider_class(config)


__all__ = [
    "AIProvider",
    "AIResponse",
    "AnthropicProvider",
    "CompletionOptions",
    "GroqProvider",
    "OpenAIProvider",
    "PROVIDER_CLASSES",
    "ProviderError",
    "ProviderErrorKind",
    "ProviderType",
    "TokenUsage",
    "build_provider",
]
