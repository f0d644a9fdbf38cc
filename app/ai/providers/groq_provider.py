"""
Groq Provider - the default primary provider.

Groq serves Llama models behind an OpenAI-compatible Chat Completions API,
so this provider is the OpenAI client pointed at Groq's base URL.
Low latency makes it the first choice for interactive voice commands.

API Documentation: https://console.groq.com/docs/openai
"""

from app.ai.providers.base import ProviderType
from app.ai.providers.openai_provider import OpenAIProvider


class GroqProvider(OpenAIProvider):
    """Groq provider (OpenAI-compatible endpoint)."""

    provider_type = ProviderType.GROQ
