"""
OpenAI Provider - Chat Completions client.

Serves two roles:
- OpenAIProvider: api.openai.com, the default secondary provider
- Base class for any OpenAI-compatible endpoint (see groq_provider.py)

SDK retries are disabled (max_retries=0): the resolver gives every provider
exactly one attempt per request, and the caller is an interactive voice session.

API Documentation: https://platform.openai.com/docs/api-reference
"""

import logging
from typing import Optional

import openai
from openai import AsyncOpenAI

from app.core.config import ProviderConfig
from app.ai.providers.base import (
    AIProvider,
    AIResponse,
    CompletionOptions,
    ProviderError,
    ProviderErrorKind,
    ProviderType,
    TokenUsage,
    classify_status,
)

logger = logging.getLogger("voiceweb.ai.openai")


class OpenAIProvider(AIProvider):
    """
    OpenAI GPT provider implementation.

    Usage:
        provider = OpenAIProvider(settings.provider_config("openai"))
        response = await provider.complete(
            prompt="Scroll down",
            system_prompt="Return JSON with 'action'",
        )
    """

    provider_type = ProviderType.OPENAI

    def __init__(self, config: ProviderConfig):
        """
        Initialize the provider.

        Args:
            config: Endpoint, model, credential and timeout for this provider
        """
        super().__init__(config)

        if self.is_configured:
            self._client = AsyncOpenAI(
                api_key=config.api_key,
                base_url=config.base_url,
                timeout=config.timeout_s,
                max_retries=0,
            )
            logger.info(f"{self.name} provider initialized with model: {self.model}")
        else:
            self._client = None
            logger.warning(f"{self.name} API key not configured - provider unavailable")

    async def _call(
        self,
        prompt: str,
        system_prompt: Optional[str],
        options: CompletionOptions,
    ) -> AIResponse:
        messages = []
        if system_prompt:
            system_content = system_prompt
            if options.json_mode:
                system_content += "\n\nYou must respond with valid JSON only, no explanation."
            messages.append({"role": "system", "content": system_content})
        messages.append({"role": "user", "content": prompt})

        request = {
            "model": self.model,
            "messages": messages,
            "temperature": options.temperature,
            "max_tokens": options.max_tokens,
        }
        if options.json_mode:
            request["response_format"] = {"type": "json_object"}

        response = await self._client.chat.completions.create(**request)

        if not getattr(response, "choices", None):
            raise self._malformed("no choices")
        message = response.choices[0].message
        content = getattr(message, "content", None)
        if content is None or (options.json_mode and not content.strip()):
            raise self._malformed("empty message content")

        usage = TokenUsage(
            prompt_tokens=response.usage.prompt_tokens if response.usage else 0,
            completion_tokens=response.usage.completion_tokens if response.usage else 0,
        )

        return AIResponse(
            content=content,
            provider=self.provider_type,
            model=self.model,
            usage=usage,
            raw_response=response,
        )

    def _classify_exception(self, exc: Exception) -> ProviderError:
        # APITimeoutError subclasses APIConnectionError: check it first.
        if isinstance(exc, openai.APITimeoutError):
            kind = ProviderErrorKind.TIMEOUT
            status_code = None
        elif isinstance(exc, openai.APIConnectionError):
            kind = ProviderErrorKind.NETWORK_ERROR
            status_code = None
        elif isinstance(exc, openai.APIStatusError):
            status_code = exc.status_code
            kind = classify_status(status_code)
        elif isinstance(exc, openai.APIResponseValidationError):
            status_code = getattr(exc, "status_code", None)
            kind = ProviderErrorKind.SERVER_ERROR
        else:
            status_code = None
            kind = ProviderErrorKind.SERVER_ERROR

        return ProviderError(kind, str(exc), provider=self.name, status_code=status_code)
