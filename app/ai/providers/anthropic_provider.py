"""
Anthropic Provider - Claude client.

Claude can fill either slot of the fallback chain when configured via
PRIMARY_PROVIDER / SECONDARY_PROVIDER. It has no native JSON mode, so the
JSON instruction goes into the system prompt; the normalizer copes with
code fences and stray prose around the object.

API Documentation: https://docs.anthropic.com/en/api
"""

import logging
from typing import Optional

import anthropic
from anthropic import AsyncAnthropic

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

logger = logging.getLogger("voiceweb.ai.anthropic")


class AnthropicProvider(AIProvider):
    """
    Anthropic Claude provider implementation.

    Usage:
        provider = AnthropicProvider(settings.provider_config("anthropic"))
        response = await provider.complete("Click the login button")
    """

    provider_type = ProviderType.ANTHROPIC

    def __init__(self, config: ProviderConfig):
        super().__init__(config)

        if self.is_configured:
            self._client = AsyncAnthropic(
                api_key=config.api_key,
                timeout=config.timeout_s,
                max_retries=0,
            )
            logger.info(f"Anthropic provider initialized with model: {self.model}")
        else:
            self._client = None
            logger.warning("Anthropic API key not configured - provider unavailable")

    async def _call(
        self,
        prompt: str,
        system_prompt: Optional[str],
        options: CompletionOptions,
    ) -> AIResponse:
        system = system_prompt or ""
        if options.json_mode:
            system += (
                "\n\nIMPORTANT: You must respond with valid JSON only. No explanation, "
                "no markdown code blocks - just the raw JSON object."
            )

        request_params = {
            "model": self.model,
            "max_tokens": options.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": options.temperature,
        }
        if system.strip():
            request_params["system"] = system.strip()

        response = await self._client.messages.create(**request_params)

        # Claude returns a list of content blocks
        if not getattr(response, "content", None):
            raise self._malformed("no content blocks")
        content = "".join(block.text for block in response.content if hasattr(block, "text"))
        if options.json_mode and not content.strip():
            raise self._malformed("empty text content")

        usage = TokenUsage(
            prompt_tokens=response.usage.input_tokens if response.usage else 0,
            completion_tokens=response.usage.output_tokens if response.usage else 0,
        )

        return AIResponse(
            content=content.strip(),
            provider=self.provider_type,
            model=self.model,
            usage=usage,
            raw_response=response,
        )

    def _classify_exception(self, exc: Exception) -> ProviderError:
        if isinstance(exc, anthropic.APITimeoutError):
            kind = ProviderErrorKind.TIMEOUT
            status_code = None
        elif isinstance(exc, anthropic.APIConnectionError):
            kind = ProviderErrorKind.NETWORK_ERROR
            status_code = None
        elif isinstance(exc, anthropic.APIStatusError):
            status_code = exc.status_code
            kind = classify_status(status_code)
        else:
            status_code = None
            kind = ProviderErrorKind.SERVER_ERROR

        return ProviderError(kind, str(exc), provider=self.name, status_code=status_code)
