"""
Base AI Provider - Abstract interface for all LLM providers.

This module defines the contract that all AI providers must follow.
It ensures consistent behavior regardless of which provider is used.

Design Pattern: Strategy Pattern
================================
The base class defines the interface, and each provider implements it.
This allows the Intent Resolver to put any provider in the primary or
secondary slot without code changes.

Failure Contract:
=================
A provider either returns an AIResponse holding the raw completion text,
or raises ProviderError with one of five kinds. It never hands back
partial or garbled text as a success.

Example:
    provider = GroqProvider(settings.provider_config("groq"))
    response = await provider.complete("Scroll down", system_prompt=SYSTEM)
    print(response.content)
"""

import json
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Any, Dict
from enum import Enum
import logging

from app.core.config import ProviderConfig

# Configure logging for AI operations
logger = logging.getLogger("voiceweb.ai")


class ProviderType(str, Enum):
    """Enum of supported AI providers."""
    GROQ = "groq"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"


class ProviderErrorKind(str, Enum):
    """Classification of every non-success provider outcome."""
    TIMEOUT = "timeout"
    AUTH_ERROR = "auth_error"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    NETWORK_ERROR = "network_error"


class ProviderError(Exception):
    """
    Raised by a provider when a completion cannot be produced.

    Attributes:
        kind: What went wrong (timeout, auth, rate limit, server, network)
        provider: Name of the provider that failed
        status_code: HTTP status if the failure came from an HTTP response
    """

    def __init__(
        self,
        kind: ProviderErrorKind,
        message: str,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.provider = provider
        self.status_code = status_code

    def __str__(self) -> str:
        base = super().__str__()
        return f"[{self.kind.value}] {base}"


def classify_status(status_code: int) -> ProviderErrorKind:
    """Map an HTTP status code to a ProviderErrorKind."""
    if status_code in (401, 403):
        return ProviderErrorKind.AUTH_ERROR
    if status_code == 429:
        return ProviderErrorKind.RATE_LIMITED
    if status_code in (408, 504):
        return ProviderErrorKind.TIMEOUT
    return ProviderErrorKind.SERVER_ERROR


@dataclass
class TokenUsage:
    """
    Token usage statistics for an AI request.

    Used for:
    - Cost tracking (tokens = money)
    - Rate limiting awareness
    """
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __post_init__(self):
        """Calculate total if not provided."""
        if self.total_tokens == 0:
            self.total_tokens = self.prompt_tokens + self.completion_tokens


@dataclass(frozen=True)
class CompletionOptions:
    """Per-call generation options."""
    temperature: float = 0.1
    max_tokens: int = 256
    json_mode: bool = True


@dataclass
class AIResponse:
    """
    Standardized response from any AI provider.

    Attributes:
        content: The generated raw text (expected to be JSON for intents)
        provider: Which provider generated this response
        model: The specific model used
        usage: Token usage statistics
        latency_ms: How long the request took
        metadata: Additional provider-specific data
        created_at: Timestamp of the response
    """
    content: str
    provider: ProviderType
    model: str
    usage: TokenUsage = field(default_factory=TokenUsage)
    latency_ms: float = 0.0
    raw_response: Optional[Any] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "content": self.content[:100] + "..." if len(self.content) > 100 else self.content,
            "provider": self.provider.value,
            "model": self.model,
            "tokens": {
                "prompt": self.usage.prompt_tokens,
                "completion": self.usage.completion_tokens,
                "total": self.usage.total_tokens,
            },
            "latency_ms": self.latency_ms,
            "created_at": self.created_at.isoformat(),
        }


class AIProvider(ABC):
    """
    Abstract base class for AI providers.

    Responsibilities:
    - Send a prompt to a completion endpoint
    - Classify every failure into a ProviderError
    - Track token usage and latency

    Usage:
        class MyProvider(AIProvider):
            async def _call(self, prompt, system_prompt, options):
                # Implementation here
                pass
    """

    provider_type: ProviderType

    def __init__(self, config: ProviderConfig):
        self.config = config
        self.model = config.model

    @property
    def name(self) -> str:
        return self.provider_type.value

    @property
    def is_configured(self) -> bool:
        """A provider without credentials is skipped, never called."""
        return self.config.is_configured

    @property
    def timeout_s(self) -> float:
        return self.config.timeout_s

    async def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        options: Optional[CompletionOptions] = None,
    ) -> AIResponse:
        """
        Generate a completion and return the raw text.

        Args:
            prompt: The user message (instructions + text + context)
            system_prompt: Optional system instructions
            options: Temperature, token limit, JSON mode

        Returns:
            AIResponse with the raw completion text

        Raises:
            ProviderError: on missing credentials, HTTP failure, timeout,
                network failure or a malformed response envelope
        """
        options = options or CompletionOptions()
        if not self.is_configured:
            raise ProviderError(
                ProviderErrorKind.AUTH_ERROR,
                f"{self.name} API key not configured",
                provider=self.name,
            )

        start_time = time.time()
        try:
            response = await self._call(prompt, system_prompt, options)
        except ProviderError:
            raise
        except Exception as e:
            error = self._classify_exception(e)
            logger.warning(
                f"{self.name} request failed after {self._measure_latency(start_time):.0f}ms: {error}"
            )
            raise error from e

        response.latency_ms = self._measure_latency(start_time)
        logger.info(
            f"{self.name} request completed in {response.latency_ms:.0f}ms, "
            f"tokens: {response.usage.total_tokens}"
        )
        logger.debug(f"{self.name} response: {json.dumps(response.to_dict())}")
        return response

    @abstractmethod
    async def _call(
        self,
        prompt: str,
        system_prompt: Optional[str],
        options: CompletionOptions,
    ) -> AIResponse:
        """Perform the SDK call. May raise SDK exceptions or ProviderError."""
        pass

    @abstractmethod
    def _classify_exception(self, exc: Exception) -> ProviderError:
        """Translate an SDK exception into a ProviderError."""
        pass

    def _measure_latency(self, start_time: float) -> float:
        """Calculate latency in milliseconds."""
        return (time.time() - start_time) * 1000

    def _malformed(self, detail: str) -> ProviderError:
        return ProviderError(
            ProviderErrorKind.SERVER_ERROR,
            f"Malformed response envelope: {detail}",
            provider=self.name,
        )

    async def probe(self) -> AIResponse:
        """
        Send a one-token request to validate credentials and connectivity.

        Raises:
            ProviderError: with the classified failure kind
        """
        return await self.complete(
            prompt="test",
            options=CompletionOptions(temperature=0, max_tokens=1, json_mode=False),
        )
