"""
Tests for AI Providers - Base classes and mocked SDK calls.

This module tests:
- TokenUsage / AIResponse dataclasses
- ProviderError classification from HTTP statuses and SDK exceptions
- OpenAI / Groq / Anthropic envelope handling
- build_provider registry

We mock the SDK clients to ensure tests are:
- Fast (no network calls)
- Reliable (no API flakiness)
- Free (no token costs)
"""

import json
import logging
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import anthropic
import httpx
import openai
import pytest

from app.core.config import ConfigurationError, ProviderConfig
from app.ai.providers import (
    AnthropicProvider,
    GroqProvider,
    OpenAIProvider,
    build_provider,
)
from app.ai.providers.base import (
    AIResponse,
    CompletionOptions,
    ProviderError,
    ProviderErrorKind,
    ProviderType,
    TokenUsage,
    classify_status,
)


def _request(url: str = "https://api.openai.com/v1/chat/completions") -> httpx.Request:
    return httpx.Request("POST", url)


def _response(status_code: int, url: str = "https://api.openai.com/v1/chat/completions") -> httpx.Response:
    return httpx.Response(status_code, request=_request(url))


def _openai_completion(content, prompt_tokens=30, completion_tokens=8):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens),
    )


@pytest.fixture
def openai_provider() -> OpenAIProvider:
    provider = OpenAIProvider(ProviderConfig(name="openai", model="gpt-4o-mini", api_key="sk-test"))
    provider._client = MagicMock()
    return provider


@pytest.fixture
def anthropic_provider() -> AnthropicProvider:
    provider = AnthropicProvider(
        ProviderConfig(name="anthropic", model="claude-3-5-haiku-latest", api_key="sk-ant-test")
    )
    provider._client = MagicMock()
    return provider


class TestTokenUsage:
    """Tests for TokenUsage dataclass."""

    def test_auto_calculate_total(self):
        """Test that total is auto-calculated if not provided."""
        usage = TokenUsage(prompt_tokens=100, completion_tokens=50)

        assert usage.total_tokens == 150

    def test_total_overrides_calculation(self):
        """Test that explicit total is not recalculated when it's non-zero."""
        usage = TokenUsage(prompt_tokens=100, completion_tokens=50, total_tokens=200)

        assert usage.total_tokens == 200


class TestAIResponse:
    """Tests for AIResponse dataclass."""

    def test_to_dict(self):
        """Test conversion to dictionary."""
        response = AIResponse(
            content='{"action": "scroll"}',
            provider=ProviderType.GROQ,
            model="llama-3.1-8b-instant",
            usage=TokenUsage(prompt_tokens=100, completion_tokens=50),
            latency_ms=200.0,
        )

        result = response.to_dict()

        assert result["provider"] == "groq"
        assert result["tokens"] == {"prompt": 100, "completion": 50, "total": 150}
        assert result["latency_ms"] == 200.0

    def test_to_dict_truncates_long_content(self):
        """Test that long content is truncated in to_dict."""
        response = AIResponse(content="x" * 200, provider=ProviderType.OPENAI, model="gpt-4o-mini")

        result = response.to_dict()

        assert len(result["content"]) == 103  # 100 chars + "..."

    def test_created_at_timestamp(self):
        before = datetime.now(timezone.utc)
        response = AIResponse(content="Test", provider=ProviderType.GROQ, model="test")
        after = datetime.now(timezone.utc)

        assert before <= response.created_at <= after


class TestProviderType:
    """Tests for ProviderType enum."""

    def test_all_providers_exist(self):
        assert ProviderType.GROQ.value == "groq"
        assert ProviderType.OPENAI.value == "openai"
        assert ProviderType.ANTHROPIC.value == "anthropic"
        assert len(ProviderType) == 3


class TestErrorClassification:
    """HTTP statuses and SDK exceptions map onto the five error kinds."""

    @pytest.mark.parametrize("status_code,kind", [
        (401, ProviderErrorKind.AUTH_ERROR),
        (403, ProviderErrorKind.AUTH_ERROR),
        (429, ProviderErrorKind.RATE_LIMITED),
        (408, ProviderErrorKind.TIMEOUT),
        (504, ProviderErrorKind.TIMEOUT),
        (500, ProviderErrorKind.SERVER_ERROR),
        (503, ProviderErrorKind.SERVER_ERROR),
    ])
    def test_classify_status(self, status_code, kind):
        assert classify_status(status_code) == kind

    def test_error_string_includes_kind(self):
        error = ProviderError(ProviderErrorKind.TIMEOUT, "took too long", provider="groq")

        assert str(error) == "[timeout] took too long"
        assert error.message == "took too long"

    def test_openai_rate_limit(self, openai_provider):
        exc = openai.RateLimitError("slow down", response=_response(429), body=None)

        error = openai_provider._classify_exception(exc)

        assert error.kind == ProviderErrorKind.RATE_LIMITED
        assert error.status_code == 429
        assert error.provider == "openai"

    def test_openai_auth(self, openai_provider):
        exc = openai.AuthenticationError("bad key", response=_response(401), body=None)

        assert openai_provider._classify_exception(exc).kind == ProviderErrorKind.AUTH_ERROR

    def test_openai_timeout_is_not_network(self, openai_provider):
        exc = openai.APITimeoutError(request=_request())

        assert openai_provider._classify_exception(exc).kind == ProviderErrorKind.TIMEOUT

    def test_openai_connection_error(self, openai_provider):
        exc = openai.APIConnectionError(request=_request())

        assert openai_provider._classify_exception(exc).kind == ProviderErrorKind.NETWORK_ERROR

    def test_openai_server_error(self, openai_provider):
        exc = openai.InternalServerError("boom", response=_response(500), body=None)

        assert openai_provider._classify_exception(exc).kind == ProviderErrorKind.SERVER_ERROR

    def test_anthropic_auth(self, anthropic_provider):
        url = "https://api.anthropic.com/v1/messages"
        exc = anthropic.AuthenticationError("bad key", response=_response(401, url), body=None)

        error = anthropic_provider._classify_exception(exc)

        assert error.kind == ProviderErrorKind.AUTH_ERROR
        assert error.provider == "anthropic"

    def test_anthropic_timeout(self, anthropic_provider):
        exc = anthropic.APITimeoutError(request=_request("https://api.anthropic.com/v1/messages"))

        assert anthropic_provider._classify_exception(exc).kind == ProviderErrorKind.TIMEOUT


class TestOpenAIProvider:
    """OpenAI-compatible Chat Completions calls with a mocked client."""

    @pytest.mark.asyncio
    async def test_complete_returns_raw_content(self, openai_provider):
        openai_provider._client.chat.completions.create = AsyncMock(
            return_value=_openai_completion('{"action": "scroll"}')
        )

        response = await openai_provider.complete("scroll down", system_prompt="Return JSON")

        assert response.content == '{"action": "scroll"}'
        assert response.provider == ProviderType.OPENAI
        assert response.usage.total_tokens == 38
        assert response.latency_ms >= 0

    @pytest.mark.asyncio
    async def test_json_mode_requests_json_object(self, openai_provider):
        create = AsyncMock(return_value=_openai_completion('{"action": "stop"}'))
        openai_provider._client.chat.completions.create = create

        await openai_provider.complete("stop", system_prompt="Return JSON")

        kwargs = create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["messages"][0]["role"] == "system"
        assert "valid JSON" in kwargs["messages"][0]["content"]
        assert kwargs["messages"][-1] == {"role": "user", "content": "stop"}

    @pytest.mark.asyncio
    async def test_options_are_forwarded(self, openai_provider):
        create = AsyncMock(return_value=_openai_completion("ok"))
        openai_provider._client.chat.completions.create = create

        await openai_provider.complete("ping", options=CompletionOptions(temperature=0, max_tokens=1, json_mode=False))

        kwargs = create.call_args.kwargs
        assert kwargs["max_tokens"] == 1
        assert kwargs["temperature"] == 0
        assert "response_format" not in kwargs

    @pytest.mark.asyncio
    async def test_no_choices_is_server_error(self, openai_provider):
        openai_provider._client.chat.completions.create = AsyncMock(
            return_value=SimpleNamespace(choices=[], usage=None)
        )

        with pytest.raises(ProviderError) as exc_info:
            await openai_provider.complete("scroll down")

        assert exc_info.value.kind == ProviderErrorKind.SERVER_ERROR
        assert "Malformed" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_empty_content_in_json_mode_is_server_error(self, openai_provider):
        openai_provider._client.chat.completions.create = AsyncMock(return_value=_openai_completion("   "))

        with pytest.raises(ProviderError) as exc_info:
            await openai_provider.complete("scroll down")

        assert exc_info.value.kind == ProviderErrorKind.SERVER_ERROR

    @pytest.mark.asyncio
    async def test_sdk_exception_is_classified(self, openai_provider):
        openai_provider._client.chat.completions.create = AsyncMock(
            side_effect=openai.RateLimitError("slow down", response=_response(429), body=None)
        )

        with pytest.raises(ProviderError) as exc_info:
            await openai_provider.complete("scroll down")

        assert exc_info.value.kind == ProviderErrorKind.RATE_LIMITED
        assert isinstance(exc_info.value.__cause__, openai.RateLimitError)

    @pytest.mark.asyncio
    async def test_unconfigured_provider_raises_auth_error(self):
        provider = OpenAIProvider(ProviderConfig(name="openai", model="gpt-4o-mini"))

        assert provider.is_configured is False
        with pytest.raises(ProviderError) as exc_info:
            await provider.complete("scroll down")

        assert exc_info.value.kind == ProviderErrorKind.AUTH_ERROR

    @pytest.mark.asyncio
    async def test_probe(self, openai_provider):
        create = AsyncMock(return_value=_openai_completion("o"))
        openai_provider._client.chat.completions.create = create

        response = await openai_provider.probe()

        assert response.content == "o"
        assert create.call_args.kwargs["max_tokens"] == 1

        openai_provider._client.chat.completions.create = AsyncMock(
            side_effect=openai.APIConnectionError(request=_request())
        )
        with pytest.raises(ProviderError) as exc_info:
            await openai_provider.probe()

        assert exc_info.value.kind == ProviderErrorKind.NETWORK_ERROR

    @pytest.mark.asyncio
    async def test_response_is_logged_at_debug(self, openai_provider, caplog):
        openai_provider._client.chat.completions.create = AsyncMock(
            return_value=_openai_completion('{"action": "stop"}')
        )

        with caplog.at_level(logging.DEBUG, logger="voiceweb.ai"):
            await openai_provider.complete("stop")

        record = caplog.records[-1]
        payload = json.loads(record.getMessage().split("response: ", 1)[1])
        assert record.levelno == logging.DEBUG
        assert payload["model"] == "gpt-4o-mini"
        assert payload["tokens"] == {"prompt": 30, "completion": 8, "total": 38}


class TestGroqProvider:
    """Groq is the OpenAI client pointed at Groq's base URL."""

    def test_groq_identity(self):
        provider = GroqProvider(ProviderConfig(
            name="groq",
            model="llama-3.1-8b-instant",
            api_key="gsk_" + "a" * 30,
            base_url="https://api.groq.com/openai/v1",
            timeout_s=8.0,
        ))

        assert provider.name == "groq"
        assert provider.timeout_s == 8.0
        assert isinstance(provider, OpenAIProvider)
        assert str(provider._client.base_url).startswith("https://api.groq.com/openai/v1")
        assert provider._client.max_retries == 0

    @pytest.mark.asyncio
    async def test_groq_response_is_tagged_groq(self):
        provider = GroqProvider(ProviderConfig(name="groq", model="llama-3.1-8b-instant", api_key="gsk_" + "a" * 30))
        provider._client = MagicMock()
        provider._client.chat.completions.create = AsyncMock(return_value=_openai_completion('{"action": "refresh"}'))

        response = await provider.complete("reload")

        assert response.provider == ProviderType.GROQ


class TestAnthropicProvider:
    """Claude Messages API calls with a mocked client."""

    @pytest.mark.asyncio
    async def test_complete_joins_text_blocks(self, anthropic_provider):
        create = AsyncMock(return_value=SimpleNamespace(
            content=[SimpleNamespace(text='{"action": '), SimpleNamespace(text='"stop"}')],
            usage=SimpleNamespace(input_tokens=20, output_tokens=6),
        ))
        anthropic_provider._client.messages.create = create

        response = await anthropic_provider.complete("stop reading", system_prompt="Return JSON")

        assert response.content == '{"action": "stop"}'
        assert response.usage.total_tokens == 26
        assert "valid JSON" in create.call_args.kwargs["system"]

    @pytest.mark.asyncio
    async def test_no_content_blocks_is_server_error(self, anthropic_provider):
        anthropic_provider._client.messages.create = AsyncMock(
            return_value=SimpleNamespace(content=[], usage=None)
        )

        with pytest.raises(ProviderError) as exc_info:
            await anthropic_provider.complete("stop")

        assert exc_info.value.kind == ProviderErrorKind.SERVER_ERROR


class TestBuildProvider:
    """The registry maps provider names onto classes."""

    @pytest.mark.parametrize("name,cls", [
        ("groq", GroqProvider),
        ("openai", OpenAIProvider),
        ("anthropic", AnthropicProvider),
    ])
    def test_known_providers(self, name, cls):
        provider = build_provider(ProviderConfig(name=name, model="m"))

        assert type(provider) is cls
        assert provider.is_configured is False

    def test_unknown_provider(self):
        with pytest.raises(ConfigurationError):
            build_provider(ProviderConfig(name="gemini", model="m"))
