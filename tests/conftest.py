"""
Test configuration and fixtures for pytest.

This module provides shared fixtures used across all tests:
- FakeProvider: an AIProvider that answers from memory (no network)
- Resolver fixtures (fallback-only and provider-backed)
- Test client (FastAPI TestClient with the resolver overridden)
"""

import asyncio
from typing import Generator, List, Optional

import pytest
from fastapi.testclient import TestClient

from app.core.config import ProviderConfig
from app.ai.intent.resolver import IntentResolver, ProviderSlot
from app.ai.intent.schemas import ProviderStage
from app.ai.monitoring import AIMonitor, ai_monitor
from app.ai.providers.base import (
    AIProvider,
    AIResponse,
    CompletionOptions,
    ProviderError,
    ProviderErrorKind,
    ProviderType,
    TokenUsage,
)
from app.deps import get_resolver
from app.main import app


# ---------------------------------------------------------------------------
# FAKE PROVIDER
# ---------------------------------------------------------------------------

class FakeProvider(AIProvider):
    """
    In-memory provider for resolver and HTTP tests.

    - reply: content returned on success
    - error: exception raised instead of replying
    - delay: seconds to sleep before answering (for timeout tests)
    """

    def __init__(
        self,
        name: str = "groq",
        reply: Optional[str] = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
        configured: bool = True,
        timeout_s: float = 1.0,
    ):
        super().__init__(ProviderConfig(
            name=name,
            model=f"{name}-test-model",
            api_key="test-key-0123456789abcdef" if configured else "",
            timeout_s=timeout_s,
        ))
        self.provider_type = ProviderType(name)
        self.reply = reply
        self.error = error
        self.delay = delay
        self.prompts: List[str] = []

    async def _call(self, prompt: str, system_prompt: Optional[str], options: CompletionOptions) -> AIResponse:
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return AIResponse(
            content=self.reply if self.reply is not None else "",
            provider=self.provider_type,
            model=self.model,
            usage=TokenUsage(prompt_tokens=40, completion_tokens=12),
        )

    def _classify_exception(self, exc: Exception) -> ProviderError:
        return ProviderError(ProviderErrorKind.SERVER_ERROR, str(exc), provider=self.name)


def make_resolver(
    primary: AIProvider,
    secondary: AIProvider,
    monitor: Optional[AIMonitor] = None,
) -> IntentResolver:
    return IntentResolver(
        slots=[
            ProviderSlot(ProviderStage.PRIMARY, primary),
            ProviderSlot(ProviderStage.SECONDARY, secondary),
        ],
        monitor=monitor,
    )


# ---------------------------------------------------------------------------
# FIXTURES
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def reset_ai_monitor() -> Generator[None, None, None]:
    """The global monitor keeps metrics across requests; start each test clean."""
    ai_monitor.reset()
    yield
    ai_monitor.reset()


@pytest.fixture
def monitor() -> AIMonitor:
    return AIMonitor()


@pytest.fixture
def fallback_only_resolver() -> IntentResolver:
    """Resolver whose providers have no credentials."""
    return make_resolver(
        FakeProvider("groq", configured=False),
        FakeProvider("openai", configured=False),
    )


@pytest.fixture
def resolver(fallback_only_resolver: IntentResolver) -> IntentResolver:
    """The resolver served by the test client; override per test module if needed."""
    return fallback_only_resolver


@pytest.fixture(scope="function")
def client(resolver: IntentResolver) -> Generator[TestClient, None, None]:
    """
    Create a test client with the resolver replaced.

    Overrides the get_resolver dependency so no real SDK client is used.
    """
    app.dependency_overrides[get_resolver] = lambda: resolver

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
