"""
Intent Resolver - Orchestrates providers and the fallback parser.

Resolution Chain:
=================

    TryPrimary ──fail──► TrySecondary ──fail──► TryFallback ──► Resolved
        │ ok                 │ ok
        └────────────────────┴──────────────────────────────────► Resolved

- Each configured provider gets exactly one attempt, bounded by its own
  timeout. No retries, no backoff: the caller is a live voice session.
- Providers without credentials are skipped without a call.
- Provider errors, timeouts and normalization errors all fall through
  to the next stage.
- Providers are tried strictly in order, never concurrently; a racing
  call would spend quota on a result that may be thrown away.
- The fallback parser cannot fail, so resolve() always returns an Intent.

The resolver holds no per-request state; page context is passed in.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from typing import List, Optional, Sequence

from app.core.config import Settings
from app.ai.providers import AIProvider, CompletionOptions, ProviderError, ProviderErrorKind, build_provider
from app.ai.prompts.intent_prompts import INTENT_SYSTEM_PROMPT, build_intent_prompt
from app.ai.monitoring import AIMonitor, ai_monitor
from app.ai.intent.errors import NormalizationError
from app.ai.intent.fallback_parser import FallbackParser
from app.ai.intent.normalizer import IntentNormalizer
from app.ai.intent.schemas import (
    AttemptFailure,
    AttemptOutcome,
    AttemptStatus,
    AttemptSuccess,
    Intent,
    PageContext,
    ProviderStage,
    ResolutionAttempt,
    ResolutionResult,
)

logger = logging.getLogger("voiceweb.ai.resolver")


@dataclass(frozen=True)
class ProviderSlot:
    """A provider bound to its position in the chain."""
    stage: ProviderStage
    provider: AIProvider


class IntentResolver:
    """
    Resolves spoken text into an Intent.

    Usage:
        resolver = IntentResolver.from_settings(settings)
        result = await resolver.resolve("scroll down", PageContext(url="https://example.com"))
        print(result.intent.action, result.intent.provider_used)
    """

    def __init__(
        self,
        slots: Sequence[ProviderSlot],
        normalizer: Optional[IntentNormalizer] = None,
        fallback_parser: Optional[FallbackParser] = None,
        options: Optional[CompletionOptions] = None,
        monitor: Optional[AIMonitor] = None,
        max_context_elements: int = 50,
        system_prompt: str = INTENT_SYSTEM_PROMPT,
    ):
        self.slots = tuple(slots)
        self.normalizer = normalizer or IntentNormalizer()
        self.fallback_parser = fallback_parser or FallbackParser(normalizer=self.normalizer)
        self.options = options or CompletionOptions()
        self.monitor = monitor or ai_monitor
        self.max_context_elements = max_context_elements
        self.system_prompt = system_prompt

        configured = [f"{s.stage.value}={s.provider.name}" for s in self.slots if s.provider.is_configured]
        logger.info(f"Intent resolver ready, providers: {', '.join(configured) or 'none (fallback only)'}")

    @classmethod
    def from_settings(cls, settings: Settings, monitor: Optional[AIMonitor] = None) -> "IntentResolver":
        """Wire a resolver from the immutable application settings."""
        normalizer = IntentNormalizer(
            ai_default_confidence=settings.AI_DEFAULT_CONFIDENCE,
            fallback_default_confidence=settings.FALLBACK_CONFIDENCE,
            fallback_max_confidence=settings.FALLBACK_MAX_CONFIDENCE,
        )
        slots = [
            ProviderSlot(ProviderStage.PRIMARY, build_provider(settings.provider_config(settings.PRIMARY_PROVIDER))),
            ProviderSlot(ProviderStage.SECONDARY, build_provider(settings.provider_config(settings.SECONDARY_PROVIDER))),
        ]
        return cls(
            slots=slots,
            normalizer=normalizer,
            fallback_parser=FallbackParser(normalizer=normalizer, confidence=settings.FALLBACK_CONFIDENCE),
            options=CompletionOptions(
                temperature=settings.AI_TEMPERATURE,
                max_tokens=settings.AI_MAX_TOKENS,
            ),
            monitor=monitor,
            max_context_elements=settings.MAX_CONTEXT_ELEMENTS,
        )

    @property
    def has_configured_provider(self) -> bool:
        return any(slot.provider.is_configured for slot in self.slots)

    async def resolve(
        self,
        text: str,
        context: Optional[PageContext] = None,
        request_id: Optional[str] = None,
    ) -> ResolutionResult:
        """
        Resolve text into an Intent, trying each stage in order.

        Args:
            text: The transcribed command (callers validate it is non-empty)
            context: Read-only page context used to enrich the prompt
            request_id: Correlation id for logs; generated when omitted

        Returns:
            ResolutionResult with the intent and every attempt made
        """
        request_id = request_id or str(uuid.uuid4())
        start_time = time.time()
        attempts: List[ResolutionAttempt] = []
        intent: Optional[Intent] = None

        if text and text.strip():
            prompt = None
            for slot in self.slots:
                if prompt is None and slot.provider.is_configured:
                    prompt = build_intent_prompt(text.strip(), context, self.max_context_elements)
                outcome = await self._attempt(slot, text, prompt, request_id, context)
                attempts.append(outcome.attempt)
                if isinstance(outcome, AttemptSuccess):
                    intent = outcome.intent
                    break

        if intent is None:
            outcome = self._fallback(text, request_id)
            attempts.append(outcome.attempt)
            intent = outcome.intent

        processing_time_ms = (time.time() - start_time) * 1000
        self.monitor.track_intent(
            request_id=request_id,
            original_text=text or "",
            action=intent.action.value,
            provider_used=intent.provider_used.value,
            confidence=intent.confidence,
            target=intent.target,
            processing_time_ms=processing_time_ms,
        )

        return ResolutionResult(
            intent=intent,
            attempts=attempts,
            processing_time_ms=round(processing_time_ms, 2),
            request_id=request_id,
        )

    async def resolve_intent(self, text: str, context: Optional[PageContext] = None) -> Intent:
        """Resolve text and return only the Intent."""
        result = await self.resolve(text, context)
        return result.intent

    # -----------------------------------------------------------------------
    # STAGES
    # -----------------------------------------------------------------------

    async def _attempt(
        self,
        slot: ProviderSlot,
        text: str,
        prompt: Optional[str],
        request_id: str,
        context: Optional[PageContext],
    ) -> AttemptOutcome:
        provider = slot.provider

        if not provider.is_configured:
            attempt = ResolutionAttempt(
                stage=slot.stage,
                provider=provider.name,
                model=provider.model,
                status=AttemptStatus.SKIPPED,
            )
            self._track(request_id, attempt)
            return AttemptFailure(attempt=attempt)

        self.monitor.track_request(
            request_id=request_id,
            prompt=prompt,
            provider=provider.name,
            model=provider.model,
            session_id=context.session_id if context else None,
            metadata={"stage": slot.stage.value},
        )

        start_time = time.time()
        try:
            response = await asyncio.wait_for(
                provider.complete(prompt, system_prompt=self.system_prompt, options=self.options),
                timeout=provider.timeout_s,
            )
        except asyncio.TimeoutError:
            error = ProviderError(
                ProviderErrorKind.TIMEOUT,
                f"No response within {provider.timeout_s}s",
                provider=provider.name,
            )
            return self._provider_failure(slot, request_id, error, start_time)
        except ProviderError as e:
            return self._provider_failure(slot, request_id, e, start_time)
        except Exception as e:
            logger.error(f"Unexpected error from {provider.name}: {e}", exc_info=True)
            return self._unexpected_failure(slot, request_id, e, start_time)

        self.monitor.track_response_from_ai_response(request_id, response, metadata={"stage": slot.stage.value})

        try:
            intent = self.normalizer.normalize(response.content, slot.stage, text)
        except NormalizationError as e:
            attempt = ResolutionAttempt(
                stage=slot.stage,
                provider=provider.name,
                model=provider.model,
                status=AttemptStatus.NORMALIZATION_ERROR,
                latency_ms=self._elapsed(start_time),
                error=str(e),
            )
            self._track(request_id, attempt)
            return AttemptFailure(attempt=attempt, error=e)
        except Exception as e:
            logger.error(f"Could not normalize output from {provider.name}: {e}", exc_info=True)
            return self._unexpected_failure(slot, request_id, e, start_time)

        attempt = ResolutionAttempt(
            stage=slot.stage,
            provider=provider.name,
            model=provider.model,
            status=AttemptStatus.SUCCESS,
            latency_ms=self._elapsed(start_time),
        )
        self._track(request_id, attempt)
        return AttemptSuccess(intent=intent, attempt=attempt)

    def _fallback(self, text: str, request_id: str) -> AttemptSuccess:
        start_time = time.time()
        try:
            intent = self.fallback_parser.parse(text or "")
        except Exception as e:
            logger.error(f"Fallback parser failed: {e}", exc_info=True)
            self.monitor.track_error(request_id, str(e), stage=ProviderStage.FALLBACK.value)
            intent = self.fallback_parser.unknown(text or "")

        attempt = ResolutionAttempt(
            stage=ProviderStage.FALLBACK,
            provider="rules",
            status=AttemptStatus.SUCCESS,
            latency_ms=self._elapsed(start_time),
        )
        self._track(request_id, attempt)
        return AttemptSuccess(intent=intent, attempt=attempt)

    # -----------------------------------------------------------------------
    # HELPERS
    # -----------------------------------------------------------------------

    def _provider_failure(
        self,
        slot: ProviderSlot,
        request_id: str,
        error: ProviderError,
        start_time: float,
    ) -> AttemptFailure:
        latency_ms = self._elapsed(start_time)
        self.monitor.track_response(
            request_id=request_id,
            provider=slot.provider.name,
            model=slot.provider.model,
            content="",
            prompt_tokens=0,
            completion_tokens=0,
            latency_ms=latency_ms,
            success=False,
            error=str(error),
        )
        attempt = ResolutionAttempt(
            stage=slot.stage,
            provider=slot.provider.name,
            model=slot.provider.model,
            status=AttemptStatus.PROVIDER_ERROR,
            latency_ms=latency_ms,
            error_kind=error.kind.value,
            error=str(error),
        )
        self._track(request_id, attempt)
        return AttemptFailure(attempt=attempt, error=error)

    def _unexpected_failure(
        self,
        slot: ProviderSlot,
        request_id: str,
        error: Exception,
        start_time: float,
    ) -> AttemptFailure:
        attempt = ResolutionAttempt(
            stage=slot.stage,
            provider=slot.provider.name,
            model=slot.provider.model,
            status=AttemptStatus.UNEXPECTED_ERROR,
            latency_ms=self._elapsed(start_time),
            error=str(error),
        )
        self._track(request_id, attempt)
        return AttemptFailure(attempt=attempt, error=error)

    def _track(self, request_id: str, attempt: ResolutionAttempt) -> None:
        self.monitor.track_attempt(
            request_id=request_id,
            stage=attempt.stage.value,
            provider=attempt.provider,
            status=attempt.status.value,
            latency_ms=attempt.latency_ms,
            error_kind=attempt.error_kind,
            error=attempt.error,
        )

    @staticmethod
    def _elapsed(start_time: float) -> float:
        return round((time.time() - start_time) * 1000, 2)
