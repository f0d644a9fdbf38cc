"""
AI Monitor - Structured event logging and usage metrics for intent resolution.

Every step of the resolution chain is reported as one JSON event:

    ai_request          a provider call is about to be made
    ai_response         a provider call finished (success or failure)
    resolution_attempt  one stage of the chain finished (any status)
    intent_resolved     the final intent for a request
    ai_error            an unexpected failure inside the pipeline

Provider calls also feed per-provider counters (calls, failures, tokens,
latency, estimated cost); attempts feed counters per status and per error
kind; resolved intents are counted per stage. get_stats() returns a
snapshot, so callers never see counters change under them.

Usage:
    from app.ai.monitoring import ai_monitor

    ai_monitor.track_attempt("abc123", "primary", "groq", "provider_error",
                             latency_ms=8012.0, error_kind="timeout")
    ai_monitor.get_stats().to_dict()
"""

import json
import logging
import sys
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Deque, Dict, List, Optional

from app.ai.providers.base import AIResponse


# ---------------------------------------------------------------------------
# LOGGING SETUP
# ---------------------------------------------------------------------------
logger = logging.getLogger("voiceweb.ai")

_root = logging.getLogger("voiceweb")
if not _root.handlers:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(
        '[%(asctime)s] %(levelname)s [%(name)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    _root.addHandler(handler)
    _root.setLevel(logging.INFO)


def configure_logging(level: str = "INFO") -> None:
    """Apply the configured level to the voiceweb logger tree."""
    _root.setLevel(getattr(logging, level.upper(), logging.INFO))


def _preview(text: str, limit: int) -> str:
    return text[:limit] + "..." if len(text) > limit else text


# ---------------------------------------------------------------------------
# METRICS DATA CLASSES
# ---------------------------------------------------------------------------
@dataclass
class RequestMetrics:
    """One provider call, kept in the bounded history."""
    request_id: str
    provider: str
    model: str
    prompt_tokens: int
    completion_tokens: int
    latency_ms: float
    success: bool
    estimated_cost: float = 0.0
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


@dataclass
class ProviderUsage:
    """Running totals for one provider."""
    calls: int = 0
    failures: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    latency_ms: float = 0.0
    cost: float = 0.0

    def add(self, metrics: RequestMetrics) -> None:
        self.calls += 1
        if not metrics.success:
            self.failures += 1
        self.prompt_tokens += metrics.prompt_tokens
        self.completion_tokens += metrics.completion_tokens
        self.latency_ms += metrics.latency_ms
        self.cost += metrics.estimated_cost


@dataclass
class AggregatedMetrics:
    """Point-in-time snapshot of everything the monitor has counted."""
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    total_tokens: int = 0
    total_prompt_tokens: int = 0
    total_completion_tokens: int = 0
    total_latency_ms: float = 0.0
    estimated_total_cost: float = 0.0
    requests_by_provider: Dict[str, int] = field(default_factory=dict)
    tokens_by_provider: Dict[str, int] = field(default_factory=dict)
    intents_by_stage: Dict[str, int] = field(default_factory=dict)
    attempts_by_status: Dict[str, int] = field(default_factory=dict)
    errors_by_kind: Dict[str, int] = field(default_factory=dict)

    @property
    def avg_latency_ms(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.total_latency_ms / self.total_requests

    @property
    def success_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return (self.successful_requests / self.total_requests) * 100

    @property
    def fallback_rate(self) -> float:
        """Share of resolved intents that came from the rule parser."""
        resolved = sum(self.intents_by_stage.values())
        if resolved == 0:
            return 0.0
        return (self.intents_by_stage.get("fallback", 0) / resolved) * 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_requests": self.total_requests,
            "successful_requests": self.successful_requests,
            "failed_requests": self.failed_requests,
            "success_rate": f"{self.success_rate:.1f}%",
            "total_tokens": self.total_tokens,
            "prompt_tokens": self.total_prompt_tokens,
            "completion_tokens": self.total_completion_tokens,
            "avg_latency_ms": round(self.avg_latency_ms, 2),
            "estimated_total_cost": f"${self.estimated_total_cost:.4f}",
            "requests_by_provider": dict(self.requests_by_provider),
            "tokens_by_provider": dict(self.tokens_by_provider),
            "intents_by_stage": dict(self.intents_by_stage),
            "fallback_rate": f"{self.fallback_rate:.1f}%",
            "attempts_by_status": dict(self.attempts_by_status),
            "errors_by_kind": dict(self.errors_by_kind),
        }


# ---------------------------------------------------------------------------
# AI MONITOR
# ---------------------------------------------------------------------------
class AIMonitor:
    """
    Event log + counters for the intent pipeline.

    Thread-safe: counters are only touched under the lock, and readers get
    copies.

    Cost Model (USD per 1M tokens):
    - Groq Llama 3.1 8B: ~$0.05 input, ~$0.08 output
    - GPT-4o mini: ~$0.15 input, ~$0.60 output
    - Claude Haiku: ~$0.80 input, ~$4 output
    """

    COST_PER_1M_TOKENS = {
        "groq": {"input": 0.05, "output": 0.08},
        "openai": {"input": 0.15, "output": 0.60},
        "anthropic": {"input": 0.80, "output": 4.0},
    }

    def __init__(self, max_history: int = 1000):
        self._logger = logger
        self._lock = Lock()
        self._max_history = max_history
        self._reset_counters()

    def _reset_counters(self) -> None:
        self._history: Deque[RequestMetrics] = deque(maxlen=self._max_history)
        self._providers: Dict[str, ProviderUsage] = {}
        self._stages: Counter = Counter()
        self._statuses: Counter = Counter()
        self._error_kinds: Counter = Counter()

    # -----------------------------------------------------------------------
    # EVENTS
    # -----------------------------------------------------------------------

    def track_request(
        self,
        request_id: str,
        prompt: str,
        provider: str,
        model: str,
        session_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """A provider call is about to be made."""
        self._emit(
            "ai_request",
            logging.INFO,
            request_id=request_id,
            provider=provider,
            model=model,
            prompt_length=len(prompt),
            prompt_preview=_preview(prompt, 100),
            session_id=session_id,
            metadata=metadata,
        )

    def track_response(
        self,
        request_id: str,
        provider: str,
        model: str,
        content: str,
        prompt_tokens: int,
        completion_tokens: int,
        latency_ms: float,
        success: bool = True,
        error: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        A provider call finished.

        Failed calls are counted too, with zero tokens, so the success
        rate reflects provider reliability.
        """
        metrics = RequestMetrics(
            request_id=request_id,
            provider=provider,
            model=model,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            latency_ms=latency_ms,
            success=success,
            estimated_cost=self._estimate_cost(provider, prompt_tokens, completion_tokens),
        )

        with self._lock:
            self._history.append(metrics)
            self._providers.setdefault(provider, ProviderUsage()).add(metrics)

        self._emit(
            "ai_response",
            logging.INFO if success else logging.WARNING,
            request_id=request_id,
            provider=provider,
            model=model,
            success=success,
            latency_ms=round(latency_ms, 2),
            tokens={
                "prompt": prompt_tokens,
                "completion": completion_tokens,
                "total": metrics.total_tokens,
            },
            estimated_cost=f"${metrics.estimated_cost:.6f}",
            response_length=len(content) if content else 0,
            error=error,
            metadata=metadata,
        )

    def track_response_from_ai_response(
        self,
        request_id: str,
        response: AIResponse,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Record a successful call straight from its AIResponse."""
        self.track_response(
            request_id=request_id,
            provider=response.provider.value,
            model=response.model,
            content=response.content,
            prompt_tokens=response.usage.prompt_tokens if response.usage else 0,
            completion_tokens=response.usage.completion_tokens if response.usage else 0,
            latency_ms=response.latency_ms,
            metadata=metadata,
        )

    def track_attempt(
        self,
        request_id: str,
        stage: str,
        provider: str,
        status: str,
        latency_ms: float = 0.0,
        error_kind: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        """One stage of the resolution chain finished."""
        with self._lock:
            self._statuses[status] += 1
            if error_kind:
                self._error_kinds[error_kind] += 1

        self._emit(
            "resolution_attempt",
            logging.INFO if status in ("success", "skipped") else logging.WARNING,
            request_id=request_id,
            stage=stage,
            provider=provider,
            status=status,
            latency_ms=round(latency_ms, 2),
            error_kind=error_kind,
            error=_preview(error, 200) if error else None,
        )

    def track_intent(
        self,
        request_id: str,
        original_text: str,
        action: str,
        provider_used: str,
        confidence: float = 0.0,
        target: Optional[str] = None,
        processing_time_ms: float = 0.0,
    ) -> None:
        """The final intent for a request."""
        with self._lock:
            self._stages[provider_used] += 1

        self._emit(
            "intent_resolved",
            logging.INFO,
            request_id=request_id,
            action=action,
            target=target,
            provider_used=provider_used,
            confidence=round(confidence, 3),
            processing_time_ms=round(processing_time_ms, 2),
            original_text=_preview(original_text, 50),
        )

    def track_error(
        self,
        request_id: str,
        error: str,
        stage: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """An unexpected failure inside the pipeline."""
        self._emit(
            "ai_error",
            logging.ERROR,
            request_id=request_id,
            error=error,
            stage=stage,
            metadata=metadata,
        )

    # -----------------------------------------------------------------------
    # READ SIDE
    # -----------------------------------------------------------------------

    def get_stats(self) -> AggregatedMetrics:
        """Snapshot of the counters."""
        with self._lock:
            providers = self._providers
            stats = AggregatedMetrics(
                total_requests=sum(u.calls for u in providers.values()),
                failed_requests=sum(u.failures for u in providers.values()),
                total_prompt_tokens=sum(u.prompt_tokens for u in providers.values()),
                total_completion_tokens=sum(u.completion_tokens for u in providers.values()),
                total_latency_ms=sum(u.latency_ms for u in providers.values()),
                estimated_total_cost=sum(u.cost for u in providers.values()),
                requests_by_provider={name: u.calls for name, u in providers.items()},
                tokens_by_provider={
                    name: u.prompt_tokens + u.completion_tokens for name, u in providers.items()
                },
                intents_by_stage=dict(self._stages),
                attempts_by_status=dict(self._statuses),
                errors_by_kind=dict(self._error_kinds),
            )
        stats.successful_requests = stats.total_requests - stats.failed_requests
        stats.total_tokens = stats.total_prompt_tokens + stats.total_completion_tokens
        return stats

    def get_recent_requests(self, limit: int = 10) -> List[RequestMetrics]:
        """Most recent provider calls, newest first."""
        with self._lock:
            return list(self._history)[::-1][:limit]

    def reset(self) -> None:
        """Clear every counter and the history (used by tests)."""
        with self._lock:
            self._reset_counters()

    # -----------------------------------------------------------------------
    # HELPERS
    # -----------------------------------------------------------------------

    def _emit(self, event: str, level: int, **fields: Any) -> None:
        # None-valued optional fields are left out of the log line
        log_data = {"event": event}
        log_data.update({key: value for key, value in fields.items() if value is not None})
        log_data["timestamp"] = datetime.now(timezone.utc).isoformat()
        self._logger.log(level, f"{event}: {json.dumps(log_data, default=str)}")

    def _estimate_cost(self, provider: str, prompt_tokens: int, completion_tokens: int) -> float:
        """Estimated cost in USD."""
        costs = self.COST_PER_1M_TOKENS.get(provider.lower(), {"input": 0, "output": 0})
        return (prompt_tokens / 1_000_000) * costs["input"] + (completion_tokens / 1_000_000) * costs["output"]


# ---------------------------------------------------------------------------
# SINGLETON INSTANCE
# ---------------------------------------------------------------------------
ai_monitor = AIMonitor()
