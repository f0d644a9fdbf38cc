"""
Tests for AIMonitor - structured logs and aggregated metrics.
"""

import json
import logging

import pytest

from app.ai.monitoring import AIMonitor
from app.ai.providers.base import AIResponse, ProviderType, TokenUsage


@pytest.fixture
def monitor() -> AIMonitor:
    return AIMonitor(max_history=3)


class TestAggregation:
    def test_track_response_updates_stats(self, monitor):
        monitor.track_response(
            request_id="r1",
            provider="groq",
            model="llama-3.1-8b-instant",
            content='{"action": "scroll"}',
            prompt_tokens=1_000_000,
            completion_tokens=1_000_000,
            latency_ms=200.0,
        )

        stats = monitor.get_stats()
        assert stats.total_requests == 1
        assert stats.successful_requests == 1
        assert stats.total_tokens == 2_000_000
        assert stats.estimated_total_cost == pytest.approx(0.13)
        assert stats.requests_by_provider == {"groq": 1}

    def test_success_rate_and_latency(self, monitor):
        monitor.track_response("r1", "openai", "gpt-4o-mini", "", 10, 5, 100.0, success=True)
        monitor.track_response("r2", "openai", "gpt-4o-mini", "", 0, 0, 300.0, success=False, error="boom")

        stats = monitor.get_stats()
        assert stats.success_rate == 50.0
        assert stats.avg_latency_ms == 200.0
        assert stats.to_dict()["success_rate"] == "50.0%"

    def test_unknown_provider_costs_nothing(self, monitor):
        monitor.track_response("r1", "local", "m", "", 500, 500, 1.0)

        assert monitor.get_stats().estimated_total_cost == 0.0

    def test_track_from_ai_response(self, monitor):
        response = AIResponse(
            content='{"action": "stop"}',
            provider=ProviderType.ANTHROPIC,
            model="claude-3-5-haiku-latest",
            usage=TokenUsage(prompt_tokens=20, completion_tokens=5),
            latency_ms=320.0,
        )

        monitor.track_response_from_ai_response("r1", response)

        assert monitor.get_stats().tokens_by_provider == {"anthropic": 25}

    def test_intents_by_stage(self, monitor):
        monitor.track_intent("r1", "scroll down", "scroll", "fallback", confidence=0.4)
        monitor.track_intent("r2", "stop", "stop", "primary", confidence=0.9)
        monitor.track_intent("r3", "go back", "go_back", "fallback", confidence=0.4)

        assert monitor.get_stats().intents_by_stage == {"fallback": 2, "primary": 1}

    def test_attempts_and_error_kinds(self, monitor):
        monitor.track_attempt("r1", "primary", "groq", "provider_error", error_kind="timeout")
        monitor.track_attempt("r1", "secondary", "openai", "provider_error", error_kind="rate_limited")
        monitor.track_attempt("r1", "fallback", "rules", "success")
        monitor.track_intent("r1", "scroll down", "scroll", "fallback")
        monitor.track_intent("r2", "stop", "stop", "primary")

        stats = monitor.get_stats()
        assert stats.attempts_by_status == {"provider_error": 2, "success": 1}
        assert stats.errors_by_kind == {"timeout": 1, "rate_limited": 1}
        assert stats.to_dict()["fallback_rate"] == "50.0%"

    def test_stats_are_a_snapshot(self, monitor):
        snapshot = monitor.get_stats()

        monitor.track_intent("r1", "stop", "stop", "primary")

        assert snapshot.intents_by_stage == {}

    def test_history_is_bounded_newest_first(self, monitor):
        for i in range(5):
            monitor.track_response(f"r{i}", "groq", "m", "", 1, 1, 1.0)

        recent = monitor.get_recent_requests(limit=10)

        assert [m.request_id for m in recent] == ["r4", "r3", "r2"]
        assert monitor.get_stats().total_requests == 5

    def test_reset(self, monitor):
        monitor.track_response("r1", "groq", "m", "", 1, 1, 1.0)
        monitor.track_intent("r1", "stop", "stop", "primary")

        monitor.reset()

        assert monitor.get_stats().total_requests == 0
        assert monitor.get_stats().intents_by_stage == {}
        assert monitor.get_recent_requests() == []


class TestStructuredLogs:
    def test_attempt_log_is_json(self, monitor, caplog):
        with caplog.at_level(logging.INFO, logger="voiceweb.ai"):
            monitor.track_attempt("r1", "primary", "groq", "provider_error", 12.5, "timeout", "slow")

        record = caplog.records[-1]
        payload = json.loads(record.getMessage().split(": ", 1)[1])
        assert record.levelno == logging.WARNING
        assert payload["event"] == "resolution_attempt"
        assert payload["error_kind"] == "timeout"
        assert payload["latency_ms"] == 12.5

    def test_request_log_truncates_prompt(self, monitor, caplog):
        with caplog.at_level(logging.INFO, logger="voiceweb.ai"):
            monitor.track_request("r1", "x" * 500, "groq", "m", session_id="s-1")

        payload = json.loads(caplog.records[-1].getMessage().split(": ", 1)[1])
        assert payload["prompt_length"] == 500
        assert len(payload["prompt_preview"]) == 103
        assert payload["session_id"] == "s-1"

    def test_error_log(self, monitor, caplog):
        monitor.track_error("r1", "parser exploded", stage="fallback")

        assert caplog.records[-1].levelno == logging.ERROR
        assert "parser exploded" in caplog.text
