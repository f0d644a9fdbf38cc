"""
Monitoring Module - Unified logging and metrics tracking for AI operations.

This module provides observability for the intent pipeline:
- Request/response logging per provider call
- Resolution attempt logging (stage, provider, latency, outcome)
- Token usage, latency and cost estimation

Usage:
======
    from app.ai.monitoring import ai_monitor

    ai_monitor.track_attempt(request_id, "primary", "groq", "success", latency_ms=210.0)
    stats = ai_monitor.get_stats()
"""

from app.ai.monitoring.monitor import AIMonitor, AggregatedMetrics, ai_monitor, configure_logging

__all__ = [
    "AIMonitor",
    "AggregatedMetrics",
    "ai_monitor",
    "configure_logging",
]
