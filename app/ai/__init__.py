"""
AI Module - Intent resolution for voice-driven web interaction.

This module turns transcribed speech into structured page actions.
It calls LLM providers in a fixed priority order and falls back to a
deterministic rule-based parser when every provider fails.

Architecture Overview:
=====================

    text + page context
            │
            ▼
┌───────────────────────┐   ProviderError / timeout /
│ Primary provider      │── NormalizationError ──┐
│ (Groq by default)     │                        │
└──────────┬────────────┘                        ▼
           │ ok                  ┌───────────────────────┐
           │                     │ Secondary provider    │── failure ──┐
           │                     │ (OpenAI by default)   │             │
           │                     └──────────┬────────────┘             ▼
           │                                │ ok           ┌──────────────────┐
           ▼                                ▼              │ Fallback parser  │
┌─────────────────────────────────────────────────────┐   │ (rule table)     │
│ Intent Normalizer → canonical Intent                │◄──┴──────────────────┘
└─────────────────────────────────────────────────────┘

Module Structure:
================
- providers/: AI provider clients (Groq, OpenAI, Anthropic)
- intent/: Schemas, normalizer, fallback parser and the resolver
- prompts/: Prompt templates for consistent LLM interactions
- monitoring/: Logging, metrics, and usage tracking
"""

# Version of the AI module
__version__ = "1.0.0"

# Re-export main components for easy imports
from app.ai.intent.resolver import IntentResolver
from app.ai.intent.schemas import ActionType, Intent, PageContext, ProviderStage

__all__ = [
    "ActionType",
    "Intent",
    "IntentResolver",
    "PageContext",
    "ProviderStage",
]
