"""
Intent Module - Natural Language Understanding for page actions.

This module handles the extraction of structured intents from spoken
commands. It's the bridge between what users say and what the browser
extension can execute.

Example Flow:
============
User says: "Fill email with john@example.com"

IntentResolver (provider or fallback) produces:
{
    "action": "fill",
    "target": null,
    "parameters": {"field": "email", "value": "john@example.com"},
    "confidence": 0.9,
    "providerUsed": "primary"
}

The resolver lives in app.ai.intent.resolver; import it from there.
"""

from app.ai.intent.errors import IntentValidationError, NormalizationError, validate_text
from app.ai.intent.schemas import (
    ActionType,
    ElementDescriptor,
    Intent,
    PageContext,
    ProviderStage,
    ResolutionAttempt,
    ResolutionResult,
)
from app.ai.intent.normalizer import IntentNormalizer
from app.ai.intent.fallback_parser import FALLBACK_RULES, FallbackParser

__all__ = [
    "ActionType",
    "ElementDescriptor",
    "FALLBACK_RULES",
    "FallbackParser",
    "Intent",
    "IntentNormalizer",
    "IntentValidationError",
    "NormalizationError",
    "PageContext",
    "ProviderStage",
    "ResolutionAttempt",
    "ResolutionResult",
    "validate_text",
]
