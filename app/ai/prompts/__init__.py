"""
Prompts Module - Centralized prompt templates for AI interactions.

Keeping prompts centralized makes them:
- Easy to update and iterate
- Consistent across providers
- Testable and version-controlled
"""

from app.ai.prompts.intent_prompts import (
    INTENT_SYSTEM_PROMPT,
    INTENT_EXTRACTION_PROMPT,
    build_context_block,
    build_intent_prompt,
)

__all__ = [
    "INTENT_SYSTEM_PROMPT",
    "INTENT_EXTRACTION_PROMPT",
    "build_context_block",
    "build_intent_prompt",
]
