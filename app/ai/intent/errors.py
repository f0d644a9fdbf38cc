"""
Intent pipeline exceptions.

ProviderError lives with the providers (app/ai/providers/base.py); the
errors here belong to the intent layer itself.
"""

from typing import Optional


class IntentError(Exception):
    """Base exception for intent pipeline errors."""
    pass


class NormalizationError(IntentError):
    """
    Raised when raw provider output cannot be turned into an Intent.

    Only raised after both structured decoding and keyword extraction
    failed. The resolver treats it like a provider failure.
    """

    def __init__(self, message: str, raw: Optional[str] = None):
        super().__init__(message)
        self.raw = raw


class IntentValidationError(IntentError):
    """Raised when the caller sends empty or whitespace-only text."""
    pass


def validate_text(text: Optional[str]) -> str:
    """
    Check the resolver precondition and return the trimmed text.

    Raises:
        IntentValidationError: if text is None, empty or only whitespace
    """
    if text is None or not text.strip():
        raise IntentValidationError("Text must not be empty")
    return text.strip()
