"""
Configuration module - centralized settings for the entire application.
Uses pydantic-settings to load values from environment variables and .env file.

Settings are read once at startup and frozen. The resolver and the provider
clients never import the global instance; they receive the values they need
through their constructors (see IntentResolver.from_settings).
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("voiceweb.config")

KNOWN_PROVIDERS = ("groq", "openai", "anthropic")
KNOWN_ENVIRONMENTS = ("development", "production", "test", "staging")
REDACTED = "***REDACTED***"


class ConfigurationError(ValueError):
    """Raised when the environment holds an unusable configuration."""
    pass


@dataclass(frozen=True)
class ProviderConfig:
    """
    Immutable per-provider configuration.

    A provider without an api_key is considered unavailable: the resolver
    skips it without attempting a call.
    """
    name: str
    model: str
    api_key: str = ""
    base_url: Optional[str] = None
    timeout_s: float = 10.0

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.api_key.strip())


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Pydantic-settings automatically:
    1. Reads from environment variables (highest priority)
    2. Falls back to .env file values
    3. Uses default values if neither exists

    To override in production, set environment variables:
        export GROQ_API_KEY=gsk_your_key
        export PRIMARY_PROVIDER=groq
    """

    # ---------------------------------------------------------------------------
    # PYDANTIC SETTINGS CONFIGURATION
    # ---------------------------------------------------------------------------
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,            # Immutable for the process lifetime
    )

    # ---------------------------------------------------------------------------
    # APPLICATION SETTINGS
    # ---------------------------------------------------------------------------
    APP_NAME: str = "Voice Web Interaction API"
    APP_VERSION: str = "1.0.0"

    # ENVIRONMENT: development, production, test or staging
    ENVIRONMENT: str = "development"

    # DEBUG: Enable debug mode (more verbose errors)
    DEBUG: bool = False

    HOST: str = "localhost"
    PORT: int = Field(default=3000, ge=1, le=65535)

    # LOG_LEVEL: Level applied to the "voiceweb" logger tree
    LOG_LEVEL: str = "INFO"

    # CORS_ORIGINS: The browser extension calls from its own origin
    CORS_ORIGINS: List[str] = ["*"]
    CORS_CREDENTIALS: bool = False

    # ---------------------------------------------------------------------------
    # AI PROVIDER CREDENTIALS
    # ---------------------------------------------------------------------------
    # An empty key means "provider unavailable", not an error.
    GROQ_API_KEY: str = ""
    OPENAI_API_KEY: str = ""
    ANTHROPIC_API_KEY: str = ""

    # ---------------------------------------------------------------------------
    # AI MODEL CONFIGURATION
    # ---------------------------------------------------------------------------
    GROQ_BASE_URL: str = "https://api.groq.com/openai/v1"
    GROQ_MODEL: str = "llama-3.1-8b-instant"
    GROQ_TIMEOUT: float = 8.0

    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_TIMEOUT: float = 10.0

    ANTHROPIC_MODEL: str = "claude-3-5-haiku-latest"
    ANTHROPIC_TIMEOUT: float = 10.0

    # Which provider fills each slot of the fallback chain
    PRIMARY_PROVIDER: str = "groq"
    SECONDARY_PROVIDER: str = "openai"

    # Generation options shared by every provider attempt
    AI_TEMPERATURE: float = Field(default=0.1, ge=0.0, le=2.0)
    AI_MAX_TOKENS: int = Field(default=256, ge=1)

    # ---------------------------------------------------------------------------
    # INTENT RESOLUTION POLICY
    # ---------------------------------------------------------------------------
    # Confidence used when a provider omits one
    AI_DEFAULT_CONFIDENCE: float = Field(default=0.8, ge=0.0, le=1.0)
    # Confidence of every fallback parser match
    FALLBACK_CONFIDENCE: float = Field(default=0.4, ge=0.0, le=1.0)
    # Ceiling for fallback-derived intents, kept below AI results
    FALLBACK_MAX_CONFIDENCE: float = Field(default=0.5, ge=0.0, le=1.0)
    # Page elements serialized into the prompt
    MAX_CONTEXT_ELEMENTS: int = Field(default=50, ge=0)

    # ---------------------------------------------------------------------------
    # VALIDATION
    # ---------------------------------------------------------------------------
    @field_validator("GROQ_API_KEY", "OPENAI_API_KEY", "ANTHROPIC_API_KEY")
    @classmethod
    def _strip_key(cls, value: str) -> str:
        return value.strip()

    @field_validator("GROQ_API_KEY")
    @classmethod
    def _check_groq_key(cls, value: str) -> str:
        if not value:
            return value
        if len(value) < 20:
            raise ConfigurationError(
                "GROQ_API_KEY appears to be too short. Please verify your API key."
            )
        if not value.startswith("gsk_"):
            logger.warning("GROQ_API_KEY should typically start with 'gsk_' - please verify your key is correct")
        return value

    @field_validator("PRIMARY_PROVIDER", "SECONDARY_PROVIDER")
    @classmethod
    def _check_provider_name(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in KNOWN_PROVIDERS:
            raise ConfigurationError(
                f"Unknown AI provider '{value}'. Use one of: {', '.join(KNOWN_PROVIDERS)}"
            )
        return value

    @field_validator("ENVIRONMENT")
    @classmethod
    def _check_environment(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in KNOWN_ENVIRONMENTS:
            logger.warning(
                f"ENVIRONMENT '{value}' is not a standard environment. "
                f"Consider using: {', '.join(KNOWN_ENVIRONMENTS)}"
            )
        return value

    @model_validator(mode="after")
    def _check_fallback_ceiling(self) -> "Settings":
        if self.FALLBACK_CONFIDENCE > self.FALLBACK_MAX_CONFIDENCE:
            raise ConfigurationError("FALLBACK_CONFIDENCE cannot exceed FALLBACK_MAX_CONFIDENCE")
        if self.FALLBACK_MAX_CONFIDENCE >= self.AI_DEFAULT_CONFIDENCE:
            raise ConfigurationError("FALLBACK_MAX_CONFIDENCE must stay below AI_DEFAULT_CONFIDENCE")
        return self

    # ---------------------------------------------------------------------------
    # HELPERS
    # ---------------------------------------------------------------------------
    def provider_config(self, name: str) -> ProviderConfig:
        """Build the immutable configuration for one provider."""
        name = name.lower()
        if name == "groq":
            return ProviderConfig(
                name="groq",
                model=self.GROQ_MODEL,
                api_key=self.GROQ_API_KEY,
                base_url=self.GROQ_BASE_URL,
                timeout_s=self.GROQ_TIMEOUT,
            )
        if name == "openai":
            return ProviderConfig(
                name="openai",
                model=self.OPENAI_MODEL,
                api_key=self.OPENAI_API_KEY,
                base_url=self.OPENAI_BASE_URL,
                timeout_s=self.OPENAI_TIMEOUT,
            )
        if name == "anthropic":
            return ProviderConfig(
                name="anthropic",
                model=self.ANTHROPIC_MODEL,
                api_key=self.ANTHROPIC_API_KEY,
                timeout_s=self.ANTHROPIC_TIMEOUT,
            )
        raise ConfigurationError(f"Unknown AI provider '{name}'")

    def has_provider_key(self, name: str) -> bool:
        return self.provider_config(name).is_configured

    def sanitized(self) -> Dict[str, Any]:
        """Settings as a dict with every credential masked (safe to log or return)."""
        data = self.model_dump()
        for key in ("GROQ_API_KEY", "OPENAI_API_KEY", "ANTHROPIC_API_KEY"):
            if data.get(key):
                data[key] = REDACTED
        return data


# ---------------------------------------------------------------------------
# GLOBAL SETTINGS INSTANCE
# ---------------------------------------------------------------------------
# Built once at import; only app/main.py reads it, everything else receives
# explicit values.
settings = Settings()
