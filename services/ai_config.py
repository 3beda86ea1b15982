"""Centralized AI configuration.

Single source of truth for the summarizer's provider settings.
Reads from environment variables with sensible defaults.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field


@dataclass
class AIProviderConfig:
    """Configuration for a specific AI provider."""
    model_name: str
    api_key: str | None = None
    available: bool = False


@dataclass
class AISettings:
    """Centralized AI settings loaded from environment.

    Usage:
        settings = get_ai_settings()
        print(settings.gemini.available)   # True once an API key is set
        print(settings.gemini.model_name)  # "gemini-2.5-flash"
    """
    # Generation settings
    max_output_tokens: int = 2000
    temperature: float = 0.3  # Low: analytical rather than creative

    # Prompt shaping
    summary_max_rows: int = 50

    # Guardrails
    max_output_length: int = 10000

    gemini: AIProviderConfig = field(default_factory=lambda: AIProviderConfig(model_name="gemini-2.5-flash"))


def _load_settings_from_env() -> AISettings:
    """Load AI settings from environment variables."""
    settings = AISettings()

    gemini_key = os.getenv("GOOGLE_API_KEY") or os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY")
    settings.gemini = AIProviderConfig(
        model_name=os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
        api_key=gemini_key,
        available=bool(gemini_key),
    )

    if os.getenv("AI_MAX_OUTPUT_TOKENS"):
        settings.max_output_tokens = int(os.getenv("AI_MAX_OUTPUT_TOKENS"))
    if os.getenv("AI_TEMPERATURE"):
        settings.temperature = float(os.getenv("AI_TEMPERATURE"))
    if os.getenv("SUMMARY_MAX_ROWS"):
        settings.summary_max_rows = int(os.getenv("SUMMARY_MAX_ROWS"))

    return settings


# Singleton instance
_settings: AISettings | None = None


def get_ai_settings() -> AISettings:
    """Get the AI settings singleton.

    Settings are loaded once from environment on first access.
    """
    global _settings
    if _settings is None:
        _settings = _load_settings_from_env()
    return _settings


def reload_ai_settings() -> AISettings:
    """Force reload settings from environment.

    Useful for testing or after env changes.
    """
    global _settings
    _settings = _load_settings_from_env()
    return _settings
