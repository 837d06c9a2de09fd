"""
LiveCanvas configuration — all environment variables in one place.

Read from environment at runtime. Never hardcode secrets.
"""

from __future__ import annotations

import os


def _flag(name: str, default: str = "") -> bool:
    return os.environ.get(name, default).lower() == "true"


class Settings:
    """Application settings from environment variables."""

    # Application
    ENVIRONMENT: str = os.environ.get("ENVIRONMENT", "development")
    TESTING: bool = _flag("TESTING")

    # Database (optional: sessions persist to memory when empty)
    DATABASE_URL: str = os.environ.get("DATABASE_URL", "")

    # Generation
    ANTHROPIC_API_KEY: str = os.environ.get("ANTHROPIC_API_KEY", "")
    GENERATION_MODEL: str = os.environ.get("GENERATION_MODEL", "claude-sonnet-4-5-20250929")
    GENERATION_MAX_TOKENS: int = int(os.environ.get("GENERATION_MAX_TOKENS", "8192"))
    USE_MOCK_GENERATOR: bool = _flag("USE_MOCK_GENERATOR")
    MOCK_SCENARIO: str = os.environ.get("MOCK_SCENARIO", "add_section")

    # External services
    CONTENT_SERVICE_URL: str = os.environ.get("CONTENT_SERVICE_URL", "")
    COMPONENT_SERVICE_URL: str = os.environ.get("COMPONENT_SERVICE_URL", "")
    SERVICE_TIMEOUT_SECONDS: float = float(os.environ.get("SERVICE_TIMEOUT_SECONDS", "10"))

    # Editing
    ENTRIES_DEBOUNCE_MS: int = int(os.environ.get("ENTRIES_DEBOUNCE_MS", "400"))
    MAX_HISTORY: int = int(os.environ.get("MAX_HISTORY", "50"))

    @property
    def use_mock_generator(self) -> bool:
        """Mock generation in tests, when asked for, or without an API key."""
        return self.TESTING or self.USE_MOCK_GENERATOR or not self.ANTHROPIC_API_KEY


# Singleton instance
settings = Settings()

# Validate required settings (skip in test mode)
if not settings.TESTING and settings.ENVIRONMENT == "production":
    if not settings.ANTHROPIC_API_KEY and not settings.USE_MOCK_GENERATOR:
        raise RuntimeError("ANTHROPIC_API_KEY environment variable is required")
    if not settings.DATABASE_URL:
        raise RuntimeError("DATABASE_URL environment variable is required")
