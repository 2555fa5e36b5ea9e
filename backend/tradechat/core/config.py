"""
Application configuration using Pydantic Settings.

Supports hierarchical environment configuration:
- .env.base: Common non-secret defaults (committed to git)
- .env.{ENVIRONMENT}: Environment-specific overrides (gitignored)
- Environment variables: Highest priority

Provider credentials are read from ANTHROPIC_API_KEY, DEEPSEEK_API_KEY and
OPENAI_API_KEY. A provider with an empty key is reported as not configured.
"""

import os
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

# Get environment from env var, default to development
ENV = os.getenv("ENVIRONMENT", "development")


class Settings(BaseSettings):
    """Application settings with hierarchical env file support."""

    model_config = SettingsConfigDict(
        # Load base first, then environment-specific override
        env_file=[
            ".env.base",  # Common defaults (committed)
            f".env.{ENV}",  # Environment overrides (gitignored)
        ],
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Literal["development", "test", "production"] = "development"

    cors_origins: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # External APIs - LLM providers
    anthropic_api_key: str = ""
    anthropic_base_url: str = "https://api.anthropic.com"
    deepseek_api_key: str = ""
    deepseek_base_url: str = "https://api.deepseek.com/v1"
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"

    # LLM Configuration
    default_llm_model: str = "deepseek-chat"  # Used when a request names no model
    default_max_tokens: int = 2000
    default_llm_temperature: float = 0.7
    llm_request_timeout: float = 60.0  # Seconds, per vendor request

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    def api_key_for(self, provider_id: str) -> str:
        """Return the configured API key for a provider id, or "" if unknown."""
        return getattr(self, f"{provider_id}_api_key", "") or ""

    def base_url_for(self, provider_id: str) -> str | None:
        """Return the configured base URL for a provider id."""
        return getattr(self, f"{provider_id}_base_url", None)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
