"""
Application configuration via environment variables.

Uses Pydantic BaseSettings to load and validate all config from env vars
or a .env.local file. Every setting has a sensible default for local
development so the engine can start with minimal configuration.
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Deployment environment selector."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class SessionBackend(str, Enum):
    """Where guided SMS sessions live."""

    MEMORY = "memory"
    REDIS = "redis"


class Settings(BaseSettings):
    """
    Central configuration for the civic intake engine.

    Values are loaded from environment variables first, falling back
    to a `.env.local` file in the project root. Secrets should NEVER
    be committed.
    """

    model_config = SettingsConfigDict(
        env_file=".env.local",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Environment ──────────────────────────────────────────────
    environment: Environment = Environment.DEVELOPMENT

    # ── Classification service ───────────────────────────────────
    openai_api_key: str = Field(default="", description="OpenAI API key for intake classification")
    openai_base_url: str = Field(default="https://api.openai.com/v1", description="Chat completions base URL")
    classifier_model: str = Field(default="gpt-4o-mini", description="Model used for classification")
    classifier_timeout_seconds: float = Field(
        default=3.0, gt=0.0, le=30.0, description="Deadline for the primary classification call"
    )

    # ── Supabase ─────────────────────────────────────────────────
    supabase_url: str = Field(default="", description="Supabase project URL")
    supabase_service_key: str = Field(default="", description="Supabase service-role key")

    # ── Redis ────────────────────────────────────────────────────
    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis connection URL")

    # ── Guided SMS sessions ──────────────────────────────────────
    guided_sms_enabled: bool = Field(default=True, description="Use the multi-turn guided SMS flow")
    session_backend: SessionBackend = SessionBackend.MEMORY
    session_ttl_seconds: int = Field(default=20 * 60, ge=60, le=24 * 3600, description="Idle time before a session expires")
    session_max_entries: int = Field(default=10_000, ge=1, description="Oldest sessions are evicted past this size")
    session_sweep_interval_seconds: int = Field(default=5 * 60, ge=1, description="Period of the TTL sweep")
    max_messages_per_session: int = Field(default=5, ge=1, le=50, description="Escalation threshold for long sessions")
    force_complete_on_max_messages: bool = Field(
        default=False, description="Complete with collected data once the message cap is reached"
    )

    # ── Records ──────────────────────────────────────────────────
    default_client_id: str = Field(default="client_demo", description="Tenant used when none is supplied")

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO", description="Root log level")

    # ── Derived helpers ──────────────────────────────────────────

    @property
    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION

    @property
    def is_development(self) -> bool:
        return self.environment == Environment.DEVELOPMENT

    @property
    def primary_classifier_enabled(self) -> bool:
        return bool(self.openai_api_key)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Return cached Settings instance.

    Using lru_cache ensures we read env vars exactly once, and every
    module that calls ``get_settings()`` gets the same object.
    """
    return Settings()
