"""
Configuration Module
====================

Environment-driven settings for the helpdesk assistant, validated by
pydantic-settings and cached per process. Constants shared across layers
(FAQ provenance tags, roles) live here as well.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache
from pathlib import Path
from typing import List, Optional


class Settings(BaseSettings):
    """
    Settings read from the environment (and an optional .env file).

    Names are case-insensitive; unknown variables are ignored.
    """

    # ========== Application ==========
    app_name: str = Field(default="helpdesk-assistant", description="Service name reported in logs, health and metrics")
    app_version: str = Field(default="1.0.0", description="Release version reported by /health")
    environment: str = Field(default="development", description="development, staging or production")
    debug: bool = Field(default=False, description="Echo SQL and expose debug info in 500 responses")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Bind address for uvicorn")
    port: int = Field(default=8000, description="Bind port for uvicorn", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/helpdesk",
        description="Async SQLAlchemy connection URL"
    )
    db_pool_size: int = Field(default=5, description="Pooled asyncpg connections", ge=1)
    db_max_overflow: int = Field(default=10, description="Extra connections allowed past the pool size", ge=0)

    # ========== Generative Backend ==========
    llm_provider: str = Field(
        default="openai",
        description="Backend used for completions: openai, zai or mock"
    )
    openai_api_key: Optional[str] = Field(
        default=None,
        description="API key for the OpenAI-compatible endpoint"
    )
    openai_base_url: Optional[str] = Field(
        default="https://generativelanguage.googleapis.com/v1beta/openai/",
        description="Base URL of the OpenAI-compatible endpoint (Gemini by default)"
    )
    zai_api_key: Optional[str] = Field(
        default=None,
        description="Z.AI API key for GLM models"
    )
    mock_llm: bool = Field(
        default=False,
        description="Force the canned offline backend regardless of provider"
    )
    llm_model: str = Field(
        default="gemini-2.5-flash",
        description="Model used for chat, extraction and learning"
    )
    llm_temperature: float = Field(
        default=0.3,
        description="Sampling temperature for every completion",
        ge=0.0,
        le=1.0
    )
    llm_max_tokens: int = Field(
        default=1000,
        description="Completion length cap per call",
        ge=1,
        le=8000
    )
    llm_timeout_seconds: float = Field(
        default=30.0,
        description="Upper bound for a single generation call",
        gt=0,
        le=300
    )

    # ========== Assistant ==========
    memory_history_limit: int = Field(
        default=10,
        description="Turns loaded per user from conversation memory",
        ge=1
    )
    prompt_history_limit: int = Field(
        default=5,
        description="Turns rendered into the prompt history block",
        ge=1
    )
    max_message_length: int = Field(
        default=4000,
        description="Longest chat message accepted, in characters",
        ge=1
    )
    assistant_config_path: Path = Field(
        default=Path("assistant_config.yaml"),
        description="Path to persona / prompt YAML file"
    )
    learning_interval_seconds: int = Field(
        default=0,
        description="Seconds between conversation learning runs (0 disables the job)",
        ge=0
    )
    learning_batch_size: int = Field(
        default=20,
        description="Max turns considered per learning run",
        ge=1,
        le=500
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Browser origins allowed to call the API"
    )

    # ========== Grafana OTLP Metrics ==========
    grafana_host: Optional[str] = Field(
        default=None,
        description="OTLP gateway base URL; metrics are off while unset"
    )
    grafana_api_key: Optional[str] = Field(
        default=None,
        description="Access policy token used as the basic-auth password"
    )
    grafana_instance_id: Optional[str] = Field(
        default=None,
        description="Stack instance ID used as the basic-auth user"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("llm_provider")
    @classmethod
    def validate_llm_provider(cls, v: str) -> str:
        """Ensure the backend provider is known."""
        v = v.lower()
        if v not in LLM_PROVIDERS:
            raise ValueError(f"llm_provider must be one of {LLM_PROVIDERS}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Settings are read from the environment once per process."""
    return Settings()


# ========== Constants ==========

LLM_PROVIDERS = ["openai", "zai", "mock"]


class FaqSource(str):
    """Provenance tags for FAQ entries."""
    MANUAL = "manual"               # Typed in by an admin
    PDF = "pdf"                     # Extracted from a document
    CONVERSATION = "conversation"   # Learned from a chat exchange


class UserRole(str):
    """Roles forwarded by the auth gateway."""
    USER = "user"
    ADMIN = "admin"


# ========== Lists for validation ==========

VALID_FAQ_SOURCES = [FaqSource.MANUAL, FaqSource.PDF, FaqSource.CONVERSATION]


# Module-level instance for code that cannot use dependency injection
settings = get_settings()
