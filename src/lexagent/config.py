"""Application configuration.

Configuration is loaded from environment variables. For local development, you can provide a
`.env` file and set `LEXAGENT_ENV_FILE` to point to it.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """LexAgent settings.

    All fields are environment-configurable. Prefix is `LEXAGENT_`.
    """

    model_config = SettingsConfigDict(
        env_prefix="LEXAGENT_",
        env_file=None,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    app_env: Literal["dev", "prod"] = Field(default="dev")
    log_level: str = Field(default="INFO")

    # LLM
    openai_api_key: str | None = Field(default=None)
    openai_base_url: str | None = Field(default=None)
    openai_model: str = Field(default="gpt-4o-mini")
    # A full agentic session may take minutes; a single call is bounded here.
    openai_timeout_s: float = Field(default=120.0, ge=1.0, le=600.0)
    openai_max_tokens: int = Field(default=12000, ge=256, le=64000)
    openai_max_retries: int = Field(default=2, ge=0, le=10)
    openai_retry_backoff_s: float = Field(default=0.75, ge=0.0, le=30.0)
    openai_retry_max_backoff_s: float = Field(default=8.0, ge=0.0, le=120.0)

    # Case law (CourtListener)
    courtlistener_api_token: str | None = Field(default=None)
    courtlistener_base_url: str = Field(default="https://www.courtlistener.com/api/rest/v4")
    courtlistener_timeout_s: float = Field(default=30.0, ge=1.0, le=300.0)
    courtlistener_max_results: int = Field(default=20, ge=1, le=100)

    # Regulations (eCFR)
    ecfr_base_url: str = Field(default="https://www.ecfr.gov/api/versioner/v1")
    ecfr_timeout_s: float = Field(default=30.0, ge=1.0, le=300.0)

    # Networking
    http_user_agent: str = Field(default="lexagent/0.1 (+legal research engine)")

    # Redis (optional, shared tool cache)
    redis_enabled: bool = Field(default=False)
    redis_url: str = Field(default="redis://localhost:6379/0")
    redis_key_prefix: str = Field(default="lexagent")

    # Research loop
    max_tool_rounds: int = Field(default=10, ge=1, le=50)
    min_evidence_count: int = Field(default=3, ge=1, le=50)
    max_follow_up_queries: int = Field(default=8, ge=1, le=20)
    deep_research_enabled: bool = Field(default=True)
    # Ask the model to refine gap descriptions and follow-up queries.
    model_gap_analysis: bool = Field(default=False)
    initial_search_years: int = Field(default=10, ge=1, le=100)

    # Validation
    validation_window_chars: int = Field(default=200, ge=20, le=2000)
    day_tolerance: int = Field(default=7, ge=0, le=60)

    # Cache TTLs (days)
    ttl_case_law_days: int = Field(default=30, ge=1)
    ttl_not_found_days: int = Field(default=7, ge=1)
    ttl_regulation_days: int = Field(default=90, ge=1)
    ttl_citation_verified_days: int = Field(default=30, ge=1)
    ttl_citation_unverified_days: int = Field(default=7, ge=1)


def load_settings() -> Settings:
    """Load settings from env.

    Returns:
        Settings: Parsed settings.
    """

    env_file_override = os.getenv("LEXAGENT_ENV_FILE")
    if env_file_override:
        env_path = Path(env_file_override)
        return Settings(_env_file=env_path)

    default_env = Path.cwd() / ".env"
    if default_env.exists():
        return Settings(_env_file=default_env)

    return Settings()
