"""Application settings loaded from environment variables."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Jvala flare tracker server configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Server
    # Default to loopback: the server has no auth layer of its own and expects
    # to sit behind one. Opt into `0.0.0.0` explicitly.
    jvala_host: str = "127.0.0.1"
    jvala_port: int = 8001
    jvala_log_level: str = "info"
    jvala_allow_insecure_bind: bool = False

    # Note classification LLM
    llm_provider: Literal["anthropic", "openai", "mock"] = "mock"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-5-20250929"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o"

    # Storage
    db_path: str = "~/.jvala/flares.db"
    encryption_key: str = ""

    # Context enrichment (weather / wearable snapshots at entry creation)
    context_provider: Literal["mock", "none"] = "none"

    # Correlation discovery
    correlation_lookahead_hours: int = 72
    correlation_history_limit: int = 1000

    # Clinician report shares
    share_expiry_days: int = 7
    share_report_weeks: int = 4


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
