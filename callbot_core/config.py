"""
Configuration module for the calling bot.

All secrets are read from environment variables.
"""
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server configuration
    service_name: str = "callbot"
    host: str = "0.0.0.0"
    port: int = 3978
    environment: Literal["development", "production", "test"] = "development"
    log_level: str = "info"

    # Completion backend
    completion_endpoint: str = "http://localhost:8000/completions"
    completion_model: str = "text-davinci-003"
    completion_token: str = Field(default="", description="Bearer token for the completion backend")
    completion_max_tokens: int = 500
    completion_temperature: float = 0.6
    completion_top_p: int = 1
    completion_n: int = 1
    completion_stop: str = ""
    completion_timeout_seconds: float = 60.0
    answer_streaming: bool = False

    # Graph communications API
    graph_base_url: str = "https://graph.microsoft.com/v1.0"
    graph_token: str = Field(default="", description="Bearer token for the Graph API")
    graph_timeout_seconds: float = 30.0
    callback_uri: str = "https://localhost:3978/callback"
    catalog_app_id: str = ""
    meeting_organizer_id: str = Field(default="", description="User that owns incident meetings")

    # Bot behaviour
    record_prompt_uri: str = "https://localhost:3978/audio/please-record-your-message.wav"
    context_scope: Literal["conversation", "process"] = "conversation"
    context_max_conversations: int | None = Field(
        default=None,
        description="Least recently used contexts are dropped beyond this count",
    )

    # Incident registry bounds (unbounded when unset)
    incident_ttl_seconds: int | None = None
    incident_max_entries: int | None = None


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
