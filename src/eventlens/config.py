"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    openai_api_key: str
    photographer_token: str
    openai_model: str = "gpt-5.2"
    openai_reasoning_effort: str = "low"
    openai_store: bool = False
    match_timeout_seconds: float = 60.0
    match_retry_attempts: int = 0
    match_chunk_size: int = 4
    index_batch_size: int = 3
    index_retry_delay_seconds: float = 0.1
    normalize_max_width: int = 600
    normalize_quality: int = 85
    capture_step_seconds: float = 4.5
    capture_tick_seconds: float = 0.05
    capture_finish_delay_seconds: float = 1.0
    camera_index: int = 0
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
