"""Application settings from environment variables."""

from functools import lru_cache
from typing import Literal

from dotenv import load_dotenv
from pydantic_settings import BaseSettings

# Load environment variables
load_dotenv()


class Settings(BaseSettings):
    """Application settings from environment."""

    # Provider
    api_provider: Literal["GEMINI", "OPENAI", "GROQ", "CUSTOM"] = "GEMINI"
    api_keys: list[str] = []

    # Workers
    worker_count: int = 10
    max_worker_count: int = 10

    # Timings (seconds)
    key_cooldown_seconds: float = 45.0
    no_key_backoff_seconds: float = 2.0
    worker_stagger_seconds: float = 0.2
    settle_delay_seconds: float = 1.0
    publish_interval_seconds: float = 0.5

    # Jobs
    error_max_length: int = 100
    slot_quantity_limit: int = 50

    # History
    history_dir: str = ".history"

    # Configuration
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_prefix": "STOCKBATCH_"}


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
