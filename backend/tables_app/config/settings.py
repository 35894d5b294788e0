"""
Application Configuration

This module provides type-safe configuration loading using Pydantic settings.
Environment variables are loaded from .env file and validated.

Usage:
    from tables_app.config import settings

    # Access settings
    db_url = settings.POSTGRES_URL
    batch_size = settings.PRACTICE_BATCH_SIZE
"""

from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Times Tables"
    DEBUG: bool = False

    # PostgreSQL
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "tables"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = "tables"

    @property
    def POSTGRES_URL(self) -> str:
        """Async PostgreSQL connection URL."""
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    # Full SQLAlchemy URL; overrides the PostgreSQL parts when set
    # (e.g. sqlite+aiosqlite:///./tables.db for a local run)
    DATABASE_URL: Optional[str] = None

    @property
    def SQLALCHEMY_DATABASE_URL(self) -> str:
        """URL the application engine connects to."""
        return self.DATABASE_URL or self.POSTGRES_URL

    # Practice scheduling
    # Used when a request does not identify the learner
    PRACTICE_DEFAULT_USER_ID: str = "demo-student"
    PRACTICE_BATCH_SIZE: int = 10
    PRACTICE_MAX_BATCH_SIZE: int = 50

    # Challenge rounds are clamped into this range
    PRACTICE_CHALLENGE_MIN_BATCH: int = 5
    PRACTICE_CHALLENGE_MAX_BATCH: int = 20

    # New learners get their initial due dates spread over this window
    PRACTICE_STAGGER_WINDOW_MINUTES: int = 6 * 60

    # Base points for the end-of-session score
    PRACTICE_SESSION_SCORE_BASE: int = 100

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()


@lru_cache()
def load_yaml_config() -> dict[str, Any]:
    """Load application configuration from config/default.yaml."""
    config_path = Path(__file__).parent.parent.parent.parent / "config" / "default.yaml"

    if not config_path.exists():
        return {}

    with open(config_path) as f:
        return yaml.safe_load(f) or {}


yaml_config: dict[str, Any] = load_yaml_config()
