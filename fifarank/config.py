"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite:///./fifarank.db"
    DATABASE_ECHO: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"

    # API Security
    API_KEY: str = ""  # Optional API key for write endpoints
    API_KEY_HEADER: str = "X-API-Key"
    RATE_LIMIT_PER_MINUTE: str = "60/minute"
    METRICS_BEARER_TOKEN: str = ""

    # Pagination
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    # ═══════════════════════════════════════════════════════════════
    # Ranking engine
    # ═══════════════════════════════════════════════════════════════

    # Simulator RNG seed. None = system entropy (non-reproducible)
    SIMULATION_SEED: Optional[int] = None

    # Minimum recorded results before a team appears in "top form"
    TOP_FORM_MIN_MATCHES: int = 5

    # Postgres advisory lock key guarding ranking recomputation across workers
    RANKING_LOCK_KEY: int = 7_310_001

    # Ranking history retention (snapshots older than this are pruned)
    RANKING_HISTORY_RETENTION_DAYS: int = 365

    # Sentry
    SENTRY_DSN: str = ""
    SENTRY_ENVIRONMENT: str = "development"
    SENTRY_TRACES_SAMPLE_RATE: float = 0.05

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
