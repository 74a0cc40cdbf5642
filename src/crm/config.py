"""Application configuration via Pydantic BaseSettings."""

from __future__ import annotations

from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    development = "development"
    staging = "staging"
    production = "production"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Environment
    ENVIRONMENT: Environment = Environment.development

    # Logging
    LOG_LEVEL: str = "INFO"

    # Simulated backend roundtrip (milliseconds); a MAX of 0 disables the delay
    SIMULATED_LATENCY_MIN_MS: int = 200
    SIMULATED_LATENCY_MAX_MS: int = 400

    # Fixture seeding
    FIXTURE_DIR: str = ""  # Empty -> packaged fixtures under records/seed
    SEED_FIXTURES: bool = True

    # Deal defaults
    DEFAULT_DEAL_STAGE: str = "Lead"

    # Dashboard
    UPCOMING_DEALS_LIMIT: int = 5
    RECENT_ACTIVITIES_LIMIT: int = 5

    # General preferences
    COMPANY_NAME: str = "Your Company"
    CURRENCY: str = "USD"

    # CORS
    CORS_ALLOWED_ORIGINS: str = "*"

    # Monitoring
    SENTRY_DSN: str = ""

    def get_fixture_dir(self) -> Path:
        """Return the directory fixture JSON files are seeded from.

        Prefers FIXTURE_DIR when set, otherwise the fixtures shipped with
        the records package.
        """
        if self.FIXTURE_DIR:
            return Path(self.FIXTURE_DIR)
        return Path(__file__).parent / "records" / "seed"

    def latency_range(self) -> tuple[float, float]:
        """Simulated latency bounds in seconds, ordered (low, high).

        A non-positive SIMULATED_LATENCY_MAX_MS disables the delay whatever
        the minimum is.
        """
        if self.SIMULATED_LATENCY_MAX_MS <= 0:
            return (0.0, 0.0)
        low = max(self.SIMULATED_LATENCY_MIN_MS, 0) / 1000
        high = max(self.SIMULATED_LATENCY_MAX_MS, 0) / 1000
        return (min(low, high), max(low, high))


@lru_cache
def get_settings() -> Settings:
    """Singleton settings instance."""
    return Settings()
