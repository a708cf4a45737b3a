"""
Configuration management for the visibility engine
Environment-based settings with secure defaults
"""

from functools import lru_cache
from typing import List, Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    APP_NAME: str = "visibility-engine"
    APP_ENV: str = "development"  # development, staging, production
    DEBUG: bool = False

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    WORKERS: int = 4

    # Database
    DATABASE_URL: str  # Required
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 10

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"

    # JWT Auth
    JWT_SECRET_KEY: str  # Required
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Check executor (runs a query against a provider and classifies the answer)
    CHECK_EXECUTOR_URL: str = "http://localhost:8100"
    CHECK_EXECUTOR_API_KEY: Optional[str] = None
    CHECK_EXECUTOR_TIMEOUT: int = 120  # seconds, per HTTP request
    CHECK_BATCH_TIMEOUT: int = 180  # seconds, whole batch incl. persistence

    # Scheduling
    SCHEDULE_TRIGGER_INTERVAL_SECONDS: int = 300
    SCHEDULE_CLAIM_LEASE_SECONDS: int = 900
    SCHEDULE_DUE_BATCH_SIZE: int = 50

    # Rate Limiting
    RATE_LIMIT_VISIBILITY_RUNS: int = 5
    RATE_LIMIT_VISIBILITY_WINDOW_SECONDS: int = 60

    # Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/1"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/2"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def is_development(self) -> bool:
        return self.APP_ENV == "development"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Cached settings loader"""
    return Settings()


# Plan limits per subscription tier
PLAN_LIMITS = {
    "free": {
        "scheduled_queries": 0,
        "visibility_checks": 3,      # per month, across all projects
        "saved_keywords": 10,        # per project
        "regional_filtering": False,
        "hourly_schedules": False,
    },
    "starter": {
        "scheduled_queries": 5,
        "visibility_checks": 25,
        "saved_keywords": 50,
        "regional_filtering": False,
        "hourly_schedules": False,
    },
    "pro": {
        "scheduled_queries": 25,
        "visibility_checks": 100,
        "saved_keywords": 200,
        "regional_filtering": True,
        "hourly_schedules": True,
    },
    "agency": {
        "scheduled_queries": 100,
        "visibility_checks": 500,
        "saved_keywords": 1000,
        "regional_filtering": True,
        "hourly_schedules": True,
    },
}

# Ordered lowest to highest
TIER_LEVELS = {
    "free": 0,
    "starter": 1,
    "pro": 2,
    "agency": 3,
}

# Regions a check batch can be scoped to, with their default answer language
REGION_LANGUAGES = {
    "us": "en",
    "gb": "en",
    "de": "de",
    "fr": "fr",
    "es": "es",
    "br": "pt",
    "jp": "ja",
    "au": "en",
    "ca": "en",
    "in": "en",
    "it": "it",
    "nl": "nl",
    "se": "sv",
    "kr": "ko",
}
