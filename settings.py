# settings.py
"""
RepCycle API Settings.

Pydantic settings management with environment variable support.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # MongoDB
    DATABASE_URL: str = Field(
        default="mongodb://localhost:27017/?replicaSet=rs0",
        description="MongoDB connection string (replica set required for transactions)"
    )
    DATABASE_NAME: str = Field(default="repcycle_prod")
    STORAGE_BACKEND: str = Field(
        default="mongodb",
        description="Persistence backend: mongodb or memory"
    )

    # JWT - tokens are issued by the identity service, only verified here
    SECRET_KEY: str = Field(default="change-me", description="JWT signing secret")
    ALGORITHM: str = Field(default="HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=30)

    # Environment
    ENV: str = Field(default="development")
    DEBUG: bool = Field(default=True)

    # Gemini AI (program generation)
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_MODEL: str = "gemini-1.5-flash"
    GENERATION_TIMEOUT_SECONDS: float = Field(
        default=30.0,
        description="Upper bound for a single program generation call"
    )

    # Redis Configuration
    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL (redis://[:password@]host:port/db)"
    )
    CACHE_ENABLED: bool = Field(default=True)
    CACHE_TTL_PROGRAM: int = Field(
        default=300,
        description="Active program / eligibility cache TTL (5 minutes)"
    )

    # Regeneration rules
    REGENERATION_COOLDOWN_HOURS: float = Field(default=24.0)
    MIN_PROGRAM_AGE_DAYS: float = Field(default=7.0)
    MIN_COMPLETED_WORKOUTS: int = Field(default=3)
    REVERT_WINDOW_HOURS: float = Field(default=24.0)
    PLATEAU_EXERCISE_THRESHOLD: int = Field(
        default=2,
        description="Plateaued exercises needed before recommending regeneration"
    )

    # Progression rules
    HISTORY_LOOKBACK: int = Field(default=6, description="Records per exercise used for summaries")
    PLATEAU_MISS_THRESHOLD: int = Field(default=3, description="Consecutive misses before a deload")
    ACCEPTABLE_EFFORT_MAX: int = Field(default=8)
    NEAR_FAILURE_EFFORT_MIN: int = Field(default=9)
    INCREMENT_UPPER_ISOLATION_KG: float = 1.25
    INCREMENT_UPPER_COMPOUND_KG: float = 2.5
    INCREMENT_LOWER_ISOLATION_KG: float = 2.5
    INCREMENT_LOWER_COMPOUND_KG: float = 5.0
    DELOAD_FRACTION: float = 0.15
    DELOAD_MAX_KG: float = 5.0

    # Sentry Error Tracking
    SENTRY_DSN: Optional[str] = None
    SENTRY_ENVIRONMENT: str = "production"
    SENTRY_TRACES_SAMPLE_RATE: float = 0.1

    @property
    def is_mongodb(self) -> bool:
        """Check if the MongoDB backend is selected."""
        return self.STORAGE_BACKEND == "mongodb"

    def validate_required_settings(self) -> None:
        """Validate that required settings are configured."""
        if not self.DATABASE_URL:
            raise ValueError("DATABASE_URL must be set")
        if not self.SECRET_KEY or self.SECRET_KEY == "change-me":
            raise ValueError("SECRET_KEY must be changed from default in production")
        if self.STORAGE_BACKEND not in ("mongodb", "memory"):
            raise ValueError("STORAGE_BACKEND must be 'mongodb' or 'memory'")


settings = Settings()

# Validate in production
if settings.ENV == "production":
    settings.validate_required_settings()
