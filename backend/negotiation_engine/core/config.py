"""
Engine configuration using pydantic-settings.

WHAT: Centralized negotiation limits and runtime switches
WHY: Round bounds, pacing and thresholds tunable without code changes
HOW: Pydantic BaseSettings reads from .env and environment
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator


class Settings(BaseSettings):
    """Engine settings loaded from environment."""

    # App metadata
    APP_NAME: str = "B2B Negotiation Engine"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # Round protocol
    MAX_ROUNDS: int = Field(default=8, ge=1)
    MAX_DURATION_MINUTES: float = Field(default=30, gt=0)
    ROUND_DELAY_SECONDS: float = Field(default=0.5, ge=0)  # pacing only, no protocol meaning
    SIMULATED_MINUTES_PER_ROUND: float = Field(default=2, ge=0)

    # Strategy self-adjustment (anti-deadlock widening)
    STRATEGY_REVIEW_INTERVAL: int = Field(default=3, ge=1)
    STALL_THRESHOLD: float = Field(default=0.1, ge=0, le=1)
    FLEXIBILITY_STEP: float = Field(default=0.1, ge=0, le=1)

    # Outcome scoring
    SUCCESS_SATISFACTION: float = Field(default=0.8, ge=0, le=1)
    FAILURE_SATISFACTION: float = Field(default=0.2, ge=0, le=1)

    # Contracts
    CONTRACT_VALIDITY_DAYS: int = Field(default=30, ge=1)
    LATE_DELIVERY_PENALTY_PERCENT: float = Field(default=0.5, ge=0)

    # Event channel: 0 means unbounded subscriber queues
    EVENT_QUEUE_MAXSIZE: int = Field(default=0, ge=0)

    # CORS - accepts comma-separated string or list
    CORS_ORIGINS: str = "http://localhost:3000"

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS_ORIGINS from comma-separated string or list."""
        if isinstance(v, list):
            return ",".join(v)
        return v

    def get_cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""  # empty disables the file handler

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


# Singleton instance
settings = Settings()
