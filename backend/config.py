"""Application configuration using pydantic-settings."""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    DATABASE_URL: str = "sqlite:///./portfolio.db"

    # CoinGecko demo API key (optional - keyless public API otherwise)
    COINGECKO_API_KEY: str = ""

    # Quote polling
    MARKET_TIMEZONE: str = "America/New_York"
    QUOTE_POLL_OPEN_SECONDS: float = 30.0
    QUOTE_POLL_CLOSED_SECONDS: float = 300.0
    MAX_QUOTE_SYMBOLS: int = 50

    # Import price backfill
    BACKFILL_BATCH_SIZE: int = 10

    # App settings
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: list[str] = ["http://localhost:5173"]

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize LOG_LEVEL to an uppercase Python logging level."""
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"LOG_LEVEL must be one of {valid}, got {v!r}")
        return v.upper()

    @field_validator("BACKFILL_BATCH_SIZE")
    @classmethod
    def validate_batch_size(cls, v: int) -> int:
        """Reject batch sizes that would stall the backfill loop."""
        if v < 1:
            raise ValueError(f"BACKFILL_BATCH_SIZE must be at least 1, got {v}")
        return v

    @field_validator("QUOTE_POLL_OPEN_SECONDS", "QUOTE_POLL_CLOSED_SECONDS")
    @classmethod
    def validate_poll_interval(cls, v: float) -> float:
        """Polling intervals must be positive."""
        if v <= 0:
            raise ValueError(f"Polling interval must be positive, got {v}")
        return v


settings = Settings()
