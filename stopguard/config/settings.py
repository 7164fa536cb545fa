"""
Application settings using Pydantic Settings.

Loads configuration from environment variables with validation.
"""

from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    
    All settings are loaded from .env file or environment variables.
    Every field has a default so the engine can run against the in-memory
    store without any configuration.
    """
    
    # App Configuration
    APP_NAME: str = Field(default="StopGuard")
    APP_VERSION: str = Field(default="1.0.0")
    ENVIRONMENT: str = Field(default="development")
    
    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="colored")
    LOG_FILE_PATH: Optional[str] = Field(default=None)
    
    # Database (required by create_services unless in_memory=True)
    MONGODB_URL: str = Field(default="")
    MONGODB_DB_NAME: str = Field(default="stopguard")
    MANAGED_POSITIONS_COLLECTION: str = Field(default="managed_positions")
    
    # Alpaca
    ALPACA_API_KEY: str = Field(default="")
    ALPACA_SECRET_KEY: str = Field(default="")
    ALPACA_PAPER: bool = Field(default=True)
    ALPACA_DATA_URL: str = Field(default="https://data.alpaca.markets")
    HTTP_TIMEOUT_SECONDS: float = Field(default=10.0)
    
    # Monitoring
    MONITOR_MAX_CONCURRENCY: int = Field(default=5)
    PRICE_FETCH_TIMEOUT_SECONDS: float = Field(default=5.0)
    
    # Close execution
    CLOSE_MAX_ATTEMPTS: int = Field(default=1)
    CLOSE_RETRY_DELAY_SECONDS: float = Field(default=1.0)
    
    @property
    def alpaca_trading_url(self) -> str:
        """Trading API base URL for the configured account type."""
        if self.ALPACA_PAPER:
            return "https://paper-api.alpaca.markets"
        return "https://api.alpaca.markets"
    
    @field_validator("MONITOR_MAX_CONCURRENCY", "CLOSE_MAX_ATTEMPTS")
    @classmethod
    def validate_positive_int(cls, v: int) -> int:
        """Validate counts are positive."""
        if v <= 0:
            raise ValueError("value must be positive")
        return v
    
    @field_validator("PRICE_FETCH_TIMEOUT_SECONDS", "HTTP_TIMEOUT_SECONDS")
    @classmethod
    def validate_positive_timeout(cls, v: float) -> float:
        """Validate timeouts are positive."""
        if v <= 0:
            raise ValueError("timeout must be positive")
        return v
    
    @field_validator("CLOSE_RETRY_DELAY_SECONDS")
    @classmethod
    def validate_retry_delay(cls, v: float) -> float:
        """Validate retry delay is not negative."""
        if v < 0:
            raise ValueError("CLOSE_RETRY_DELAY_SECONDS must not be negative")
        return v
    
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "extra": "ignore",
    }


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get settings instance (lazy loading)."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
