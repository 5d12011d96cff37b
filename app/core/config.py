"""
Core configuration module for the application.
Handles all environment variables and configuration settings.
"""

from typing import List, Optional, Dict, Any
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, validator
from pathlib import Path

# Get the base directory
BASE_DIR = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application Settings
    APP_NAME: str = "AI Code Generator"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = Field(default=False)
    ENVIRONMENT: str = Field(default="production", pattern="^(development|staging|production)$")

    # Server Settings
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=8000)

    # Security
    SECRET_KEY: str = Field(..., min_length=32)
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24  # 24 hours
    JWT_REFRESH_TOKEN_EXPIRE_DAYS: int = 30
    CORS_ALLOWED_ORIGINS: str = ""  # Will be parsed to List[str] by validator

    # Gemini completion API
    GEMINI_API_KEY: Optional[str] = None  # Fallback when no key is stored in api_keys
    GEMINI_API_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    GEMINI_MODEL: str = "gemini-pro"
    GEMINI_TIMEOUT: int = 60
    GEMINI_TEMPERATURE: float = 0.7
    GEMINI_TOP_P: float = 0.8
    GEMINI_TOP_K: int = 40
    GEMINI_MAX_OUTPUT_TOKENS: int = 4096
    GEMINI_SAFETY_THRESHOLD: str = "BLOCK_MEDIUM_AND_ABOVE"

    # Database Configuration
    DATABASE_URL_MASTER: str = Field(...)
    DATABASE_URL_SLAVES: str = ""  # Comma-separated, will be parsed by validator
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 40
    DATABASE_POOL_TIMEOUT: int = 30
    DATABASE_ECHO: bool = False
    SERVERLESS: bool = False  # Use NullPool when connections cannot outlive a request

    # Redis Configuration
    REDIS_URL: str = Field(default="redis://localhost:6379/0")
    REDIS_PASSWORD: Optional[str] = None
    REDIS_POOL_SIZE: int = 10
    REDIS_DECODE_RESPONSES: bool = True

    # Celery Configuration
    CELERY_BROKER_URL: str = Field(default="redis://localhost:6379/1")
    CELERY_RESULT_BACKEND: str = Field(default="redis://localhost:6379/2")
    CELERY_TASK_SERIALIZER: str = "json"
    CELERY_RESULT_SERIALIZER: str = "json"
    CELERY_ACCEPT_CONTENT: List[str] = ["json"]
    CELERY_TIMEZONE: str = "Asia/Dhaka"
    TASK_TIMEOUT: int = 300  # 5 minutes
    TASK_MAX_RETRIES: int = 3
    TASK_RETRY_DELAY: int = 60  # 1 minute
    TASK_RESULT_EXPIRY: int = 86400  # 24 hours
    RECONCILE_INTERVAL_SECONDS: int = 86400
    PAYMENT_RETRY_INTERVAL_SECONDS: int = 300

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_GENERATIONS_PER_MINUTE: int = 10

    # Monitoring
    PROMETHEUS_ENABLED: bool = True

    # Logging
    LOG_LEVEL: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    LOG_FORMAT: str = "json"
    LOG_FILE_PATH: Optional[Path] = BASE_DIR / "logs" / "app.log"
    LOG_ROTATION: str = "1 day"

    # Credits
    DEFAULT_USER_CREDITS: int = 50  # Welcome bonus for new accounts
    CREDITS_REFERRAL_REWARD: int = 50  # Paid to the referrer on signup

    # Generation pricing
    CREDITS_COMPLEXITY_SIMPLE: int = 1
    CREDITS_COMPLEXITY_INTERMEDIATE: int = 1
    CREDITS_COMPLEXITY_ADVANCED: int = 2
    CREDITS_TESTS_SURCHARGE: int = 1
    CREDITS_FRAMEWORK_SURCHARGE: int = 1

    # Payments
    DEFAULT_PAYMENT_CURRENCY: str = "BDT"
    PAYMENT_PROCESSING_RETRY_AFTER_MINUTES: int = 5

    @validator("CORS_ALLOWED_ORIGINS", pre=True)
    def parse_cors_origins(cls, v):
        if v is None or v == "":
            return ""
        return v

    @validator("DATABASE_URL_SLAVES", pre=True)
    def parse_slave_urls(cls, v):
        if v is None or v == "":
            return ""
        return v

    @validator("LOG_FILE_PATH")
    def create_log_path(cls, v):
        if v:
            try:
                v.parent.mkdir(parents=True, exist_ok=True)
            except (OSError, PermissionError):
                # Read-only filesystem; file handler setup will skip it
                pass
        return v

    @property
    def cors_origins(self) -> List[str]:
        """Get CORS allowed origins as a list."""
        if not self.CORS_ALLOWED_ORIGINS:
            return []
        return [origin.strip() for origin in self.CORS_ALLOWED_ORIGINS.split(",") if origin.strip()]

    @property
    def slave_database_urls(self) -> List[str]:
        """Get slave database URLs as a list."""
        if not self.DATABASE_URL_SLAVES:
            return []
        return [url.strip() for url in self.DATABASE_URL_SLAVES.split(",") if url.strip()]

    @property
    def is_sqlite(self) -> bool:
        """Check if the master database is SQLite (local development and tests)."""
        return self.DATABASE_URL_MASTER.startswith("sqlite")

    @property
    def complexity_costs(self) -> Dict[str, int]:
        """Base generation cost per complexity level."""
        return {
            "simple": self.CREDITS_COMPLEXITY_SIMPLE,
            "intermediate": self.CREDITS_COMPLEXITY_INTERMEDIATE,
            "advanced": self.CREDITS_COMPLEXITY_ADVANCED,
        }

    @property
    def redis_dsn(self) -> str:
        """Get Redis DSN with password if configured."""
        if self.REDIS_PASSWORD:
            return self.REDIS_URL.replace("redis://", f"redis://:{self.REDIS_PASSWORD}@")
        return self.REDIS_URL

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="allow",
        env_ignore_empty=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Use this function to get settings throughout the application.
    """
    return Settings()


# Create a global settings instance
settings = get_settings()
