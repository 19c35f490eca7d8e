"""Application configuration using Pydantic Settings"""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.database import PoolConfig

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    model_config = SettingsConfigDict(
        env_file=Path(__file__).parent.parent / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field(..., description="PostgreSQL database URL")
    db_max_retries: int = Field(default=3, ge=1, description="Pool connect attempts")
    db_retry_delay: float = Field(default=2.0, ge=0, description="Base retry delay in seconds")

    # JWT Configuration
    jwt_secret_key: str = Field(..., description="Secret key for JWT token verification")
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    jwt_expire_days: int = Field(default=30, description="JWT token expiration in days")
    auth_cookie_name: str = Field(default="auth_token", description="Session cookie name")

    # Server
    frontend_url: str = Field(default="http://localhost:3000", description="Frontend URL for CORS")
    environment: str = Field(default="development", description="Environment name")
    log_level: str = Field(default="INFO", description="Logging level")
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")

    # Rate limiting (per client, fixed window)
    rate_limit_requests: int = Field(default=60, ge=1, description="Requests allowed per window")
    rate_limit_window_seconds: int = Field(default=60, ge=1, description="Window length")

    # Queue maintenance
    repair_queues_on_startup: bool = Field(
        default=True, description="Repair in-progress queues with invalid positions at startup"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid logging level"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            logger.warning(f"Invalid log level '{v}', defaulting to INFO")
            return "INFO"
        return v_upper

    @property
    def cors_origins(self) -> list[str]:
        return [self.frontend_url]

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    @property
    def pool_config(self) -> PoolConfig:
        return PoolConfig(max_retries=self.db_max_retries, retry_delay=self.db_retry_delay)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()  # type: ignore[call-arg]
