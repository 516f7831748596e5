"""
Configuration & Environment Management for EventSpark
"""

import logging
import secrets
from functools import lru_cache
from typing import Any, Dict, List, Optional, Union

from pydantic import EmailStr, ValidationInfo, field_validator
from pydantic_settings import BaseSettings as PydanticBaseSettings
from pydantic_settings import SettingsConfigDict

logger = logging.getLogger(__name__)


class DatabaseSettings(PydanticBaseSettings):
    """Database configuration settings"""

    HOST: str = "localhost"
    PORT: int = 5432
    USER: str = "postgres"
    PASSWORD: str = ""
    NAME: str = "eventspark"

    # Full URL override, e.g. sqlite+aiosqlite:///./eventspark.db
    URL: Optional[str] = None

    # Connection Pool Settings
    POOL_SIZE: int = 20
    MAX_OVERFLOW: int = 30
    POOL_TIMEOUT: int = 30
    POOL_RECYCLE: int = 3600
    POOL_PRE_PING: bool = True
    ECHO: bool = False

    STATEMENT_TIMEOUT: str = "60s"
    LOCK_TIMEOUT: str = "30s"

    @property
    def database_url(self) -> str:
        """Generate database URL for async connections"""
        if self.URL:
            return self.URL
        return f"postgresql+asyncpg://{self.USER}:{self.PASSWORD}@{self.HOST}:{self.PORT}/{self.NAME}"

    model_config = SettingsConfigDict(env_prefix="DB_", case_sensitive=True)


class RedisSettings(PydanticBaseSettings):
    """Redis configuration settings"""

    HOST: str = "localhost"
    PORT: int = 6379
    DB: int = 0
    PASSWORD: Optional[str] = None
    USERNAME: Optional[str] = None

    @property
    def redis_url(self) -> str:
        """Generate Redis URL"""
        auth = ""
        if self.USERNAME and self.PASSWORD:
            auth = f"{self.USERNAME}:{self.PASSWORD}@"
        elif self.PASSWORD:
            auth = f":{self.PASSWORD}@"

        return f"redis://{auth}{self.HOST}:{self.PORT}/{self.DB}"

    model_config = SettingsConfigDict(env_prefix="REDIS_", case_sensitive=True)


class SecuritySettings(PydanticBaseSettings):
    """Security and authentication settings"""

    SECRET_KEY: str = secrets.token_urlsafe(32)
    JWT_ALGORITHM: str = "HS256"

    # Tokens live for a week
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7

    PASSWORD_MIN_LENGTH: int = 6
    TEMPORARY_PASSWORD_LENGTH: int = 12

    # One-time codes for email verification and password reset
    OTP_LENGTH: int = 6
    OTP_EXPIRE_MINUTES: int = 10
    OTP_MAX_ATTEMPTS: int = 5

    model_config = SettingsConfigDict(env_prefix="SECURITY_", case_sensitive=True)


class CacheSettings(PydanticBaseSettings):
    """Redis cache-aside settings"""

    ENABLED: bool = True
    TTL: int = 60 * 5
    KEY_PREFIX: str = "eventspark:"

    model_config = SettingsConfigDict(env_prefix="CACHE_", case_sensitive=True)


class MonitoringSettings(PydanticBaseSettings):
    """Monitoring and observability settings"""

    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"
    ENABLE_PROMETHEUS: bool = True

    model_config = SettingsConfigDict(env_prefix="MONITORING_", case_sensitive=True)


class EmailSettings(PydanticBaseSettings):
    """Email configuration settings"""

    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_TLS: bool = True
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    FROM_EMAIL: Optional[EmailStr] = None
    FROM_NAME: str = "EventSpark"

    ENABLED: bool = False
    TEMPLATES_DIR: Optional[str] = None

    @field_validator("ENABLED", mode="after")  # type: ignore[misc]
    @classmethod
    def get_emails_enabled(cls, v: Any, info: ValidationInfo) -> bool:
        values: Dict[str, Any] = info.data if info.data else {}
        return bool(v) and bool(values.get("SMTP_HOST") and values.get("FROM_EMAIL"))

    model_config = SettingsConfigDict(env_prefix="EMAIL_", case_sensitive=True)


class BookingSettings(PydanticBaseSettings):
    """Seat booking and payment settings"""

    MAX_SEATS_PER_BOOKING: int = 10
    SEATS_PER_ROW: int = 10
    # Attempts to re-price a sale when another sale moves the sold count first
    PRICE_RETRY_ATTEMPTS: int = 5
    # Probability that the simulated payment gateway approves a charge
    PAYMENT_SUCCESS_RATE: float = 0.9

    model_config = SettingsConfigDict(env_prefix="BOOKING_", case_sensitive=True)


class CelerySettings(PydanticBaseSettings):
    """Background task settings"""

    BROKER_URL: str = "redis://localhost:6379/1"
    RESULT_BACKEND: str = "redis://localhost:6379/2"
    TASK_SERIALIZER: str = "json"
    RESULT_SERIALIZER: str = "json"
    ACCEPT_CONTENT: List[str] = ["json"]
    TIMEZONE: str = "UTC"

    model_config = SettingsConfigDict(env_prefix="CELERY_", case_sensitive=True)


class Settings(PydanticBaseSettings):
    """Main application settings"""

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    TESTING: bool = False
    VERSION: str = "1.0.0"

    # API Configuration
    API_V1_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "EventSpark"
    SERVER_HOST: str = "http://localhost:8000"

    # CORS Configuration
    BACKEND_CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")  # type: ignore[misc]
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> List[str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",")]
        elif isinstance(v, list):
            return v
        return []

    # Component Settings
    database: DatabaseSettings = DatabaseSettings()
    redis: RedisSettings = RedisSettings()
    security: SecuritySettings = SecuritySettings()
    cache: CacheSettings = CacheSettings()
    monitoring: MonitoringSettings = MonitoringSettings()
    email: EmailSettings = EmailSettings()
    booking: BookingSettings = BookingSettings()
    celery: CelerySettings = CelerySettings()

    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        if self.TESTING:
            return "sqlite+aiosqlite:///:memory:"
        return self.database.database_url

    @property
    def REDIS_URL(self) -> str:
        return self.redis.redis_url

    @property
    def SECRET_KEY(self) -> str:
        return self.security.SECRET_KEY

    @property
    def ACCESS_TOKEN_EXPIRE_MINUTES(self) -> int:
        return self.security.ACCESS_TOKEN_EXPIRE_MINUTES

    @property
    def CACHE_ENABLED(self) -> bool:
        return self.cache.ENABLED and not self.TESTING

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=True, extra="ignore"
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
