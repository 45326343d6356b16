"""
Application Configuration
Pydantic Settings for environment-based configuration
Source: https://docs.pydantic.dev/latest/concepts/pydantic_settings/
"""

import json
from functools import lru_cache
from typing import Any, Literal
from urllib.parse import urlsplit, urlunsplit

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Values are read from the process environment first, then from ``.env``.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ============================================================================
    # Application Settings
    # ============================================================================
    ENVIRONMENT: Literal["development", "staging", "production", "testing"] = Field(
        default="development", description="Environment: development, staging, production, testing"
    )
    DEBUG: bool = Field(default=False, description="Debug mode (NEVER enable in production)")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FILE: str | None = Field(default=None, description="Optional log file path")
    JSON_LOGS: bool = Field(default=False, description="Emit JSON log records")
    APP_URL: str = Field(default="http://localhost:3000", description="Public frontend URL")

    # Security
    JWT_SECRET_KEY: str = Field(
        ..., min_length=32, description="Secret key for JWT tokens (min 32 chars)"
    )
    JWT_ALGORITHM: str = Field(default="HS256", description="JWT algorithm")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(
        default=30, description="Access token expiration (minutes)"
    )

    # ============================================================================
    # Database Configuration
    # ============================================================================
    POSTGRES_HOST: str = Field(default="db", description="PostgreSQL host")
    POSTGRES_PORT: int = Field(default=5432, description="PostgreSQL port")
    POSTGRES_DB: str = Field(default="claimflow", description="Database name")
    POSTGRES_USER: str = Field(default="claimflow", description="Database user")
    POSTGRES_PASSWORD: str = Field(default="", description="Database password")

    DATABASE_URL: str | None = Field(default=None, description="Full database URL")

    DB_POOL_SIZE: int = Field(default=20, description="Database connection pool size")
    DB_MAX_OVERFLOW: int = Field(default=10, description="Max overflow connections")
    DB_POOL_TIMEOUT: int = Field(default=30, description="Connection timeout (seconds)")

    @property
    def database_url(self) -> str:
        """Construct DATABASE_URL if not explicitly provided"""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    # ============================================================================
    # Redis / Celery Configuration
    # ============================================================================
    REDIS_HOST: str = Field(default="redis", description="Redis host")
    REDIS_PORT: int = Field(default=6379, description="Redis port")
    REDIS_PASSWORD: str | None = Field(default=None, description="Redis password")
    REDIS_URL: str | None = Field(default=None, description="Full Redis URL")

    CELERY_BROKER_URL: str | None = Field(default=None, description="Celery broker URL")
    CELERY_RESULT_BACKEND: str | None = Field(default=None, description="Celery result backend")

    def _redis_db_url(self, db: int) -> str:
        if self.REDIS_URL:
            return urlunsplit(urlsplit(self.REDIS_URL)._replace(path=f"/{db}"))
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{db}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{db}"

    @property
    def celery_broker_url(self) -> str:
        """Construct Celery broker URL (Redis DB 1)"""
        return self.CELERY_BROKER_URL or self._redis_db_url(1)

    @property
    def celery_result_backend(self) -> str:
        """Construct Celery result backend URL (Redis DB 2)"""
        return self.CELERY_RESULT_BACKEND or self._redis_db_url(2)

    # ============================================================================
    # MinIO Configuration
    # ============================================================================
    MINIO_ENDPOINT: str = Field(default="minio:9000", description="MinIO endpoint")
    MINIO_ACCESS_KEY: str = Field(default="minioadmin", description="MinIO access key")
    MINIO_SECRET_KEY: str = Field(default="minioadmin", description="MinIO secret key")
    MINIO_SECURE: bool = Field(default=False, description="Use HTTPS for MinIO")
    MINIO_REGION: str = Field(default="us-east-1", description="MinIO region")
    MINIO_BUCKET_CLAIMS: str = Field(default="claims", description="Claim files bucket")
    PRESIGNED_URL_EXPIRE_SECONDS: int = Field(
        default=900, description="Presigned URL lifetime (seconds)", gt=0
    )

    # ============================================================================
    # Email Configuration
    # ============================================================================
    SMTP_HOST: str = Field(default="localhost", description="SMTP host")
    SMTP_PORT: int = Field(default=1025, description="SMTP port")
    SMTP_USER: str | None = Field(default=None, description="SMTP username")
    SMTP_PASSWORD: str | None = Field(default=None, description="SMTP password")
    SMTP_USE_TLS: bool = Field(default=False, description="Use STARTTLS")
    EMAIL_FROM: str = Field(default="claims@claimflow.local", description="Sender address")

    # ============================================================================
    # Claims Configuration
    # ============================================================================
    PENDING_FILE_TTL_HOURS: int = Field(
        default=24, description="Lifetime of staged uploads before claim creation", gt=0
    )
    UPLOAD_MAX_SIZE_MB: int = Field(default=25, description="Max claim file size (MB)", gt=0)
    FILE_VERIFY_DELAY_SECONDS: int = Field(
        default=30, description="Delay before verifying a direct upload", ge=0
    )
    CLAIMS_PAGE_SIZE: int = Field(default=20, description="Default list page size", gt=0)
    CLAIMS_MAX_PAGE_SIZE: int = Field(default=100, description="Max list page size", gt=0)

    @property
    def upload_max_size_bytes(self) -> int:
        return self.UPLOAD_MAX_SIZE_MB * 1024 * 1024

    # ============================================================================
    # FastAPI Configuration
    # ============================================================================
    API_HOST: str = Field(default="0.0.0.0", description="API host")  # nosec B104
    API_PORT: int = Field(default=8000, description="API port")

    CORS_ORIGINS: list[str] = Field(
        default=["http://localhost:3000"], description="CORS allowed origins"
    )
    CORS_CREDENTIALS: bool = Field(default=True, description="Allow credentials")
    CORS_METHODS: list[str] = Field(default=["*"], description="Allowed methods")
    CORS_HEADERS: list[str] = Field(default=["*"], description="Allowed headers")

    @staticmethod
    def _parse_list_field(value: Any) -> Any:
        """Allow JSON arrays or comma-separated strings for list settings."""
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                return []
            if stripped.startswith("[") and stripped.endswith("]"):
                try:
                    parsed = json.loads(stripped)
                    if isinstance(parsed, list):
                        return parsed
                except json.JSONDecodeError:
                    # Fall back to CSV parsing below when JSON parse fails
                    pass
            return [item.strip() for item in stripped.split(",") if item.strip()]
        return value

    @field_validator("CORS_ORIGINS", "CORS_METHODS", "CORS_HEADERS", mode="before")
    @classmethod
    def parse_cors_fields(cls, v: Any) -> Any:
        """Normalize CORS list fields from env strings."""
        return cls._parse_list_field(v)

    # ============================================================================
    # Helper Properties
    # ============================================================================
    @property
    def is_development(self) -> bool:
        """Check if running in development mode"""
        return self.ENVIRONMENT.lower() == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode"""
        return self.ENVIRONMENT.lower() == "production"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing mode"""
        return self.ENVIRONMENT.lower() == "testing"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
