"""Runtime configuration.

Every setting comes from the environment (case-insensitive). ``.env`` is read
first and ``.env.<env>`` layered over it, where ``<env>`` is derived from
``APP_ENV`` (``development`` -> ``.env.dev``, ``production`` -> ``.env.prod``).
Real environment variables win over both files.
"""
import os
import warnings
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_FILE_SUFFIX = {"development": "dev", "production": "prod"}


def _env_files() -> tuple[str, ...]:
    app_env = os.getenv("APP_ENV", "").strip().lower()
    candidates = [".env"]
    if app_env:
        candidates.append(f".env.{_ENV_FILE_SUFFIX.get(app_env, app_env)}")
    return tuple(name for name in candidates if Path(name).is_file()) or (".env",)


def _csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=_env_files(),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- service -----------------------------------------------------------
    APP_NAME: str = "fleet-backoffice"
    APP_VERSION: str = "1.0.0"
    APP_ENV: Literal["development", "staging", "production"] = "development"
    DEBUG: bool = Field(default=False, description="Expose exception text in 500 responses")
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    # --- database ----------------------------------------------------------
    DATABASE_URL: str = Field(default="", description="SQLAlchemy async URL, e.g. postgresql+asyncpg://...")
    DATABASE_POOL_SIZE: int = Field(default=5, ge=1, le=100)
    DATABASE_MAX_OVERFLOW: int = Field(default=10, ge=0)
    DATABASE_POOL_TIMEOUT: int = Field(default=30, ge=1, description="Seconds to wait for a pooled connection")
    DATABASE_ECHO: bool = False

    # --- tokens ------------------------------------------------------------
    SECRET_KEY: str = Field(
        default="change-me-in-production-use-strong-random-key",
        min_length=32,
        description="Signs access tokens and local file download links",
    )
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=60, ge=1)
    REFRESH_TOKEN_EXPIRE_MINUTES: int = Field(default=60 * 24 * 7, ge=1)

    # --- CORS --------------------------------------------------------------
    CORS_ORIGINS: str = Field(default="*", description="Comma-separated origins, or *")
    CORS_ALLOW_CREDENTIALS: bool = False
    CORS_ALLOW_METHODS: str = "GET,POST,PUT,PATCH,DELETE,OPTIONS"
    CORS_ALLOW_HEADERS: str = "*"

    # --- uploads -----------------------------------------------------------
    MAX_FILE_SIZE_MB: int = Field(default=10, ge=1, le=100, description="Rider document size limit")
    ALLOWED_EXTENSIONS: str = Field(default="pdf,jpg,jpeg,png,doc,docx", description="Rider document extensions")
    MAX_BULK_UPLOAD_MB: int = Field(default=5, ge=1, le=50, description="Rider CSV size limit")

    # --- storage -----------------------------------------------------------
    STORAGE_BACKEND: Literal["local", "s3"] = "local"
    BLOB_STORAGE_PATH: str = Field(default="./uploads", description="Root directory of the local backend")
    BLOB_BASE_URL: str = Field(default="/api/v1/files", description="Route serving signed local downloads")
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    AWS_REGION: str = "me-central-1"
    AWS_S3_BUCKET: str = ""
    SIGNED_URL_EXPIRY_SECONDS: int = Field(default=3600, ge=60, le=604800)
    STORAGE_MAX_RETRIES: int = Field(default=2, ge=0, le=5)

    # --- email -------------------------------------------------------------
    # A default EmailConfiguration row, when present, replaces the SMTP_* values.
    EMAIL_ENABLED: bool = False
    SMTP_HOST: str = ""
    SMTP_PORT: int = Field(default=587, ge=1, le=65535)
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_USE_TLS: bool = Field(default=True, description="STARTTLS after connect (587)")
    SMTP_USE_SSL: bool = Field(default=False, description="Implicit TLS (465)")
    EMAIL_FROM_ADDRESS: str = ""
    EMAIL_FROM_NAME: str = "FLCD Platform"
    EMAIL_TEMPLATES_PATH: str = "config/email_templates.yaml"
    EMAIL_TIMEOUT_SECONDS: int = Field(default=10, ge=1, le=60)
    NOTIFY_MAX_RETRIES: int = Field(default=2, ge=0, le=5)
    NOTIFY_RETRY_DELAY: float = Field(
        default=0.5, ge=0.0, le=10.0, description="First backoff step for email and storage retries"
    )
    COMPANY_NAME: str = Field(default="FLC Delivery Services", description="Shown in emails and acknowledgement PDFs")
    PORTAL_URL: str = Field(default="http://localhost:3000", description="Linked from rider credential emails")

    # --- OTP ---------------------------------------------------------------
    OTP_LENGTH: int = Field(default=6, ge=4, le=8)
    OTP_EXPIRY_SECONDS: int = Field(default=600, ge=60, le=1800)
    OTP_MAX_ATTEMPTS: int = Field(default=3, ge=1, le=5)
    REDIS_ENABLED: bool = Field(default=False, description="Keep OTPs in Redis instead of process memory")
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_OTP_PREFIX: str = "otp:"

    # --- riders and access control -----------------------------------------
    RIDER_CODE_PREFIX: str = Field(default="FLCR", min_length=1, description="Codes are PREFIX + YY + NNNN")
    INITIAL_PASSWORD_LENGTH: int = Field(default=8, ge=6, le=64)
    SUPER_ADMIN_ROLE_NAME: str = "Super Admin"
    SYSTEM_USER_EMAIL: str = Field(
        default="system@flcd.internal",
        description="Recorded as creator of riders created without an authenticated user",
    )

    # --- scripts/seed_data.py ----------------------------------------------
    SEED_ADMIN_EMAIL: str = "admin@flcd.com"
    SEED_ADMIN_PHONE: str = "+971501234567"
    SEED_ADMIN_PASSWORD: str = Field(default="", description="Generated and printed once when empty")

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"

    @property
    def is_development(self) -> bool:
        return self.APP_ENV == "development"

    @property
    def cors_origins_list(self) -> list[str]:
        return ["*"] if self.CORS_ORIGINS.strip() == "*" else _csv(self.CORS_ORIGINS)

    @property
    def cors_methods_list(self) -> list[str]:
        return _csv(self.CORS_ALLOW_METHODS)

    @property
    def cors_headers_list(self) -> list[str]:
        return _csv(self.CORS_ALLOW_HEADERS)

    @property
    def allowed_extensions_list(self) -> list[str]:
        return [ext.lower().lstrip(".") for ext in _csv(self.ALLOWED_EXTENSIONS)]

    @property
    def max_file_size_bytes(self) -> int:
        return self.MAX_FILE_SIZE_MB << 20

    @property
    def max_bulk_upload_bytes(self) -> int:
        return self.MAX_BULK_UPLOAD_MB << 20

    @field_validator("DATABASE_URL")
    @classmethod
    def _warn_missing_database(cls, v: str) -> str:
        if not v:
            warnings.warn("DATABASE_URL is not set; the first query will fail", UserWarning, stacklevel=2)
        return v

    @field_validator("RIDER_CODE_PREFIX")
    @classmethod
    def _upper_prefix(cls, v: str) -> str:
        return v.strip().upper()

    @model_validator(mode="after")
    def _check_consistency(self) -> "Settings":
        problems: list[str] = []
        if self.CORS_ALLOW_CREDENTIALS and self.cors_origins_list == ["*"]:
            problems.append("CORS_ALLOW_CREDENTIALS requires explicit CORS_ORIGINS, not '*'")
        if self.SMTP_USE_TLS and self.SMTP_USE_SSL:
            problems.append("SMTP_USE_TLS and SMTP_USE_SSL are mutually exclusive")
        if self.is_production:
            if self.DEBUG:
                problems.append("DEBUG must be off in production")
            if "change-me" in self.SECRET_KEY.lower():
                problems.append("SECRET_KEY still has its placeholder value")
            if not self.DATABASE_URL:
                problems.append("DATABASE_URL is required in production")
            if self.STORAGE_BACKEND == "s3" and not self.AWS_S3_BUCKET:
                problems.append("AWS_S3_BUCKET is required when STORAGE_BACKEND=s3")
        if problems:
            raise ValueError("; ".join(problems))
        return self


@lru_cache
def get_settings() -> Settings:
    """Process-wide settings; ``get_settings.cache_clear()`` re-reads the environment."""
    return Settings()
