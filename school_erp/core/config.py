import os
import json
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from typing import Optional, List, Dict, Set
from datetime import timedelta


class Settings(BaseSettings):
    # Application Settings
    APP_NAME: str = "School ERP"
    VERSION: str = "1.0.0"
    DEBUG: bool = Field(default=False)

    # Database Settings
    DATABASE_URL: str = Field(...)
    DATABASE_ECHO: bool = Field(default=False)

    # Redis Settings (optional; cache and rate limiter fall back without it)
    REDIS_URL: Optional[str] = Field(default=None)
    CACHE_DEFAULT_TTL: int = Field(default=300)

    # Rate Limiting Settings
    RATE_LIMIT_MAX_REQUESTS: int = Field(default=100)
    RATE_LIMIT_WINDOW_SECONDS: int = Field(default=60)
    LOGIN_RATE_LIMIT: int = Field(default=10)
    LOGIN_AUDIT_RATE_LIMIT: int = Field(default=30)

    # Security Settings
    SECRET_KEY: str = Field(...)
    ALGORITHM: str = Field(default="HS256")
    SESSION_TTL_MINUTES: int = Field(default=20)
    BCRYPT_ROUNDS: int = Field(default=12)

    # Cookie Settings
    COOKIE_SECURE: bool = Field(default=True)
    COOKIE_SAMESITE: str = Field(default="lax")
    COOKIE_PATH: str = Field(default="/")

    # CORS Settings
    ALLOWED_ORIGINS: List[str] = Field(
        default=[
            "http://localhost:8081",
            "http://localhost:19006",
            "http://127.0.0.1:8081",
            "http://127.0.0.1:19006",
        ]
    )

    # File Upload Settings
    UPLOAD_FOLDER: str = Field(default="uploads")
    MAX_CONTENT_LENGTH: int = Field(default=5 * 1024 * 1024)
    ALLOWED_EXTENSIONS: Set[str] = Field(default={"png", "jpg", "jpeg", "webp"})

    # Fees
    DEFAULT_GRACE_PERIOD_DAYS: int = Field(default=0)
    DEFAULT_PAYMENT_DUE_DAY: int = Field(default=15)

    # Logging Settings
    LOG_LEVEL: str = Field(default="INFO")
    LOG_DIR: Optional[str] = Field(default=None)

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def parse_allowed_origins(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("ALLOWED_EXTENSIONS", mode="before")
    @classmethod
    def parse_allowed_extensions(cls, v):
        if isinstance(v, str):
            return set(ext.strip().lower().lstrip(".") for ext in v.split(",") if ext.strip())
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return level

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True
    )


# Initialize settings
settings = Settings()


# Helper Functions
def get_session_ttl() -> timedelta:
    return timedelta(minutes=settings.SESSION_TTL_MINUTES)


def get_database_url() -> str:
    return settings.DATABASE_URL


def get_upload_folder() -> str:
    folder = os.path.abspath(settings.UPLOAD_FOLDER)
    os.makedirs(folder, exist_ok=True)
    return folder


def get_logging_config() -> Dict[str, Optional[str]]:
    return {
        "log_level": settings.LOG_LEVEL,
        "log_dir": settings.LOG_DIR
    }
