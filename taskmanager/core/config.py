"""Application settings for backend runtime and tests."""

from __future__ import annotations

from pydantic import Field
from pydantic import field_validator
from pydantic_settings import BaseSettings

from taskmanager.core.tokens import DEFAULT_AUDIENCE
from taskmanager.core.tokens import DEFAULT_ISSUER

MIN_JWT_SECRET_BYTES = 32


class Settings(BaseSettings):
    """Typed settings loaded from environment variables or explicit kwargs."""

    tm_app_env: str = "dev"
    tm_app_host: str = "127.0.0.1"
    tm_app_port: int = Field(default=8000, ge=1)

    tm_jwt_secret: str = Field(min_length=1)
    tm_jwt_issuer: str = Field(default=DEFAULT_ISSUER, min_length=1)
    tm_jwt_audience: str = Field(default=DEFAULT_AUDIENCE, min_length=1)
    tm_access_token_expire_seconds: int = Field(default=3600, ge=1)
    tm_refresh_token_expire_seconds: int = Field(default=604800, ge=1)
    tm_bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    tm_sqlite_path: str = "taskmanager.db"
    tm_sqlite_busy_timeout_seconds: float = Field(default=5.0, gt=0)

    tm_rate_limit_permit_limit: int = Field(default=100, ge=1)
    tm_rate_limit_window_seconds: int = Field(default=600, ge=1)

    tm_log_level: str = "INFO"
    tm_log_json: bool = True

    @field_validator("tm_jwt_secret")
    @classmethod
    def validate_jwt_secret_length(cls, value: str) -> str:
        """HS256 keys shorter than the digest size are rejected."""
        if len(value.encode("utf-8")) < MIN_JWT_SECRET_BYTES:
            raise ValueError(f"TM_JWT_SECRET must be at least {MIN_JWT_SECRET_BYTES} bytes")
        return value


def load_settings() -> Settings:
    """Load settings from process environment."""
    return Settings()
