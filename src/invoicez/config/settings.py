"""Configuration settings for the Invoicez back-office."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Flat settings read from environment variables or a ``.env`` file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage
    database_url: str = Field(
        default="sqlite:///invoicez.db", validation_alias="DATABASE_URL"
    )
    database_echo: bool = Field(default=False, validation_alias="DATABASE_ECHO")

    # HTTP server
    api_host: str = Field(default="0.0.0.0", validation_alias="HOST")
    api_port: int = Field(default=3001, validation_alias="PORT")
    cors_origins: list[str] = Field(default=["*"], validation_alias="CORS_ORIGINS")

    # API client (scripts and smoke checks)
    api_url: str = Field(
        default="http://localhost:3001", validation_alias="INVOICEZ_API_URL"
    )
    api_timeout: float = Field(default=30.0, validation_alias="INVOICEZ_API_TIMEOUT")
    api_max_retries: int = Field(default=3, validation_alias="INVOICEZ_API_MAX_RETRIES")
    api_email: str | None = Field(default=None, validation_alias="INVOICEZ_EMAIL")
    api_password: SecretStr | None = Field(default=None, validation_alias="INVOICEZ_PASSWORD")

    # Invoicing
    invoice_code_prefix: str = Field(default="FOLKS", validation_alias="INVOICE_CODE_PREFIX")

    # Auth
    jwt_secret: SecretStr = Field(
        default=SecretStr("dev-secret-change-this"), validation_alias="JWT_SECRET"
    )
    token_ttl_seconds: int = Field(default=3600, validation_alias="TOKEN_TTL")
    auth_required: bool = Field(default=False, validation_alias="AUTH_REQUIRED")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", validation_alias="LOG_LEVEL"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", validation_alias="LOG_FORMAT"
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
