"""
Centralized configuration management.
All environment variables and settings are defined here.
"""
from typing import List, Literal, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Ledger Import Service", alias="APP_NAME")
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000)
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    cors_allow_origins: str = Field(default="*", alias="CORS_ALLOW_ORIGINS")

    # Backing store
    store_backend: Literal["sqlite", "rest"] = Field(default="sqlite", alias="STORE_BACKEND")
    database_path: str = Field(default="ledger.db", alias="DATABASE_PATH")
    store_url: Optional[str] = Field(default=None, alias="STORE_URL")
    store_service_key: Optional[str] = Field(default=None, alias="STORE_SERVICE_KEY")
    store_timeout: int = Field(default=30, alias="STORE_TIMEOUT")

    # Uploads
    max_upload_bytes: int = Field(default=2 * 1024 * 1024, alias="MAX_UPLOAD_BYTES")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level is one of the standard levels."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v_upper

    @field_validator("port")
    @classmethod
    def validate_port(cls, v):
        """Validate port is in valid range."""
        if not (1 <= v <= 65535):
            raise ValueError("Port must be between 1 and 65535")
        return v

    @field_validator("store_timeout", "max_upload_bytes")
    @classmethod
    def validate_positive(cls, v):
        if v < 1:
            raise ValueError("Value must be at least 1")
        return v

    @model_validator(mode="after")
    def blank_store_credentials(self):
        """Treat empty STORE_URL / STORE_SERVICE_KEY as unset."""
        if not self.store_url:
            self.store_url = None
        if not self.store_service_key:
            self.store_service_key = None
        return self

    @property
    def allowed_origins(self) -> List[str]:
        """CORS origins as a list."""
        return [origin.strip() for origin in self.cors_allow_origins.split(",") if origin.strip()]


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get application settings singleton.

    Returns:
        Settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings singleton (useful for testing)."""
    global _settings
    _settings = None
