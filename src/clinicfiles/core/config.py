"""
Configuration management for the clinic files engine.

This module provides centralized configuration using Pydantic Settings
for environment-based configuration management.
"""

from typing import Annotated, Any, List, Optional

import json
import os
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

MIB = 1024 * 1024

# MongoDB rejects documents above 16 MiB, so nothing embedded inline may reach it
MONGO_MAX_DOCUMENT_BYTES = 16 * MIB

DEFAULT_ALLOWED_CONTENT_TYPES = [
    "application/pdf",
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
]


class DatabaseSettings(BaseSettings):
    """Database configuration settings."""

    model_config = SettingsConfigDict(env_prefix="MONGO_")

    uri: str = Field(
        default="mongodb://localhost:27017", description="MongoDB connection URI"
    )
    db_name: str = Field(default="clinicfiles", description="MongoDB database name")
    server_selection_timeout_ms: int = Field(
        default=15000, description="Server selection timeout in milliseconds"
    )

    @field_validator("uri")
    @classmethod
    def validate_mongo_uri(cls, v: str) -> str:
        """Validate MongoDB URI format."""
        if not v:
            raise ValueError("MongoDB URI is required. Please set MONGO_URI environment variable.")
        if not v.startswith(("mongodb://", "mongodb+srv://")):
            raise ValueError(
                "MongoDB URI must start with 'mongodb://' or 'mongodb+srv://'"
            )
        return v


class FileStorageSettings(BaseSettings):
    """Inline/chunked file storage configuration settings."""

    model_config = SettingsConfigDict(env_prefix="FILE_")

    inline_threshold_bytes: int = Field(
        default=1 * MIB,
        description="Largest raw upload (bytes) that is embedded inline in the stage record",
    )
    base64_inline_threshold_bytes: int = Field(
        default=10 * MIB,
        description="Largest estimated decoded size (bytes) of a base64 upload embedded inline",
    )
    chunk_size_bytes: int = Field(
        default=255 * 1024, description="Fixed chunk length for chunked objects"
    )
    max_upload_bytes: int = Field(
        default=100 * MIB, description="Hard maximum accepted upload size"
    )
    bucket_name: str = Field(default="patient_files", description="Chunk store bucket name")
    allowed_content_types: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_CONTENT_TYPES),
        description="MIME types accepted for upload",
    )
    default_uploaded_by: str = Field(
        default="system", description="Uploader recorded when metadata has none"
    )

    @field_validator("inline_threshold_bytes", "base64_inline_threshold_bytes")
    @classmethod
    def validate_threshold(cls, v: int) -> int:
        """Inline thresholds must fit inside a single MongoDB document."""
        if v < 0:
            raise ValueError("Inline threshold cannot be negative")
        if v >= MONGO_MAX_DOCUMENT_BYTES:
            raise ValueError(
                f"Inline threshold must be below the {MONGO_MAX_DOCUMENT_BYTES} byte document limit"
            )
        return v

    @field_validator("chunk_size_bytes")
    @classmethod
    def validate_chunk_size(cls, v: int) -> int:
        """Validate chunk length."""
        if v < 3 or v > MONGO_MAX_DOCUMENT_BYTES:
            raise ValueError(f"Chunk size must be between 3 and {MONGO_MAX_DOCUMENT_BYTES} bytes")
        return v

    @field_validator("max_upload_bytes")
    @classmethod
    def validate_max_upload(cls, v: int) -> int:
        """Validate hard upload limit."""
        if v <= 0:
            raise ValueError("Max upload size must be positive")
        return v

    @field_validator("allowed_content_types", mode="before")
    @classmethod
    def parse_allowed_content_types(cls, v: Any) -> Any:
        """Parse allowed content types from a JSON list or comma-separated string."""
        if isinstance(v, str):
            if v.startswith("[") and v.endswith("]"):
                try:
                    v = json.loads(v)
                except json.JSONDecodeError:
                    v = [v.strip("[]")]
            else:
                v = v.split(",")
        if isinstance(v, (list, tuple)):
            return [str(item).strip().lower() for item in v if str(item).strip()]
        return v


class LoggingSettings(BaseSettings):
    """Logging configuration settings."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: str = Field(default="INFO", description="Logging level")
    format: str = Field(default="json", description="Log format (json or text)")

    @field_validator("level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate logging level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate logging format."""
        if v.lower() not in ["json", "text"]:
            raise ValueError("Log format must be 'json' or 'text'")
        return v.lower()


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    app_name: str = Field(default="clinicfiles", description="Application name")
    app_env: str = Field(default="development", description="Application environment")

    # Sub-settings
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    file_storage: FileStorageSettings = Field(default_factory=FileStorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        """Validate application environment."""
        valid_envs = ["development", "staging", "production", "testing"]
        if v.lower() not in valid_envs:
            raise ValueError(f"App environment must be one of: {valid_envs}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env == "production"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing mode."""
        return self.app_env == "testing"


# Global settings instance (loaded after attempting to read .env)
_settings: Optional[Settings] = None


def _load_env_file_if_available() -> None:
    """Best-effort load of .env by searching current and parent directories.

    Already-set environment variables always win over file values.
    """
    from dotenv import load_dotenv

    cwd = Path(os.getcwd()).resolve()
    for parent in [cwd, *cwd.parents]:
        candidate = parent / ".env"
        if candidate.exists():
            load_dotenv(dotenv_path=str(candidate), override=False)
            break


def get_settings() -> Settings:
    """Get application settings instance (lazy-init with .env discovery)."""
    global _settings
    if _settings is None:
        _load_env_file_if_available()
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next get_settings() re-reads the environment."""
    global _settings
    _settings = None
