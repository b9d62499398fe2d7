"""Application configuration using Pydantic Settings."""

import os
import re
from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Service Identity
    SERVICE_NAME: str = "podcast-media"
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development, staging, production

    # Logging Configuration
    LOG_LEVEL: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    LOG_JSON: bool = True    # JSON logs (prod) vs pretty console (dev)
    DEBUG: bool = False

    # Database (metadata store)
    DATABASE_URL: str = f"sqlite+aiosqlite:///{os.path.join(os.getcwd(), 'media.db')}"

    # Local storage backend root
    STORAGE_PATH: str = os.path.join(os.getcwd(), "storage")

    # How long a resolved backend is trusted before the active
    # storage configuration is read again
    STORAGE_CONFIG_REFRESH_SECONDS: float = 5.0

    # Google Drive backend
    DRIVE_API_BASE_URL: str = "https://www.googleapis.com/drive/v3"
    DRIVE_UPLOAD_BASE_URL: str = "https://www.googleapis.com/upload/drive/v3"
    DRIVE_REQUEST_TIMEOUT_SECONDS: float = 60.0

    # Upload intake constraints
    MAX_IMAGE_SIZE_MB: int = 2
    MAX_AUDIO_SIZE_MB: int = 500
    ALLOWED_IMAGE_MIME_TYPES: List[str] = ["image/jpeg", "image/png", "image/webp"]
    ALLOWED_AUDIO_MIME_TYPES: List[str] = [
        "audio/mpeg",
        "audio/mp3",
        "audio/mp4",
        "audio/x-m4a",
        "audio/wav",
        "audio/x-wav",
    ]

    @field_validator("MAX_IMAGE_SIZE_MB", "MAX_AUDIO_SIZE_MB")
    @classmethod
    def validate_size_limit(cls, v: int) -> int:
        """Ensure upload ceilings are positive."""
        if v <= 0:
            raise ValueError(f"Upload size limit must be positive, got {v}")
        return v

    @field_validator("STORAGE_CONFIG_REFRESH_SECONDS", "DRIVE_REQUEST_TIMEOUT_SECONDS")
    @classmethod
    def validate_positive_seconds(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"Interval must be positive, got {v}")
        return v

    @field_validator("DRIVE_API_BASE_URL", "DRIVE_UPLOAD_BASE_URL")
    @classmethod
    def validate_drive_url(cls, v: str) -> str:
        """Validate Drive endpoint format and drop trailing slashes."""
        if not re.match(r"^https?://.+", v):
            raise ValueError(f"Drive URL must start with http:// or https://, got '{v}'")
        return v.rstrip("/")

    @property
    def max_image_size_bytes(self) -> int:
        return self.MAX_IMAGE_SIZE_MB * 1024 * 1024

    @property
    def max_audio_size_bytes(self) -> int:
        return self.MAX_AUDIO_SIZE_MB * 1024 * 1024

    @property
    def is_debug_mode(self) -> bool:
        """Check if application is in debug mode."""
        return self.DEBUG or self.LOG_LEVEL.upper() == "DEBUG"

    @property
    def use_json_logs(self) -> bool:
        """Determine if JSON logging should be used.

        In production, always use JSON logs.
        In development, allow override via LOG_JSON setting.
        """
        if self.ENVIRONMENT == "production":
            return True
        if self.DEBUG:
            return self.LOG_JSON
        return True

    class Config:
        """Pydantic configuration."""
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
