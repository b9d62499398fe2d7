"""
Configuration tests for podcast-media.

Tests the type-safe Pydantic configuration system.
"""

import pytest
from pydantic import ValidationError

from podcast_media.core.config import Settings


@pytest.mark.unit
def test_settings_defaults():
    config = Settings()

    assert config.SERVICE_NAME == "podcast-media"
    assert config.STORAGE_CONFIG_REFRESH_SECONDS == 5.0
    assert config.MAX_IMAGE_SIZE_MB == 2
    assert "image/jpeg" in config.ALLOWED_IMAGE_MIME_TYPES
    assert "audio/mpeg" in config.ALLOWED_AUDIO_MIME_TYPES


@pytest.mark.unit
def test_size_limits_in_bytes():
    config = Settings(MAX_IMAGE_SIZE_MB=3, MAX_AUDIO_SIZE_MB=100)

    assert config.max_image_size_bytes == 3 * 1024 * 1024
    assert config.max_audio_size_bytes == 100 * 1024 * 1024


@pytest.mark.unit
@pytest.mark.parametrize("field", ["MAX_IMAGE_SIZE_MB", "MAX_AUDIO_SIZE_MB"])
def test_size_limit_must_be_positive(field):
    with pytest.raises(ValidationError) as exc_info:
        Settings(**{field: 0})

    assert "positive" in str(exc_info.value).lower()


@pytest.mark.unit
def test_refresh_interval_must_be_positive():
    with pytest.raises(ValidationError):
        Settings(STORAGE_CONFIG_REFRESH_SECONDS=-1)


@pytest.mark.unit
def test_drive_url_trailing_slash_removed():
    config = Settings(DRIVE_API_BASE_URL="https://drive.internal/drive/v3/")

    assert config.DRIVE_API_BASE_URL == "https://drive.internal/drive/v3"


@pytest.mark.unit
def test_drive_url_requires_scheme():
    with pytest.raises(ValidationError) as exc_info:
        Settings(DRIVE_UPLOAD_BASE_URL="www.googleapis.com/upload/drive/v3")

    assert "http" in str(exc_info.value)


@pytest.mark.unit
def test_json_logs_forced_in_production():
    config = Settings(ENVIRONMENT="production", DEBUG=True, LOG_JSON=False)

    assert config.use_json_logs is True


@pytest.mark.unit
def test_console_logs_allowed_in_debug_development():
    config = Settings(ENVIRONMENT="development", DEBUG=True, LOG_JSON=False)

    assert config.use_json_logs is False
    assert config.is_debug_mode is True


@pytest.mark.unit
def test_debug_mode_from_log_level():
    assert Settings(DEBUG=False, LOG_LEVEL="debug").is_debug_mode is True
    assert Settings(DEBUG=False, LOG_LEVEL="INFO").is_debug_mode is False
