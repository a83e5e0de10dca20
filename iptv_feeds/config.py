"""
Configuration management for IPTV Feeds.
Uses pydantic-settings for environment variable loading.
"""
import logging
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_name: str = "IPTV Feeds"
    app_version: str = "0.3.0"

    # Client identity sent with every request
    user_agent: str = "IPTVFeeds/1.0"

    # Download retry policy (playlists and guides)
    download_max_attempts: int = 3
    download_retry_delay_ms: int = 2000
    download_connect_timeout: float = 30.0
    download_read_timeout: float = 180.0  # Guide files can take minutes
    download_chunk_size: int = 64 * 1024

    # Key/value API requests over the minimal HTTP/1.1 path
    api_timeout: float = 30.0

    # Shift applied to "now" for guides published in another timezone
    epg_time_offset_hours: float = 0.0

    log_level: str = "INFO"

    # Pydantic V2 configuration
    model_config = SettingsConfigDict(env_prefix="IPTV_FEEDS_", env_file=".env", extra="ignore")

    @field_validator("download_max_attempts", "download_chunk_size")
    @classmethod
    def validate_positive_ints(cls, value: int, info) -> int:
        """Ensure counts and sizes are positive."""
        if value <= 0:
            raise ValueError(f"{info.field_name} must be > 0")
        return value

    @field_validator("download_connect_timeout", "download_read_timeout", "api_timeout")
    @classmethod
    def validate_timeouts(cls, value: float, info) -> float:
        """Ensure timeouts are positive."""
        if value <= 0:
            raise ValueError(f"{info.field_name} must be > 0")
        return value

    @field_validator("download_retry_delay_ms")
    @classmethod
    def validate_retry_delay(cls, value: int) -> int:
        if value < 0:
            raise ValueError("download_retry_delay_ms must be >= 0")
        return value

    @field_validator("epg_time_offset_hours")
    @classmethod
    def validate_offset(cls, value: float) -> float:
        """Offsets beyond two and a half days are always a misconfiguration."""
        if not -60.0 <= value <= 60.0:
            raise ValueError("epg_time_offset_hours must be within +/-60")
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        normalized = value.upper()
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if normalized not in allowed:
            raise ValueError(f"log_level must be one of {sorted(allowed)}")
        return normalized


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def setup_logging(level: str | None = None) -> None:
    """Configure application logging."""
    logging.basicConfig(
        level=level or get_settings().log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
