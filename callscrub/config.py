from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # External tools
    ffmpeg_path: str = Field(default="ffmpeg", alias="CALLSCRUB_FFMPEG_PATH")
    ffprobe_path: str = Field(default="ffprobe", alias="CALLSCRUB_FFPROBE_PATH")
    ffmpeg_timeout_seconds: float = Field(
        default=300.0,
        gt=0,
        alias="CALLSCRUB_FFMPEG_TIMEOUT_SECONDS",
        description="Hard wall-clock limit for a single ffmpeg invocation",
    )
    ffprobe_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        alias="CALLSCRUB_FFPROBE_TIMEOUT_SECONDS",
    )

    # Conversion cascade
    conversion_retries: int = Field(
        default=3,
        ge=0,
        alias="CALLSCRUB_CONVERSION_RETRIES",
        description="Extra passes over both conversion profiles before giving up",
    )
    conversion_backoff_seconds: float = Field(
        default=1.0,
        ge=0,
        alias="CALLSCRUB_CONVERSION_BACKOFF_SECONDS",
    )

    # Span detection
    leading_context_words: int = Field(
        default=3, ge=0, alias="CALLSCRUB_LEADING_CONTEXT_WORDS"
    )
    trailing_context_words: int = Field(
        default=2, ge=0, alias="CALLSCRUB_TRAILING_CONTEXT_WORDS"
    )
    max_window_words: int = Field(default=6, ge=2, alias="CALLSCRUB_MAX_WINDOW_WORDS")
    merge_gap_seconds: float = Field(
        default=1.0, ge=0, alias="CALLSCRUB_MERGE_GAP_SECONDS"
    )

    # Size-matching re-encode
    initial_bitrate_kbps: int = Field(
        default=128, gt=0, alias="CALLSCRUB_INITIAL_BITRATE_KBPS"
    )
    min_bitrate_kbps: int = Field(default=64, gt=0, alias="CALLSCRUB_MIN_BITRATE_KBPS")
    max_bitrate_kbps: int = Field(
        default=320, gt=0, alias="CALLSCRUB_MAX_BITRATE_KBPS"
    )
    compression_attempts: int = Field(
        default=3, ge=1, alias="CALLSCRUB_COMPRESSION_ATTEMPTS"
    )

    # Secure fallback
    fallback_duration_seconds: float = Field(
        default=60.0,
        gt=0,
        alias="CALLSCRUB_FALLBACK_DURATION_SECONDS",
        description="Silence length used when the source duration cannot be probed",
    )
    fallback_bitrate_kbps: int = Field(
        default=128, gt=0, alias="CALLSCRUB_FALLBACK_BITRATE_KBPS"
    )

    work_dir: Path | None = Field(
        default=None,
        alias="CALLSCRUB_WORK_DIR",
        description="Parent directory for per-job temporary files (system temp if unset)",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Settings are read from environment variables and .env file once,
    then cached for the lifetime of the process.
    """
    return Settings()
