"""Application configuration using pydantic-settings."""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be configured via environment variables or a .env file.
    See .env.example for a template.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================================================
    # Application Settings
    # ========================================================================
    app_name: str = Field(default="Reelforge Render Engine", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(
        default="development",
        description="Deployment environment. Stack traces are omitted from API errors in 'production'.",
    )
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")

    # ========================================================================
    # Render Job Settings
    # ========================================================================
    max_parallel_scene_renders: int = Field(
        default=3,
        ge=1,
        description="Maximum number of scenes rendered concurrently within one job (default: 3, set to 1 for sequential)",
    )
    render_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Wall-clock bound for a whole render job, download to final concat (default: 60)",
    )
    mapping_strategy: str = Field(
        default="passthrough",
        description="Scene-to-footage mapping: 'passthrough' (same offset as output timeline) or 'proportional'",
    )
    temp_root: Optional[str] = Field(
        default=None,
        description="Directory under which per-job working directories are created (default: system temp dir)",
    )

    # ========================================================================
    # Footage Source Settings
    # ========================================================================
    source_fetch_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for connecting to and reading from the footage URL (default: 30)",
    )
    download_chunk_size: int = Field(
        default=1024 * 1024,
        description="Chunk size in bytes used when streaming source footage to disk",
    )

    # ========================================================================
    # Output / FFmpeg Settings
    # ========================================================================
    output_format: str = Field(default="mp4", description="Container format of rendered clips ('mp4' or 'webm')")
    output_resolution: str = Field(
        default="1080x1920",
        description="Output resolution WIDTHxHEIGHT (default: 1080x1920 vertical)",
    )
    video_codec: str = Field(default="libx264", description="Video codec used for per-scene renders")
    ffmpeg_binary: Optional[str] = Field(
        default=None,
        description="Path to the ffmpeg executable (default: ffmpeg on PATH, else the binary bundled with imageio-ffmpeg)",
    )
    default_font_size: int = Field(default=48, description="Font size used when an overlay style omits one")

    @property
    def is_production(self) -> bool:
        """True when running in the production environment."""
        return self.environment.lower() == "production"

    @property
    def output_size(self) -> tuple[int, int]:
        """Output resolution parsed into (width, height)."""
        width, height = self.output_resolution.lower().split("x", 1)
        return int(width), int(height)


# Global settings instance
settings = Settings()
