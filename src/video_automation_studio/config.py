"""
Configuration management for the video automation studio.
"""

from pathlib import Path
from typing import List
from pydantic_settings import BaseSettings
from pydantic import Field
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Project paths
    output_dir: Path = Field(default_factory=lambda: Path("output"), description="Retained output videos")
    temp_dir: Path = Field(default_factory=lambda: Path("temp"), description="Root for job scratch directories")
    logs_dir: Path = Field(default_factory=lambda: Path("logs"))
    assets_dir: Path = Field(default_factory=lambda: Path("assets"))
    background_music_path: Path = Field(
        default_factory=lambda: Path("assets") / "background_music.mp3",
        description="Background music asset mixed under the narration"
    )

    # HTTP server settings
    host: str = Field(default="0.0.0.0", description="Bind address for the API server")
    port: int = Field(default=3001, ge=1, le=65535)
    cors_origins: List[str] = Field(
        default=["http://localhost:5173", "http://127.0.0.1:5173", "http://localhost:3000"],
        description="Origins allowed to call the API"
    )
    public_base_path: str = Field(default="/api", description="Prefix used to build download URLs")

    # Google Drive download settings
    drive_api_base_url: str = Field(default="https://www.googleapis.com/drive/v3")
    download_connect_timeout: float = Field(default=60.0, description="Connect timeout in seconds")
    download_total_timeout: float = Field(default=300.0, description="Whole-transfer timeout in seconds")
    download_progress_step_mb: int = Field(default=10, ge=1, description="Progress log granularity in MB")
    download_max_attempts: int = Field(default=1, ge=1, le=10)
    download_chunk_size: int = Field(default=1024 * 1024)

    # Script generation settings
    openai_model: str = Field(default="gpt-3.5-turbo", description="Chat completion model")
    openai_max_tokens: int = Field(default=200, ge=1)
    openai_temperature: float = Field(default=0.8, ge=0.0, le=2.0)
    openai_cost_per_token: float = Field(default=0.002, description="Flat per-token figure used for cost estimates")

    # Speech synthesis settings
    elevenlabs_api_base_url: str = Field(default="https://api.elevenlabs.io/v1")
    elevenlabs_voice_id: str = Field(default="21m00Tcm4TlvDq8ikWAM", description="Rachel")
    elevenlabs_model_id: str = Field(default="eleven_multilingual_v2")
    elevenlabs_stability: float = Field(default=0.75, ge=0.0, le=1.0)
    elevenlabs_similarity_boost: float = Field(default=0.8, ge=0.0, le=1.0)
    elevenlabs_style: float = Field(default=0.5, ge=0.0, le=1.0)
    elevenlabs_use_speaker_boost: bool = Field(default=True)
    elevenlabs_probe_timeout: float = Field(default=10.0, description="Key validation timeout in seconds")

    # Video processing settings
    ffmpeg_binary: str = Field(default="ffmpeg")
    ffprobe_binary: str = Field(default="ffprobe")
    video_width: int = Field(default=1280)
    video_height: int = Field(default=720)
    video_fps: int = Field(default=30)
    video_codec: str = Field(default="libx264", description="Video codec")
    audio_codec: str = Field(default="aac", description="Audio codec")
    video_preset: str = Field(default="fast")
    pixel_format: str = Field(default="yuv420p")
    video_bitrate: str = Field(default="2000k", description="Video bitrate")
    audio_bitrate: str = Field(default="128k", description="Audio bitrate")
    audio_sample_rate: int = Field(default=44100, description="Audio sample rate in Hz")

    # Audio mixing
    background_music_volume: float = Field(default=0.05, ge=0.0, le=1.0)
    narration_volume: float = Field(default=1.0, ge=0.0, le=2.0)

    # Subtitle settings
    subtitle_mode: str = Field(default="sidecar", description="Subtitle mode: sidecar or burn")
    subtitle_max_chars_per_line: int = Field(default=42, ge=10)

    # YouTube publishing
    youtube_category_id: str = Field(default="22", description="People & Blogs")
    youtube_default_language: str = Field(default="pt-BR")
    youtube_default_privacy: str = Field(default="private")
    youtube_upload_max_attempts: int = Field(default=5, ge=1, le=10)

    # Output retention
    output_retention_hours: int = Field(default=24, ge=1)
    cleanup_interval_seconds: int = Field(default=3600, ge=60)

    # Logging settings
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Log format: json or text")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get the global settings instance."""
    return settings


def create_directories():
    """Create necessary directories if they don't exist."""
    directories = [
        settings.output_dir,
        settings.temp_dir,
        settings.logs_dir,
        settings.assets_dir,
    ]

    for directory in directories:
        directory.mkdir(parents=True, exist_ok=True)


# Create directories on import
create_directories()
