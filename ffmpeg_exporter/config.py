import tempfile
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="EXPORTER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_name: str = "FFmpeg Exporter"
    app_version: str = "0.1.0"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # FFmpeg
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"

    # Intermediate audio (per-asset tracks and the mix)
    audio_sample_rate: int = 48000
    audio_channels: int = 2
    audio_codec: str = "pcm_s16le"

    # Final container
    audio_bitrate: str = "192k"
    pixel_format: str = "yuv420p"

    # Scratch space: one directory per job under scratch_root
    scratch_root: str = tempfile.gettempdir()
    scratch_prefix: str = "revideo"

    # Relative asset paths resolve against {output_dir}/../{public_dir_name}
    public_dir_name: str = "public"

    # Concurrent ffmpeg processes used for per-asset audio preparation
    max_parallel_audio_jobs: int = 4


@lru_cache
def get_settings() -> Settings:
    return Settings()
