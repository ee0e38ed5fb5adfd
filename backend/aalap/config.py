import json
from functools import lru_cache
from typing import Literal

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application
    app_name: str = "Aalap Media API"
    app_version: str = "0.1.0"
    git_hash: str = "unknown"  # Set via GIT_HASH env var at build time
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: str = "INFO"

    # CORS - stored as string, parsed via computed property
    cors_origins_raw: str = "http://localhost:3000"

    @computed_field
    @property
    def cors_origins(self) -> list[str]:
        """Parse CORS origins from pipe/comma-separated string or JSON array."""
        v = self.cors_origins_raw
        if v.startswith("["):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        if "|" in v:
            return [origin.strip() for origin in v.split("|") if origin.strip()]
        return [origin.strip() for origin in v.split(",") if origin.strip()]

    # Storage
    use_local_storage: bool = True  # Set to False in production
    local_storage_path: str = "/tmp/aalap-storage"
    gcs_bucket_name: str = "aalap-media"
    gcs_project_id: str = ""

    # Working area for engine invocations (one subdirectory per invocation)
    work_root: str = "/tmp/aalap-work"

    # FFmpeg
    ffmpeg_path: str = "ffmpeg"
    # Per-invocation timeout in seconds. 0 disables the timeout.
    engine_timeout_s: float = 300.0

    # Scene-change detection
    scene_threshold: float = 0.35
    scene_max_timestamps: int = 20
    scene_min_detected: int = 10
    scene_dedup_window_s: float = 2.0
    scene_edge_margin_s: float = 1.0
    fallback_duration_s: float = 60.0

    # Thumbnails
    thumbnail_width: int = 160
    thumbnail_height: int = 90
    thumbnail_max_workers: int = 1

    # Scene segmentation
    min_scene_length_s: float = 0.1
    # Trim sessions untouched this long are dropped; 0 keeps them until closed
    trim_session_idle_ttl_s: float = 3600.0

    # Scene export (trim)
    scene_video_codec: str = "libx264"
    scene_audio_codec: str = "aac"

    # Preview mixing
    preview_audio_codec: str = "libmp3lame"
    preview_audio_bitrate: str = "192k"
    preview_sample_rate: int = 44100
    preview_dropout_transition_s: int = 2


@lru_cache
def get_settings() -> Settings:
    return Settings()
