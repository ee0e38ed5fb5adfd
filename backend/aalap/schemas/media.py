"""Schemas for thumbnail timeline, preview track and trim session endpoints."""

from typing import Literal

from pydantic import BaseModel, Field, model_validator


# =============================================================================
# Thumbnail Timeline
# =============================================================================


class ThumbnailsRequest(BaseModel):
    """Request to build (or fetch) the thumbnail timeline of a video."""

    storage_key: str = Field(..., min_length=1, description="Storage key of the uploaded video")


class ThumbnailsResponse(BaseModel):
    video_id: str
    session_id: str
    duration: float = Field(..., description="Video duration in seconds")
    thumbnails: list[str] = Field(default_factory=list, description="Storage keys, ascending by timestamp")
    timestamps: list[float] = Field(default_factory=list)
    generated_count: int = 0
    failed_count: int = 0
    from_cache: bool = False
    duration_degraded: bool = False
    scenes_degraded: bool = False


# =============================================================================
# Preview Track
# =============================================================================


class PreviewRequest(BaseModel):
    """Music and sound effects to mix for a scene preview."""

    music_track_id: str | None = Field(None, description="Audio variation to use as background music")
    sound_effect_ids: list[str] = Field(default_factory=list, description="Sound effects to overlay")


class PreviewResponse(BaseModel):
    preview_id: str
    scene_id: str
    storage_key: str
    preview_url: str
    duration: float = Field(..., description="Preview length in seconds, equal to the scene length")
    music_track_id: str | None = None
    sound_effect_ids: list[str] = Field(default_factory=list)


# =============================================================================
# Trim Sessions
# =============================================================================


class TrimSessionCreate(BaseModel):
    video_id: str
    project_id: str
    storage_key: str
    duration: float | None = Field(None, description="Duration known to the caller, lowest priority source")


class ScrubRequest(BaseModel):
    """Move the trim position by percentage of the duration or by seconds."""

    percent: float | None = Field(None, ge=0, le=100)
    seconds: float | None = Field(None, ge=0)

    @model_validator(mode="after")
    def check_exactly_one(self) -> "ScrubRequest":
        if (self.percent is None) == (self.seconds is None):
            raise ValueError("Provide exactly one of 'percent' or 'seconds'")
        return self


class PlaybackRequest(BaseModel):
    seconds: float = Field(..., ge=0, description="Current playback clock")
    duration: float | None = Field(None, description="Duration reported by the player")


class SceneOut(BaseModel):
    id: str
    start_time: float
    end_time: float
    duration: float


class TrimSessionResponse(BaseModel):
    id: str
    video_id: str
    project_id: str
    state: Literal["idle", "trim_active", "selecting", "exporting"]
    position: float
    position_percent: float | None = None
    next_start_floor: float
    current_scene_start: float | None = None
    duration: float | None = None
    scenes: list[SceneOut] = Field(default_factory=list)


class ExportedSceneOut(BaseModel):
    index: int
    scene: SceneOut
    storage_key: str | None = None
    record_id: str | None = None
    error: str | None = None


class ExportResponse(BaseModel):
    session: TrimSessionResponse
    exported: list[ExportedSceneOut]
    exported_count: int
    failed_count: int
