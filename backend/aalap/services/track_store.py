"""Keyed store for thumbnails, scenes and scene audio artifacts.

The pipeline only relies on the ``TrackStore`` protocol. ``InMemoryTrackStore``
implements it for development and tests; a database-backed store can be
swapped in through the API dependency without touching the services.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class VideoRecord:
    id: str
    storage_key: str | None = None
    duration: float = 0.0


@dataclass
class ThumbnailRecord:
    video_id: str
    path: str
    timestamp: float
    session_id: str
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=_now)


@dataclass
class SceneRecord:
    video_id: str
    project_id: str
    start_time: float
    end_time: float
    file_path: str | None = None
    name: str | None = None
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=_now)

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


@dataclass
class AudioVariationRecord:
    scene_id: str
    file_path: str | None
    id: str = field(default_factory=_new_id)


@dataclass
class SoundEffectRecord:
    scene_id: str
    file_path: str | None
    timestamp_start: float = 0.0  # seconds from scene start
    id: str = field(default_factory=_new_id)


@dataclass
class PreviewTrackRecord:
    scene_id: str
    storage_key: str
    duration_s: float
    music_track_id: str | None = None
    sound_effect_ids: list[str] = field(default_factory=list)
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=_now)


class TrackStore(Protocol):
    async def create_video(self, video: VideoRecord) -> VideoRecord: ...

    async def get_video(self, video_id: str) -> VideoRecord | None: ...

    async def update_video_duration(self, video_id: str, duration: float) -> None: ...

    async def get_thumbnails_by_video_id(self, video_id: str) -> list[ThumbnailRecord]: ...

    async def create_thumbnail(self, thumbnail: ThumbnailRecord) -> ThumbnailRecord: ...

    async def create_scene(self, scene: SceneRecord) -> SceneRecord: ...

    async def get_scene_by_id(self, scene_id: str) -> SceneRecord | None: ...

    async def add_audio_variation(self, variation: AudioVariationRecord) -> AudioVariationRecord: ...

    async def get_audio_variations_by_scene_id(self, scene_id: str) -> list[AudioVariationRecord]: ...

    async def add_sound_effect(self, effect: SoundEffectRecord) -> SoundEffectRecord: ...

    async def get_sound_effects_by_scene_id(self, scene_id: str) -> list[SoundEffectRecord]: ...

    async def create_preview_track(self, preview: PreviewTrackRecord) -> PreviewTrackRecord: ...


class InMemoryTrackStore:
    """Dict-backed TrackStore. Writes are append or replace-by-id."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self.videos: dict[str, VideoRecord] = {}
        self.thumbnails: dict[str, list[ThumbnailRecord]] = {}
        self.scenes: dict[str, SceneRecord] = {}
        self.audio_variations: dict[str, AudioVariationRecord] = {}
        self.sound_effects: dict[str, SoundEffectRecord] = {}
        self.preview_tracks: dict[str, PreviewTrackRecord] = {}

    async def create_video(self, video: VideoRecord) -> VideoRecord:
        async with self._lock:
            self.videos[video.id] = video
        return video

    async def get_video(self, video_id: str) -> VideoRecord | None:
        return self.videos.get(video_id)

    async def update_video_duration(self, video_id: str, duration: float) -> None:
        async with self._lock:
            video = self.videos.setdefault(video_id, VideoRecord(id=video_id))
            video.duration = duration

    async def get_thumbnails_by_video_id(self, video_id: str) -> list[ThumbnailRecord]:
        return sorted(self.thumbnails.get(video_id, []), key=lambda t: t.timestamp)

    async def create_thumbnail(self, thumbnail: ThumbnailRecord) -> ThumbnailRecord:
        async with self._lock:
            self.thumbnails.setdefault(thumbnail.video_id, []).append(thumbnail)
        return thumbnail

    async def create_scene(self, scene: SceneRecord) -> SceneRecord:
        async with self._lock:
            self.scenes[scene.id] = scene
        return scene

    async def get_scene_by_id(self, scene_id: str) -> SceneRecord | None:
        return self.scenes.get(scene_id)

    async def add_audio_variation(self, variation: AudioVariationRecord) -> AudioVariationRecord:
        async with self._lock:
            self.audio_variations[variation.id] = variation
        return variation

    async def get_audio_variations_by_scene_id(self, scene_id: str) -> list[AudioVariationRecord]:
        return [v for v in self.audio_variations.values() if v.scene_id == scene_id]

    async def add_sound_effect(self, effect: SoundEffectRecord) -> SoundEffectRecord:
        async with self._lock:
            self.sound_effects[effect.id] = effect
        return effect

    async def get_sound_effects_by_scene_id(self, scene_id: str) -> list[SoundEffectRecord]:
        return [e for e in self.sound_effects.values() if e.scene_id == scene_id]

    async def create_preview_track(self, preview: PreviewTrackRecord) -> PreviewTrackRecord:
        async with self._lock:
            self.preview_tracks[preview.id] = preview
        return preview
