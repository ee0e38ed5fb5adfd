from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from aalap.config import Settings, get_settings
from aalap.render.audio_mixer import AudioMixer
from aalap.services.media_probe import MediaProbe, ScenePolicy
from aalap.services.preview_service import PreviewService
from aalap.services.scene_exporter import SceneExporter, TrimConfig
from aalap.services.storage_service import StorageService, get_storage_service
from aalap.services.thumbnail_generator import ThumbnailGenerator
from aalap.services.timeline_service import TimelineService
from aalap.services.track_store import InMemoryTrackStore, TrackStore
from aalap.services.trim_sessions import TrimSessionRegistry
from aalap.utils.media_engine import MediaEngine

AppSettings = Annotated[Settings, Depends(get_settings)]


@lru_cache
def get_track_store() -> TrackStore:
    return InMemoryTrackStore()


def get_storage() -> StorageService:
    return get_storage_service()


def get_media_engine(settings: AppSettings) -> MediaEngine:
    # Engine path always comes from settings, never from PATH lookups elsewhere
    return MediaEngine.from_settings(settings)


Store = Annotated[TrackStore, Depends(get_track_store)]
Storage = Annotated[StorageService, Depends(get_storage)]
Engine = Annotated[MediaEngine, Depends(get_media_engine)]


def get_timeline_service(settings: AppSettings, store: Store, storage: Storage, engine: Engine) -> TimelineService:
    return TimelineService(
        store=store,
        storage=storage,
        probe=MediaProbe(engine, ScenePolicy.from_settings(settings)),
        generator=ThumbnailGenerator.from_settings(engine, settings),
        work_root=settings.work_root,
    )


def get_preview_service(settings: AppSettings, store: Store, storage: Storage, engine: Engine) -> PreviewService:
    return PreviewService(
        store=store,
        storage=storage,
        mixer=AudioMixer.from_settings(engine, settings),
        work_root=settings.work_root,
    )


def get_scene_exporter(settings: AppSettings, store: Store, storage: Storage, engine: Engine) -> SceneExporter:
    return SceneExporter(
        engine=engine,
        store=store,
        storage=storage,
        work_root=settings.work_root,
        config=TrimConfig.from_settings(settings),
    )


_trim_registry: TrimSessionRegistry | None = None


def get_trim_registry(settings: AppSettings, store: Store) -> TrimSessionRegistry:
    global _trim_registry
    if _trim_registry is None:
        _trim_registry = TrimSessionRegistry(
            store,
            min_scene_length_s=settings.min_scene_length_s,
            idle_ttl_s=settings.trim_session_idle_ttl_s,
        )
    return _trim_registry


Timelines = Annotated[TimelineService, Depends(get_timeline_service)]
Previews = Annotated[PreviewService, Depends(get_preview_service)]
Exporter = Annotated[SceneExporter, Depends(get_scene_exporter)]
TrimRegistry = Annotated[TrimSessionRegistry, Depends(get_trim_registry)]
