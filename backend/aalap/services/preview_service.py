"""Preview track generation for a scene.

Downloads the chosen music track and sound effects into a private work area,
mixes them to exactly the scene duration, uploads the single output and
records it. Either the full output is uploaded and recorded or nothing is;
the work area is removed in every case.
"""

import logging
import uuid
from dataclasses import dataclass, field

from aalap.exceptions import InvalidSceneDurationError, NoAudioSourcesError, SceneNotFoundError
from aalap.render.audio_mixer import AudioMixer, SoundEffectInput
from aalap.services.storage_service import StorageService
from aalap.services.track_store import PreviewTrackRecord, TrackStore
from aalap.utils.work_area import WorkArea

logger = logging.getLogger(__name__)


@dataclass
class PreviewTrack:
    id: str
    scene_id: str
    storage_key: str
    url: str
    duration_s: float
    music_track_id: str | None = None
    sound_effect_ids: list[str] = field(default_factory=list)


def preview_storage_key(scene_id: str) -> str:
    return f"preview/{scene_id}/{uuid.uuid4()}.mp3"


class PreviewService:
    """Mixes a scene's music and sound effects into one preview file."""

    def __init__(self, store: TrackStore, storage: StorageService, mixer: AudioMixer, work_root: str):
        self.store = store
        self.storage = storage
        self.mixer = mixer
        self.work_root = work_root

    async def generate_preview(
        self,
        scene_id: str,
        music_track_id: str | None = None,
        sound_effect_ids: list[str] | None = None,
    ) -> PreviewTrack:
        """
        Generate and publish a preview track.

        Raises:
            SceneNotFoundError: Unknown scene
            InvalidSceneDurationError: Scene end is not after its start
            NoAudioSourcesError: No usable music or sound effect selected
            MixError: Mixing failed; nothing is uploaded
        """
        sound_effect_ids = list(sound_effect_ids or [])
        logger.info(
            f"Generating preview track for scene {scene_id} "
            f"(music={music_track_id}, effects={sound_effect_ids})"
        )

        scene = await self.store.get_scene_by_id(scene_id)
        if scene is None:
            raise SceneNotFoundError(scene_id)

        scene_duration = scene.end_time - scene.start_time
        if scene_duration <= 0:
            raise InvalidSceneDurationError(scene_duration, scene_id=scene_id)

        with WorkArea(self.work_root, "preview") as work:
            music_path: str | None = None
            if music_track_id:
                variations = await self.store.get_audio_variations_by_scene_id(scene_id)
                music_track = next((v for v in variations if v.id == music_track_id), None)
                if music_track is not None and music_track.file_path:
                    music_path = str(work.file(f"music-{music_track.id}.mp3"))
                    await self.storage.download_file(music_track.file_path, music_path)
                else:
                    logger.warning(f"Music track {music_track_id} not found for scene {scene_id}")

            effects: list[SoundEffectInput] = []
            mixed_effect_ids: list[str] = []
            if sound_effect_ids:
                all_effects = await self.store.get_sound_effects_by_scene_id(scene_id)
                for effect in all_effects:
                    if effect.id not in sound_effect_ids or not effect.file_path:
                        continue
                    effect_path = str(work.file(f"sfx-{effect.id}.mp3"))
                    await self.storage.download_file(effect.file_path, effect_path)
                    effects.append(
                        SoundEffectInput(file_path=effect_path, onset_ms=effect.timestamp_start * 1000)
                    )
                    mixed_effect_ids.append(effect.id)

            if music_path is None and not effects:
                raise NoAudioSourcesError()

            output_path = str(work.file("preview.mp3"))
            await self.mixer.mix(music_path, effects, scene_duration, output_path)

            storage_key = preview_storage_key(scene_id)
            await self.storage.upload_file(output_path, storage_key, "audio/mpeg")

        record = await self.store.create_preview_track(
            PreviewTrackRecord(
                scene_id=scene_id,
                storage_key=storage_key,
                duration_s=scene_duration,
                music_track_id=music_track_id if music_path else None,
                sound_effect_ids=mixed_effect_ids,
            )
        )
        url = await self.storage.get_signed_url(storage_key)
        logger.info(f"Preview track generated: {storage_key}")

        return PreviewTrack(
            id=record.id,
            scene_id=scene_id,
            storage_key=storage_key,
            url=url,
            duration_s=scene_duration,
            music_track_id=record.music_track_id,
            sound_effect_ids=record.sound_effect_ids,
        )
