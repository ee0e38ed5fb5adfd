"""Scene export: cut confirmed scenes into clips.

Provides:
- Re-encoded trimming of each confirmed scene (frame-accurate output seeking)
- Upload of each clip
- A persisted SceneRecord per exported clip
"""

import logging
import os
from dataclasses import dataclass

from aalap.config import Settings, get_settings
from aalap.exceptions import EngineUnavailableError, StorageError, VideoNotFoundError
from aalap.services.scene_segmenter import Scene
from aalap.services.storage_service import StorageService
from aalap.services.track_store import SceneRecord, TrackStore
from aalap.utils.media_engine import MediaEngine
from aalap.utils.work_area import WorkArea

logger = logging.getLogger(__name__)


def scene_filename(index: int) -> str:
    """Clip name for the scene at 0-based ``index``."""
    return f"scene_{index + 1:02d}.mp4"


@dataclass
class TrimConfig:
    """Encoding options for scene clips."""

    video_codec: str = "libx264"
    audio_codec: str = "aac"
    crf: int = 18
    preset: str = "medium"

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "TrimConfig":
        settings = settings or get_settings()
        return cls(video_codec=settings.scene_video_codec, audio_codec=settings.scene_audio_codec)


@dataclass
class ExportedScene:
    index: int
    scene: Scene
    storage_key: str | None = None
    record_id: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.record_id is not None


class SceneExporter:
    """Encodes, uploads and records confirmed scenes."""

    def __init__(
        self,
        engine: MediaEngine,
        store: TrackStore,
        storage: StorageService,
        work_root: str,
        config: TrimConfig | None = None,
    ):
        self.engine = engine
        self.store = store
        self.storage = storage
        self.work_root = work_root
        self.config = config or TrimConfig()

    def build_trim_command(self, input_path: str, output_path: str, scene: Scene) -> list[str]:
        # Re-encode: input first, then seek (slower but precise)
        return [
            "-hide_banner",
            "-loglevel", "error",
            "-y",
            "-i", input_path,
            "-ss", str(scene.start_time),
            "-t", str(scene.duration),
            "-c:v", self.config.video_codec,
            "-crf", str(self.config.crf),
            "-preset", self.config.preset,
            "-c:a", self.config.audio_codec,
            output_path,
        ]

    async def _export_one(
        self,
        index: int,
        scene: Scene,
        video_path: str,
        output_dir: str,
        video_id: str,
        project_id: str,
        session_id: str,
    ) -> ExportedScene:
        exported = ExportedScene(index=index, scene=scene)
        filename = scene_filename(index)
        output_path = os.path.join(output_dir, filename)
        logger.info(
            f"Processing scene {index + 1}: {scene.start_time:.2f}s - {scene.end_time:.2f}s "
            f"({scene.duration:.2f}s)"
        )

        try:
            result = await self.engine.run(self.build_trim_command(video_path, output_path, scene))
        except EngineUnavailableError as e:
            exported.error = e.message
            logger.error(f"Error processing scene {index + 1}: {e.message}")
            return exported

        if not result.ok or not os.path.exists(output_path):
            exported.error = "timed out" if result.timed_out else result.stderr_tail(5) or "output file missing"
            logger.error(f"Error processing scene {index + 1}: {exported.error}")
            return exported

        storage_key = f"scenes/{project_id}/{session_id}/{filename}"
        try:
            await self.storage.upload_file(output_path, storage_key, "video/mp4")
        except (StorageError, OSError) as e:
            exported.error = str(e)
            logger.error(f"Error uploading scene {index + 1}: {e}")
            return exported

        record = await self.store.create_scene(
            SceneRecord(
                id=scene.id,
                video_id=video_id,
                project_id=project_id,
                start_time=scene.start_time,
                end_time=scene.end_time,
                file_path=storage_key,
                name=f"Scene {index + 1}",
            )
        )
        exported.storage_key = storage_key
        exported.record_id = record.id
        logger.info(f"Scene {index + 1} exported to {storage_key}")
        return exported

    async def export(
        self,
        video_id: str,
        project_id: str,
        storage_key: str,
        scenes: list[Scene],
    ) -> list[ExportedScene]:
        """Export every scene; a failed scene is reported, not fatal.

        Raises:
            VideoNotFoundError: If the source video cannot be downloaded
        """
        with WorkArea(self.work_root, "scenes") as work:
            video_path = str(work.file(os.path.basename(storage_key) or "source.mp4"))
            try:
                await self.storage.download_file(storage_key, video_path)
            except StorageError as e:
                raise VideoNotFoundError(video_id=video_id, storage_key=storage_key) from e

            output_dir = str(work.subdir("clips"))
            results = []
            for index, scene in enumerate(scenes):
                results.append(
                    await self._export_one(
                        index, scene, video_path, output_dir, video_id, project_id, work.session_id
                    )
                )

        failed = sum(1 for r in results if not r.ok)
        logger.info(f"Exported {len(results) - failed} of {len(results)} scenes for video {video_id}")
        return results
