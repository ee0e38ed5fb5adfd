"""Thumbnail timeline construction for uploaded videos.

Runs once per video: cache check, duration probe, scene-change detection,
thumbnail extraction, upload and record. Per-thumbnail failures (extraction
or upload) shrink the result; they never fail the request.
"""

import logging
import os
from dataclasses import dataclass, field

from aalap.exceptions import StorageError, VideoNotFoundError
from aalap.services.media_probe import MediaProbe
from aalap.services.storage_service import StorageService
from aalap.services.thumbnail_generator import ThumbnailGenerator
from aalap.services.track_store import ThumbnailRecord, TrackStore
from aalap.utils.work_area import WorkArea, sanitize_filename

logger = logging.getLogger(__name__)


@dataclass
class TimelineResult:
    video_id: str
    duration: float
    session_id: str
    thumbnails: list[str] = field(default_factory=list)
    timestamps: list[float] = field(default_factory=list)
    from_cache: bool = False
    duration_degraded: bool = False
    scenes_degraded: bool = False
    failed_count: int = 0

    @property
    def generated_count(self) -> int:
        return len(self.thumbnails)


def thumbnail_storage_key(video_id: str, session_id: str, filename: str) -> str:
    return f"thumbnails/{video_id}/{session_id}/{filename}"


class TimelineService:
    """Builds and caches the thumbnail timeline of a video."""

    def __init__(
        self,
        store: TrackStore,
        storage: StorageService,
        probe: MediaProbe,
        generator: ThumbnailGenerator,
        work_root: str,
    ):
        self.store = store
        self.storage = storage
        self.probe = probe
        self.generator = generator
        self.work_root = work_root

    async def _from_cache(self, video_id: str) -> TimelineResult | None:
        existing = await self.store.get_thumbnails_by_video_id(video_id)
        if not existing:
            return None

        logger.info(f"Thumbnails already exist for video {video_id}, returning {len(existing)} from cache")
        video = await self.store.get_video(video_id)
        return TimelineResult(
            video_id=video_id,
            duration=video.duration if video else 0.0,
            session_id=existing[0].session_id,
            thumbnails=[t.path for t in existing],
            timestamps=[t.timestamp for t in existing],
            from_cache=True,
        )

    async def get_or_create_timeline(self, video_id: str, storage_key: str) -> TimelineResult:
        """Return the cached timeline for a video or build a new one.

        Raises:
            VideoNotFoundError: If the source video cannot be downloaded
        """
        cached = await self._from_cache(video_id)
        if cached is not None:
            return cached

        with WorkArea(self.work_root, "thumbnails") as work:
            video_path = str(work.file(os.path.basename(storage_key) or "source.mp4"))
            try:
                await self.storage.download_file(storage_key, video_path)
            except StorageError as e:
                raise VideoNotFoundError(video_id=video_id, storage_key=storage_key) from e

            timeline = await self.probe.build_timeline(video_path)
            logger.info(
                f"Timeline for video {video_id}: duration={timeline.duration_s:.2f}s, "
                f"{len(timeline.timestamps)} timestamps"
            )

            thumbnails_dir = str(work.subdir("thumbs"))
            batch = await self.generator.generate_batch(
                video_path, thumbnails_dir, timeline.timestamps, work.session_id
            )

            result = TimelineResult(
                video_id=video_id,
                duration=timeline.duration_s,
                session_id=work.session_id,
                duration_degraded=timeline.duration_degraded,
                scenes_degraded=timeline.scenes_degraded,
                failed_count=batch.failure_count,
            )

            for outcome in batch.successes:
                key = thumbnail_storage_key(video_id, work.session_id, sanitize_filename(outcome.filename))
                try:
                    await self.storage.upload_file(
                        os.path.join(thumbnails_dir, outcome.filename), key, "image/jpeg"
                    )
                    await self.store.create_thumbnail(
                        ThumbnailRecord(
                            video_id=video_id,
                            path=key,
                            timestamp=outcome.timestamp,
                            session_id=work.session_id,
                        )
                    )
                except (StorageError, OSError) as e:
                    logger.error(f"Error uploading thumbnail {outcome.index + 1} for video {video_id}: {e}")
                    result.failed_count += 1
                    continue
                result.thumbnails.append(key)
                result.timestamps.append(outcome.timestamp)

        await self.store.update_video_duration(video_id, timeline.duration_s)
        logger.info(f"Thumbnails uploaded for video {video_id}: {result.generated_count}")
        return result
