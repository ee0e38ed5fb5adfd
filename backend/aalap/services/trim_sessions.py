"""Server-side trim sessions.

Each session owns one ``SceneSegmenter`` for a single video. Duration is
resolved, in priority order, from the probed duration stored for the video,
the duration last reported by the player, and the duration given when the
session was opened.

Sessions that go unused for longer than the idle TTL are dropped the next
time the registry is touched. A session that is mid-export is never dropped.
"""

import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field

from aalap.exceptions import TrimSessionNotFoundError
from aalap.services.scene_exporter import ExportedScene, SceneExporter
from aalap.services.scene_segmenter import SceneSegmenter, SegmenterState
from aalap.services.track_store import TrackStore

logger = logging.getLogger(__name__)


@dataclass
class TrimSession:
    id: str
    video_id: str
    project_id: str
    storage_key: str
    prop_duration: float | None = None
    probed_duration: float | None = None
    playback_duration: float | None = None
    last_used: float = 0.0
    segmenter: SceneSegmenter = field(init=False)

    def attach(self, min_scene_length_s: float) -> None:
        self.segmenter = SceneSegmenter(
            duration_providers=[
                lambda: self.probed_duration,
                lambda: self.playback_duration,
                lambda: self.prop_duration,
            ],
            min_scene_length_s=min_scene_length_s,
        )

    def snapshot(self) -> dict:
        return {
            "id": self.id,
            "video_id": self.video_id,
            "project_id": self.project_id,
            **self.segmenter.snapshot(),
        }

    async def export(self, exporter: SceneExporter) -> list[ExportedScene]:
        return await self.segmenter.export_scenes(
            lambda scenes: exporter.export(self.video_id, self.project_id, self.storage_key, scenes)
        )


class TrimSessionRegistry:
    """In-process registry of open trim sessions."""

    def __init__(
        self,
        store: TrackStore,
        min_scene_length_s: float = 0.1,
        idle_ttl_s: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.min_scene_length_s = min_scene_length_s
        self.idle_ttl_s = idle_ttl_s
        self._clock = clock
        self._sessions: dict[str, TrimSession] = {}

    def _evict_idle(self) -> None:
        if self.idle_ttl_s <= 0:
            return
        cutoff = self._clock() - self.idle_ttl_s
        expired = [
            session.id
            for session in self._sessions.values()
            if session.last_used < cutoff and session.segmenter.state is not SegmenterState.EXPORTING
        ]
        for session_id in expired:
            del self._sessions[session_id]
            logger.info(f"Dropped idle trim session {session_id}")

    async def _refresh(self, session: TrimSession) -> TrimSession:
        session.last_used = self._clock()
        video = await self.store.get_video(session.video_id)
        session.probed_duration = video.duration if video else None
        return session

    async def create(
        self,
        video_id: str,
        project_id: str,
        storage_key: str,
        duration: float | None = None,
    ) -> TrimSession:
        self._evict_idle()
        session = TrimSession(
            id=str(uuid.uuid4()),
            video_id=video_id,
            project_id=project_id,
            storage_key=storage_key,
            prop_duration=duration,
        )
        session.attach(self.min_scene_length_s)
        self._sessions[session.id] = session
        logger.info(f"Opened trim session {session.id} for video {video_id}")
        return await self._refresh(session)

    async def get(self, session_id: str) -> TrimSession:
        self._evict_idle()
        session = self._sessions.get(session_id)
        if session is None:
            raise TrimSessionNotFoundError(session_id)
        return await self._refresh(session)

    def remove(self, session_id: str) -> None:
        if self._sessions.pop(session_id, None) is not None:
            logger.info(f"Closed trim session {session_id}")

    def __len__(self) -> int:
        return len(self._sessions)
