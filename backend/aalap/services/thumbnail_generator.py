"""Thumbnail extraction at cut-point timestamps.

Each timestamp is an independent unit of work: one ffmpeg invocation, one
fixed-size JPEG. A failed unit is recorded and skipped, never fatal to the
batch. Output names are derived from the input position before any work
starts, so running units concurrently cannot reorder them.
"""

import asyncio
import logging
import os
from dataclasses import dataclass, field

from aalap.config import Settings, get_settings
from aalap.exceptions import EngineUnavailableError
from aalap.utils.media_engine import MediaEngine

logger = logging.getLogger(__name__)


def thumbnail_filename(index: int) -> str:
    """Deterministic name for the thumbnail at input position ``index``."""
    return f"thumb_{index:03d}.jpg"


@dataclass
class ThumbnailOutcome:
    """Result of one thumbnail unit: a filename on success, an error otherwise."""

    index: int
    timestamp: float
    filename: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.filename is not None


@dataclass
class ThumbnailBatch:
    session_token: str
    outcomes: list[ThumbnailOutcome] = field(default_factory=list)

    @property
    def successes(self) -> list[ThumbnailOutcome]:
        return [o for o in self.outcomes if o.ok]

    @property
    def filenames(self) -> list[str]:
        return [o.filename for o in self.outcomes if o.filename is not None]

    @property
    def failure_count(self) -> int:
        return sum(1 for o in self.outcomes if not o.ok)


class ThumbnailGenerator:
    """Extracts one still frame per timestamp."""

    def __init__(
        self,
        engine: MediaEngine,
        width: int = 160,
        height: int = 90,
        max_workers: int = 1,
    ):
        self.engine = engine
        self.width = width
        self.height = height
        self.max_workers = max(1, max_workers)

    @classmethod
    def from_settings(cls, engine: MediaEngine, settings: Settings | None = None) -> "ThumbnailGenerator":
        settings = settings or get_settings()
        return cls(
            engine,
            width=settings.thumbnail_width,
            height=settings.thumbnail_height,
            max_workers=settings.thumbnail_max_workers,
        )

    def build_command(self, video_path: str, timestamp: float, output_path: str) -> list[str]:
        # -ss before -i enables fast seeking (input seeking)
        return [
            "-hide_banner",
            "-loglevel", "error",
            "-y",
            "-ss", f"{timestamp:.3f}",
            "-i", video_path,
            "-frames:v", "1",
            "-vf", f"scale={self.width}:{self.height}",
            "-q:v", "2",
            output_path,
        ]

    async def generate_one(
        self,
        video_path: str,
        output_dir: str,
        index: int,
        timestamp: float,
    ) -> ThumbnailOutcome:
        filename = thumbnail_filename(index)
        output_path = os.path.join(output_dir, filename)
        outcome = ThumbnailOutcome(index=index, timestamp=timestamp)

        try:
            result = await self.engine.run(self.build_command(video_path, timestamp, output_path))
        except EngineUnavailableError as e:
            outcome.error = str(e)
            logger.error(f"Error generating thumbnail {index + 1} at {timestamp:.2f}s: {e}")
            return outcome

        if not result.ok:
            outcome.error = "timed out" if result.timed_out else result.stderr_tail(5) or "engine error"
            logger.error(f"Error generating thumbnail {index + 1} at {timestamp:.2f}s: {outcome.error}")
            return outcome

        if not os.path.exists(output_path):
            outcome.error = "output file missing"
            logger.warning(f"Skipping thumbnail {index + 1}: no output at {output_path}")
            return outcome

        outcome.filename = filename
        logger.info(f"Thumbnail {index + 1} generated at {timestamp:.2f}s")
        return outcome

    async def generate_batch(
        self,
        video_path: str,
        output_dir: str,
        timestamps: list[float],
        session_token: str,
    ) -> ThumbnailBatch:
        """Run every unit and fold outcomes in input order."""
        os.makedirs(output_dir, exist_ok=True)
        logger.info(
            f"[THUMBNAILS] session={session_token} generating {len(timestamps)} thumbnails "
            f"({self.width}x{self.height}, workers={self.max_workers})"
        )

        if self.max_workers == 1:
            outcomes = []
            for index, timestamp in enumerate(timestamps):
                outcomes.append(await self.generate_one(video_path, output_dir, index, timestamp))
        else:
            semaphore = asyncio.Semaphore(self.max_workers)

            async def _bounded(index: int, timestamp: float) -> ThumbnailOutcome:
                async with semaphore:
                    return await self.generate_one(video_path, output_dir, index, timestamp)

            outcomes = list(
                await asyncio.gather(*(_bounded(i, t) for i, t in enumerate(timestamps)))
            )

        batch = ThumbnailBatch(session_token=session_token, outcomes=outcomes)
        if batch.failure_count:
            logger.warning(
                f"[THUMBNAILS] session={session_token} {batch.failure_count} of "
                f"{len(timestamps)} thumbnails failed"
            )
        return batch

    async def generate(
        self,
        video_path: str,
        output_dir: str,
        timestamps: list[float],
        session_token: str,
    ) -> list[str]:
        """Filenames of the thumbnails that were produced."""
        batch = await self.generate_batch(video_path, output_dir, timestamps, session_token)
        return batch.filenames
