"""Duration and scene-change detection from ffmpeg diagnostic output.

ffmpeg does not expose these values as structured data in analyze mode, so
both are recovered by pattern matching on stderr. All of that scraping lives
in this module; callers only see ``MediaProbe``.

Failures never propagate: an unreadable duration falls back to a fixed
value and a failed scene scan falls back to evenly spaced timestamps, so a
caller always gets a usable (possibly degraded) timeline.
"""

import logging
import re
from dataclasses import dataclass, field

from aalap.config import Settings, get_settings
from aalap.exceptions import EngineUnavailableError
from aalap.utils.media_engine import MediaEngine

logger = logging.getLogger(__name__)

DURATION_PATTERN = re.compile(r"Duration: (\d{2}):(\d{2}):(\d{2}\.\d{2})")
PTS_TIME_PATTERN = re.compile(r"pts_time:(\d+(?:\.\d+)?)")


@dataclass
class ScenePolicy:
    """Tunables for scene-change detection and interval backfill."""

    threshold: float = 0.35
    max_timestamps: int = 20
    min_detected: int = 10
    dedup_window_s: float = 2.0
    edge_margin_s: float = 1.0
    fallback_duration_s: float = 60.0

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "ScenePolicy":
        settings = settings or get_settings()
        return cls(
            threshold=settings.scene_threshold,
            max_timestamps=settings.scene_max_timestamps,
            min_detected=settings.scene_min_detected,
            dedup_window_s=settings.scene_dedup_window_s,
            edge_margin_s=settings.scene_edge_margin_s,
            fallback_duration_s=settings.fallback_duration_s,
        )


@dataclass
class SceneTimeline:
    """Duration plus candidate cut points for one video."""

    duration_s: float
    timestamps: list[float] = field(default_factory=list)
    duration_degraded: bool = False
    scenes_degraded: bool = False

    def to_dict(self) -> dict:
        return {
            "duration": self.duration_s,
            "timestamps": list(self.timestamps),
            "duration_degraded": self.duration_degraded,
            "scenes_degraded": self.scenes_degraded,
        }


def parse_duration(text: str) -> float | None:
    """Parse the first ``Duration: HH:MM:SS.ff`` record into seconds."""
    match = DURATION_PATTERN.search(text)
    if not match:
        return None
    hours, minutes, seconds = match.groups()
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


def parse_pts_times(line: str) -> list[float]:
    """Extract every ``pts_time:<seconds>`` value on a showinfo line."""
    return [float(m.group(1)) for m in PTS_TIME_PATTERN.finditer(line)]


def generate_interval_timestamps(duration: float, count: int, edge_margin_s: float = 1.0) -> list[float]:
    """Evenly spaced timestamps, at least 1s apart, avoiding the last second."""
    if count <= 0:
        return []
    interval = max(1.0, duration / (count + 1))
    timestamps = []
    for i in range(1, count + 1):
        timestamp = i * interval
        if timestamp < duration - edge_margin_s:
            timestamps.append(timestamp)
    return timestamps


def _is_close(value: float, others: list[float], window: float) -> bool:
    return any(abs(value - other) < window for other in others)


def merge_with_interval_fallback(detected: list[float], duration: float, policy: ScenePolicy) -> list[float]:
    """Combine detected cuts with interval backfill.

    Detected cuts are de-duplicated among themselves (first wins). If fewer
    than ``min_detected`` remain, interval timestamps are added for the
    missing count, skipping any close to a detected cut. The result is sorted
    and capped at ``max_timestamps``.
    """
    accepted: list[float] = []
    for timestamp in detected:
        if not _is_close(timestamp, accepted, policy.dedup_window_s):
            accepted.append(timestamp)

    merged = list(accepted)
    if len(accepted) < policy.min_detected:
        candidates = generate_interval_timestamps(
            duration, policy.max_timestamps - len(accepted), policy.edge_margin_s
        )
        merged.extend(t for t in candidates if not _is_close(t, accepted, policy.dedup_window_s))

    merged.sort()
    return merged[: policy.max_timestamps]


class MediaProbe:
    """Recovers duration and cut points for a video via the media engine."""

    def __init__(self, engine: MediaEngine, policy: ScenePolicy | None = None):
        self.engine = engine
        self.policy = policy or ScenePolicy()

    async def _probe_duration(self, video_path: str) -> float | None:
        found: list[float] = []

        def on_line(line: str) -> bool:
            duration = parse_duration(line)
            if duration is not None:
                found.append(duration)
                return False
            return True

        args = ["-hide_banner", "-nostats", "-i", video_path, "-f", "null", "-"]
        try:
            result = await self.engine.stream_stderr(args, on_line)
        except EngineUnavailableError as e:
            logger.error(f"Duration detection error for {video_path}: {e}")
            return None

        if found:
            return found[0]
        if result.timed_out:
            logger.warning(f"Duration detection timed out for {video_path}")
        else:
            logger.warning(f"Could not parse duration for {video_path} (exit code {result.returncode})")
        return None

    async def probe_duration(self, video_path: str) -> float:
        """Video duration in seconds, or the fallback duration if unreadable."""
        duration = await self._probe_duration(video_path)
        if duration is None:
            logger.warning(f"Using fallback duration {self.policy.fallback_duration_s}s for {video_path}")
            return self.policy.fallback_duration_s
        return duration

    async def _detect_raw(self, video_path: str, duration: float) -> list[float] | None:
        """Accepted cut points in stream order, or None if the scan failed."""
        timestamps: list[float] = []
        upper = duration - self.policy.edge_margin_s

        def on_line(line: str) -> bool:
            for timestamp in parse_pts_times(line):
                if len(timestamps) >= self.policy.max_timestamps:
                    break
                if 0 < timestamp < upper:
                    timestamps.append(timestamp)
            return len(timestamps) < self.policy.max_timestamps

        args = [
            "-hide_banner",
            "-nostats",
            "-i", video_path,
            "-vf", f"select='gt(scene,{self.policy.threshold})',showinfo",
            "-f", "null",
            "-",
        ]
        try:
            result = await self.engine.stream_stderr(args, on_line)
        except EngineUnavailableError as e:
            logger.error(f"Scene detection error for {video_path}: {e}")
            return None

        if not result.ok:
            logger.error(
                f"Scene detection failed for {video_path} "
                f"(exit code {result.returncode}, timed out: {result.timed_out}): {result.error or result.stderr_tail(5)}"
            )
            return None
        return timestamps

    async def detect_scene_changes(self, video_path: str, duration: float) -> list[float]:
        """Sorted cut-point timestamps for a video, backfilled when sparse."""
        timestamps, _ = await self._detect_scene_changes(video_path, duration)
        return timestamps

    async def _detect_scene_changes(self, video_path: str, duration: float) -> tuple[list[float], bool]:
        detected = await self._detect_raw(video_path, duration)
        if detected is None:
            logger.warning(f"Falling back to interval timestamps for {video_path}")
            fallback = generate_interval_timestamps(
                duration, self.policy.max_timestamps, self.policy.edge_margin_s
            )
            return fallback, True

        logger.info(f"Scene changes detected: {len(detected)} in {video_path}")
        return merge_with_interval_fallback(detected, duration, self.policy), False

    async def build_timeline(self, video_path: str) -> SceneTimeline:
        """Probe duration then detect cut points."""
        duration = await self._probe_duration(video_path)
        duration_degraded = duration is None
        if duration is None:
            logger.warning(f"Using fallback duration {self.policy.fallback_duration_s}s for {video_path}")
            duration = self.policy.fallback_duration_s

        timestamps, scenes_degraded = await self._detect_scene_changes(video_path, duration)
        return SceneTimeline(
            duration_s=duration,
            timestamps=timestamps,
            duration_degraded=duration_degraded,
            scenes_degraded=scenes_degraded,
        )
