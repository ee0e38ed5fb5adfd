"""Interactive scene segmentation.

``SceneSegmenter`` turns a continuous scrub position into an ordered list of
non-overlapping scenes. A trim session moves through three states:

    IDLE --enter_trim--> TRIM_ACTIVE --start_selection--> SELECTING
    SELECTING --confirm_selection--> TRIM_ACTIVE
    TRIM_ACTIVE/SELECTING --exit_trim--> IDLE
    TRIM_ACTIVE --export_scenes--> EXPORTING --> IDLE (back to TRIM_ACTIVE on failure)

Positions are kept in seconds. While trimming, the position can never move
before the end of the last confirmed scene (the "floor"), and while a
selection is open it can never move before the selection start. The floor
only ever increases within a session.
"""

import inspect
import logging
import math
import uuid
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from aalap.exceptions import (
    DurationUnavailableError,
    InvalidTransitionError,
    NothingToExportError,
    SelectionEndBeforeStartError,
    SelectionTooShortError,
)

logger = logging.getLogger(__name__)

DurationProvider = Callable[[], float | None]
ExportCallback = Callable[[list["Scene"]], Awaitable[Any] | Any]


class SegmenterState(str, Enum):
    IDLE = "idle"
    TRIM_ACTIVE = "trim_active"
    SELECTING = "selecting"
    EXPORTING = "exporting"


@dataclass(frozen=True)
class Scene:
    """A confirmed scene, ``[start_time, end_time)`` in seconds."""

    id: str
    start_time: float
    end_time: float

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration": self.duration,
        }


def resolve_duration(providers: Sequence[DurationProvider]) -> float | None:
    """First positive, finite duration from an ordered list of providers."""
    for provider in providers:
        value = provider()
        if value is not None and math.isfinite(value) and value > 0:
            return float(value)
    return None


class SceneSegmenter:
    """State machine for carving a video into scenes.

    Args:
        duration_providers: Ordered duration sources, highest priority first
            (probe/cache duration, live playback duration, external prop).
        min_scene_length_s: Shortest scene that may be confirmed.
        on_scene_confirmed: Called with every confirmed Scene so the caller
            can persist it.
    """

    def __init__(
        self,
        duration_providers: Sequence[DurationProvider],
        min_scene_length_s: float = 0.1,
        on_scene_confirmed: Callable[[Scene], None] | None = None,
        id_factory: Callable[[], str] | None = None,
    ):
        self.duration_providers = list(duration_providers)
        self.min_scene_length_s = min_scene_length_s
        self.on_scene_confirmed = on_scene_confirmed
        self._id_factory = id_factory or (lambda: str(uuid.uuid4()))

        self.state = SegmenterState.IDLE
        self.position = 0.0
        self.next_start_floor = 0.0
        self.current_scene_start: float | None = None
        self._scenes: list[Scene] = []

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def scenes(self) -> list[Scene]:
        return list(self._scenes)

    @property
    def duration(self) -> float | None:
        return resolve_duration(self.duration_providers)

    def require_duration(self) -> float:
        duration = self.duration
        if duration is None:
            logger.error("No valid video duration available")
            raise DurationUnavailableError()
        return duration

    def position_percent(self) -> float | None:
        duration = self.duration
        if duration is None:
            return None
        return self.position / duration * 100

    def snapshot(self) -> dict:
        return {
            "state": self.state.value,
            "position": self.position,
            "position_percent": self.position_percent(),
            "next_start_floor": self.next_start_floor,
            "current_scene_start": self.current_scene_start,
            "duration": self.duration,
            "scenes": [s.to_dict() for s in self._scenes],
        }

    # ------------------------------------------------------------------
    # Position input
    # ------------------------------------------------------------------

    def _lower_bound(self) -> float:
        if self.state is SegmenterState.SELECTING and self.current_scene_start is not None:
            return self.current_scene_start
        if self.state in (SegmenterState.TRIM_ACTIVE, SegmenterState.EXPORTING):
            return self.next_start_floor
        return 0.0

    def _clamp(self, seconds: float) -> float:
        seconds = max(self._lower_bound(), seconds, 0.0)
        duration = self.duration
        if duration is not None:
            seconds = min(seconds, max(duration, self._lower_bound()))
        return seconds

    def seek(self, seconds: float) -> float:
        """Move the position, clamped to what the current state allows."""
        self.position = self._clamp(seconds)
        return self.position

    def scrub_to_percent(self, percent: float) -> float:
        """Move the position to a percentage of the resolved duration."""
        duration = self.require_duration()
        return self.seek(percent / 100 * duration)

    def sync_playback(self, seconds: float) -> float:
        """Follow the playback clock.

        While a selection is open the clock is ignored; the user owns the
        end marker.
        """
        if self.state is SegmenterState.SELECTING:
            return self.position
        if self.state is SegmenterState.IDLE:
            self.position = max(0.0, seconds)
            return self.position
        return self.seek(seconds)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _require_state(self, action: str, *allowed: SegmenterState) -> None:
        if self.state not in allowed:
            raise InvalidTransitionError(action, self.state.value)

    def _reset(self) -> None:
        self._scenes = []
        self.next_start_floor = 0.0
        self.current_scene_start = None

    def enter_trim(self) -> None:
        self._require_state("enter trim mode", SegmenterState.IDLE)
        self._reset()
        self.position = 0.0
        self.state = SegmenterState.TRIM_ACTIVE
        logger.info("Entered trim mode")

    def start_selection(self) -> float:
        self._require_state("start a selection", SegmenterState.TRIM_ACTIVE)
        self.current_scene_start = self.next_start_floor
        self.position = self.next_start_floor
        self.state = SegmenterState.SELECTING
        logger.info(f"Scene selection started at {self.current_scene_start:.2f}s")
        return self.current_scene_start

    def confirm_selection(self) -> Scene:
        """Close the open selection at the current position.

        Raises:
            DurationUnavailableError: No duration source yields a usable value
            SelectionEndBeforeStartError: Position is not after the start
            SelectionTooShortError: Selection is shorter than the minimum
        """
        self._require_state("confirm a selection", SegmenterState.SELECTING)
        assert self.current_scene_start is not None
        self.require_duration()

        start_time = self.current_scene_start
        end_time = self.position
        if end_time <= start_time:
            raise SelectionEndBeforeStartError(start_time, end_time)
        if end_time - start_time < self.min_scene_length_s:
            raise SelectionTooShortError(end_time - start_time, self.min_scene_length_s)

        scene = Scene(id=self._id_factory(), start_time=start_time, end_time=end_time)
        self._scenes.append(scene)
        self.next_start_floor = end_time
        self.current_scene_start = None
        self.state = SegmenterState.TRIM_ACTIVE
        logger.info(
            f"Confirmed scene {len(self._scenes)}: {start_time:.2f}s - {end_time:.2f}s "
            f"({scene.duration:.2f}s)"
        )

        if self.on_scene_confirmed is not None:
            self.on_scene_confirmed(scene)
        return scene

    async def export_scenes(self, exporter: ExportCallback) -> Any:
        """Hand the confirmed scenes to ``exporter`` and close the session.

        The segmenter sits in EXPORTING while the exporter runs, so no scene
        can be confirmed or discarded mid-export. State is only cleared once
        the exporter returns; if it raises, the session goes back to
        TRIM_ACTIVE with its scenes intact.
        """
        self._require_state("export scenes", SegmenterState.TRIM_ACTIVE)
        if not self._scenes:
            raise NothingToExportError()

        logger.info(f"Exporting {len(self._scenes)} scenes")
        self.state = SegmenterState.EXPORTING
        try:
            result = exporter(self.scenes)
            if inspect.isawaitable(result):
                result = await result
        except BaseException:
            self.state = SegmenterState.TRIM_ACTIVE
            raise

        self._reset()
        self.state = SegmenterState.IDLE
        return result

    def exit_trim(self) -> None:
        """Leave trim mode, discarding unconfirmed state."""
        if self.state is SegmenterState.IDLE:
            return
        self._require_state("exit trim mode", SegmenterState.TRIM_ACTIVE, SegmenterState.SELECTING)
        self._reset()
        self.state = SegmenterState.IDLE
        logger.info("Exited trim mode")
