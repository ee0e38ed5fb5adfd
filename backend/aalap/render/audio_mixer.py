"""
Preview mixing with FFmpeg.

This module handles:
- Music-only previews (transcode + hard clip)
- Sound effects placed at their onsets with adelay
- Mixing a base track with delayed effects via amix
- Silent base track synthesis when there is no music
"""

import logging
import math
from dataclasses import dataclass

from aalap.config import Settings, get_settings
from aalap.exceptions import (
    EngineUnavailableError,
    InvalidSceneDurationError,
    MixError,
    NoAudioSourcesError,
)
from aalap.utils.media_engine import MediaEngine

logger = logging.getLogger(__name__)


@dataclass
class SoundEffectInput:
    """A sound effect file and its onset relative to the scene start."""

    file_path: str
    onset_ms: float

    @property
    def delay_ms(self) -> int:
        # adelay only takes whole milliseconds
        return int(math.floor(self.onset_ms))


class AudioMixer:
    """
    FFmpeg-based preview mixer.

    Input 0 is the base stream (music, or generated silence when there is no
    music); each sound effect follows in list order. The output length is
    governed by the base stream and the whole command is clipped to the
    requested duration.
    """

    def __init__(
        self,
        engine: MediaEngine,
        codec: str = "libmp3lame",
        bitrate: str = "192k",
        sample_rate: int = 44100,
        dropout_transition_s: int = 2,
    ):
        self.engine = engine
        self.codec = codec
        self.bitrate = bitrate
        self.sample_rate = sample_rate
        self.dropout_transition_s = dropout_transition_s

    @classmethod
    def from_settings(cls, engine: MediaEngine, settings: Settings | None = None) -> "AudioMixer":
        settings = settings or get_settings()
        return cls(
            engine,
            codec=settings.preview_audio_codec,
            bitrate=settings.preview_audio_bitrate,
            sample_rate=settings.preview_sample_rate,
            dropout_transition_s=settings.preview_dropout_transition_s,
        )

    def _output_args(self, duration_s: float, output_path: str) -> list[str]:
        return [
            "-c:a", self.codec,
            "-b:a", self.bitrate,
            "-t", str(duration_s),
            output_path,
        ]

    def build_filter_graph(self, effects: list[SoundEffectInput], pad_base: bool) -> str:
        """
        Build the delay + mix filter graph.

        Args:
            effects: Sound effects, mapped to inputs 1..N in order
            pad_base: Pad the base stream with trailing silence so a short
                music file still fills the clipped duration

        Returns:
            filter_complex string whose final output label is [out]
        """
        filter_parts: list[str] = []

        base_label = "[0:a]"
        if pad_base:
            filter_parts.append("[0:a]apad[base]")
            base_label = "[base]"

        for index, effect in enumerate(effects):
            input_index = index + 1
            delay = effect.delay_ms
            filter_parts.append(f"[{input_index}:a]adelay={delay}|{delay}[sfx{index}]")

        mix_inputs = "".join(f"[sfx{index}]" for index in range(len(effects)))
        total_inputs = len(effects) + 1
        filter_parts.append(
            f"{base_label}{mix_inputs}amix=inputs={total_inputs}:duration=first"
            f":dropout_transition={self.dropout_transition_s}[out]"
        )
        return ";".join(filter_parts)

    def build_command(
        self,
        music_path: str | None,
        effects: list[SoundEffectInput],
        duration_s: float,
        output_path: str,
    ) -> list[str]:
        """Build the full ffmpeg argument list (without the binary)."""
        if music_path is None and not effects:
            raise NoAudioSourcesError()
        if not math.isfinite(duration_s) or duration_s <= 0:
            raise InvalidSceneDurationError(duration_s)

        cmd = ["-hide_banner", "-y"]

        # Music only - direct transcode, no filter graph needed
        if music_path is not None and not effects:
            cmd.extend(["-i", music_path, "-vn", "-af", "apad"])
            cmd.extend(self._output_args(duration_s, output_path))
            return cmd

        if music_path is None:
            cmd.extend([
                "-f", "lavfi",
                "-i", f"anullsrc=r={self.sample_rate}:cl=stereo:d={duration_s}",
            ])
        else:
            cmd.extend(["-i", music_path])

        for effect in effects:
            cmd.extend(["-i", effect.file_path])

        filter_complex = self.build_filter_graph(effects, pad_base=music_path is not None)
        logger.info(f"[AUDIO MIX] filter: {filter_complex}")

        cmd.extend(["-filter_complex", filter_complex, "-map", "[out]"])
        cmd.extend(self._output_args(duration_s, output_path))
        return cmd

    async def mix(
        self,
        music_path: str | None,
        effects: list[SoundEffectInput],
        duration_s: float,
        output_path: str,
    ) -> str:
        """
        Mix music and sound effects into one preview file.

        Args:
            music_path: Background music file, or None
            effects: Sound effects with onsets in milliseconds
            duration_s: Output length in seconds
            output_path: Output file path

        Returns:
            Path to the mixed audio file

        Raises:
            NoAudioSourcesError: Neither music nor effects given (before any subprocess)
            InvalidSceneDurationError: duration_s is not a positive number
            MixError: The mixing subprocess failed
        """
        cmd = self.build_command(music_path, effects, duration_s, output_path)
        logger.info(
            f"[AUDIO MIX] music={'yes' if music_path else 'no'} effects={len(effects)} "
            f"duration={duration_s}s -> {output_path}"
        )

        try:
            result = await self.engine.run(cmd)
        except EngineUnavailableError as e:
            raise MixError(f"FFmpeg audio mixing failed: {e.message}") from e

        if result.timed_out:
            raise MixError("FFmpeg audio mixing timed out")
        if not result.ok:
            raise MixError(f"FFmpeg audio mixing failed: {result.stderr_tail()}")

        logger.info(f"[AUDIO MIX] completed: {output_path}")
        return output_path
