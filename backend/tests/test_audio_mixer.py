"""
Tests for preview mixing.

Test cases:
1. Filter graph and command construction for every source combination
2. Preconditions checked before any subprocess is started
3. Engine failures surface as MixError
4. Real ffmpeg: exact output length and onset placement
"""

import subprocess
from pathlib import Path

import pytest

from aalap.exceptions import InvalidSceneDurationError, MixError, NoAudioSourcesError
from aalap.render.audio_mixer import AudioMixer, SoundEffectInput
from aalap.utils.media_engine import EngineResult, MediaEngine


class TestSoundEffectInput:
    def test_delay_is_floored_to_whole_ms(self):
        assert SoundEffectInput("a.mp3", onset_ms=1500.9).delay_ms == 1500
        assert SoundEffectInput("a.mp3", onset_ms=0).delay_ms == 0


class TestFilterGraph:
    def test_two_effects_over_music(self, fake_engine):
        mixer = AudioMixer(fake_engine())
        effects = [SoundEffectInput("a.mp3", 1000), SoundEffectInput("b.mp3", 2500)]

        graph = mixer.build_filter_graph(effects, pad_base=True)

        assert graph == (
            "[0:a]apad[base];"
            "[1:a]adelay=1000|1000[sfx0];"
            "[2:a]adelay=2500|2500[sfx1];"
            "[base][sfx0][sfx1]amix=inputs=3:duration=first:dropout_transition=2[out]"
        )

    def test_effects_over_silence(self, fake_engine):
        mixer = AudioMixer(fake_engine())

        graph = mixer.build_filter_graph([SoundEffectInput("a.mp3", 0)], pad_base=False)

        assert graph == "[1:a]adelay=0|0[sfx0];[0:a][sfx0]amix=inputs=2:duration=first:dropout_transition=2[out]"


class TestBuildCommand:
    def test_music_only(self, fake_engine):
        mixer = AudioMixer(fake_engine())

        cmd = mixer.build_command("music.mp3", [], 12.5, "out.mp3")

        assert cmd == [
            "-hide_banner", "-y",
            "-i", "music.mp3", "-vn", "-af", "apad",
            "-c:a", "libmp3lame", "-b:a", "192k", "-t", "12.5", "out.mp3",
        ]

    def test_effects_only_uses_silent_base(self, fake_engine):
        mixer = AudioMixer(fake_engine())

        cmd = mixer.build_command(None, [SoundEffectInput("a.mp3", 500)], 8.0, "out.mp3")

        assert cmd[cmd.index("-f") + 1] == "lavfi"
        assert "anullsrc=r=44100:cl=stereo:d=8.0" in cmd
        assert cmd.index("anullsrc=r=44100:cl=stereo:d=8.0") < cmd.index("a.mp3")
        assert cmd[cmd.index("-map") + 1] == "[out]"
        assert cmd[cmd.index("-t") + 1] == "8.0"

    def test_music_and_effects_input_order(self, fake_engine):
        mixer = AudioMixer(fake_engine())
        effects = [SoundEffectInput("a.mp3", 100), SoundEffectInput("b.mp3", 200)]

        cmd = mixer.build_command("music.mp3", effects, 5.0, "out.mp3")

        inputs = [cmd[i + 1] for i, arg in enumerate(cmd) if arg == "-i"]
        assert inputs == ["music.mp3", "a.mp3", "b.mp3"]
        assert "-filter_complex" in cmd
        assert cmd[-1] == "out.mp3"

    def test_settings_are_applied(self, fake_engine):
        mixer = AudioMixer(fake_engine(), codec="aac", bitrate="128k", sample_rate=48000, dropout_transition_s=0)

        cmd = mixer.build_command(None, [SoundEffectInput("a.mp3", 0)], 3.0, "out.m4a")

        assert "anullsrc=r=48000:cl=stereo:d=3.0" in cmd
        assert cmd[cmd.index("-c:a") + 1] == "aac"
        assert cmd[cmd.index("-b:a") + 1] == "128k"
        assert "dropout_transition=0" in cmd[cmd.index("-filter_complex") + 1]


class TestMixPreconditions:
    @pytest.mark.asyncio
    async def test_no_sources_raises_before_engine(self, fake_engine):
        engine = fake_engine()
        mixer = AudioMixer(engine)

        with pytest.raises(NoAudioSourcesError, match="No audio to preview"):
            await mixer.mix(None, [], 10.0, "out.mp3")
        assert engine.run_calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("duration", [0.0, -1.0, float("nan")])
    async def test_invalid_duration_raises_before_engine(self, fake_engine, duration):
        engine = fake_engine()
        mixer = AudioMixer(engine)

        with pytest.raises(InvalidSceneDurationError):
            await mixer.mix("music.mp3", [], duration, "out.mp3")
        assert engine.run_calls == []


class TestMixFailures:
    @pytest.mark.asyncio
    async def test_engine_error_raises_mix_error(self, fake_engine):
        engine = fake_engine(
            run_script=lambda args: EngineResult(returncode=1, stderr="Invalid argument\nError initializing filter")
        )
        mixer = AudioMixer(engine)

        with pytest.raises(MixError, match="Error initializing filter"):
            await mixer.mix("music.mp3", [SoundEffectInput("a.mp3", 0)], 5.0, "out.mp3")

    @pytest.mark.asyncio
    async def test_timeout_raises_mix_error(self, fake_engine):
        engine = fake_engine(run_script=lambda args: EngineResult(returncode=None, timed_out=True))

        with pytest.raises(MixError, match="timed out"):
            await AudioMixer(engine).mix("music.mp3", [], 5.0, "out.mp3")

    @pytest.mark.asyncio
    async def test_missing_engine_raises_mix_error(self):
        mixer = AudioMixer(MediaEngine(ffmpeg_path="/nonexistent/ffmpeg-binary"))

        with pytest.raises(MixError):
            await mixer.mix("music.mp3", [], 5.0, "out.mp3")

    @pytest.mark.asyncio
    async def test_success_returns_output_path(self, fake_engine):
        mixer = AudioMixer(fake_engine())
        assert await mixer.mix("music.mp3", [], 5.0, "out.mp3") == "out.mp3"


def mean_volume_db(path: Path, start: float, duration: float) -> float:
    """Mean volume of a window of an audio file, via volumedetect."""
    result = subprocess.run(
        [
            "ffmpeg", "-hide_banner", "-nostats",
            "-ss", str(start), "-t", str(duration),
            "-i", str(path),
            "-af", "volumedetect",
            "-f", "null", "-",
        ],
        capture_output=True,
        text=True,
    )
    for line in result.stderr.splitlines():
        if "mean_volume:" in line:
            return float(line.split("mean_volume:")[1].split("dB")[0])
    return float("-inf")


@pytest.mark.requires_ffmpeg
class TestAudioMixerWithFFmpeg:
    @pytest.mark.asyncio
    async def test_output_length_equals_duration_with_short_music(
        self, make_tone, temp_output_dir: Path, ffprobe_duration
    ):
        """Music shorter than the scene is padded to the full length."""
        music = make_tone("music", 3.0)
        output = temp_output_dir / "preview.mp3"

        await AudioMixer(MediaEngine(timeout_s=60)).mix(str(music), [], 6.0, str(output))

        assert ffprobe_duration(output) == pytest.approx(6.0, abs=0.1)

    @pytest.mark.asyncio
    async def test_output_length_clips_long_music(self, make_tone, temp_output_dir: Path, ffprobe_duration):
        music = make_tone("music", 10.0)
        effect = make_tone("sfx", 0.5, frequency=1000)
        output = temp_output_dir / "preview.mp3"

        await AudioMixer(MediaEngine(timeout_s=60)).mix(
            str(music), [SoundEffectInput(str(effect), 1000)], 4.0, str(output)
        )

        assert ffprobe_duration(output) == pytest.approx(4.0, abs=0.1)

    @pytest.mark.asyncio
    async def test_effect_onset_placement(self, make_tone, temp_output_dir: Path, ffprobe_duration):
        """Over silence, nothing is audible before the onset."""
        effect = make_tone("sfx", 1.0, frequency=1000)
        output = temp_output_dir / "preview.mp3"

        await AudioMixer(MediaEngine(timeout_s=60)).mix(
            None, [SoundEffectInput(str(effect), 2000)], 5.0, str(output)
        )

        assert ffprobe_duration(output) == pytest.approx(5.0, abs=0.1)
        assert mean_volume_db(output, 0.0, 1.8) < -60
        assert mean_volume_db(output, 2.1, 0.7) > -40

    @pytest.mark.asyncio
    async def test_onset_past_end_is_silent(self, make_tone, temp_output_dir: Path, ffprobe_duration):
        effect = make_tone("sfx", 1.0, frequency=1000)
        output = temp_output_dir / "preview.mp3"

        await AudioMixer(MediaEngine(timeout_s=60)).mix(
            None, [SoundEffectInput(str(effect), 10000)], 3.0, str(output)
        )

        assert ffprobe_duration(output) == pytest.approx(3.0, abs=0.1)
        assert mean_volume_db(output, 0.0, 2.9) < -60
