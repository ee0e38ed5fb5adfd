"""
Tests for duration probing and scene-change detection.

Test cases:
1. Duration and pts_time parsing
2. Interval timestamp generation
3. Merging detected cuts with interval backfill
4. Fallbacks when the engine fails or output is unreadable
5. Real ffmpeg run over a video with hard cuts
"""

import stat
import sys

import pytest

from aalap.services.media_probe import (
    MediaProbe,
    ScenePolicy,
    generate_interval_timestamps,
    merge_with_interval_fallback,
    parse_duration,
    parse_pts_times,
)
from aalap.utils.media_engine import MediaEngine

HEADER = [
    "Input #0, mov,mp4,m4a,3gp,3g2,mj2, from 'in.mp4':",
    "  Duration: 00:01:40.50, start: 0.000000, bitrate: 512 kb/s",
    "  Stream #0:0(und): Video: h264",
]


def showinfo(pts_time: float) -> str:
    return (
        f"[Parsed_showinfo_1 @ 0x55d5] n:   0 pts:  12800 pts_time:{pts_time} "
        f"duration:512 fmt:yuv420p"
    )


def assert_timeline_invariants(timestamps: list[float], duration: float, limit: int = 20):
    assert len(timestamps) <= limit
    assert timestamps == sorted(timestamps)
    assert all(0 < t < duration - 1 for t in timestamps)


class TestParsing:
    def test_parse_duration(self):
        assert parse_duration(HEADER[1]) == pytest.approx(100.5)

    def test_parse_duration_hours(self):
        assert parse_duration("Duration: 01:02:03.25, start") == pytest.approx(3723.25)

    def test_parse_duration_missing(self):
        assert parse_duration("Duration: N/A, bitrate: N/A") is None

    def test_parse_pts_times(self):
        assert parse_pts_times(showinfo(12.5)) == [12.5]
        assert parse_pts_times("pts_time:3 foo pts_time:4.25") == [3.0, 4.25]
        assert parse_pts_times("no timing here") == []


class TestIntervalTimestamps:
    def test_even_spacing(self):
        """100s / (4 + 1) = 20s spacing."""
        assert generate_interval_timestamps(100.0, 4) == [20.0, 40.0, 60.0, 80.0]

    def test_minimum_spacing_one_second(self):
        """Short videos are spaced 1s apart and stop before the last second."""
        assert generate_interval_timestamps(5.0, 20) == [1.0, 2.0, 3.0]

    def test_zero_count(self):
        assert generate_interval_timestamps(100.0, 0) == []

    def test_invariants_hold(self):
        for duration in (2.5, 10.0, 61.0, 3600.0):
            assert_timeline_invariants(generate_interval_timestamps(duration, 20), duration)


class TestMergeWithIntervalFallback:
    def test_zero_cuts_equals_interval_generator(self):
        policy = ScenePolicy()
        assert merge_with_interval_fallback([], 100.0, policy) == generate_interval_timestamps(100.0, 20)

    def test_enough_cuts_no_backfill(self):
        detected = [float(t) for t in range(5, 65, 5)]  # 12 cuts, 5s apart
        merged = merge_with_interval_fallback(detected, 100.0, ScenePolicy())
        assert merged == detected

    def test_sparse_cuts_backfilled_away_from_detected(self):
        """Interval candidates within 2s of a detected cut are dropped."""
        detected = [10.5, 50.0]
        merged = merge_with_interval_fallback(detected, 100.0, ScenePolicy())

        assert 10.5 in merged and 50.0 in merged
        # 18 candidates spaced 100/19 apart; 10.526 collides with 10.5
        backfill = [t for t in merged if t not in detected]
        assert all(abs(t - d) >= 2.0 for t in backfill for d in detected)
        assert_timeline_invariants(merged, 100.0)

    def test_close_detected_cuts_deduplicated(self):
        merged = merge_with_interval_fallback([10.0, 10.5, 11.9, 30.0], 100.0, ScenePolicy(min_detected=0))
        assert merged == [10.0, 30.0]

    def test_capped_at_max(self):
        detected = [float(t) for t in range(3, 200, 3)]
        merged = merge_with_interval_fallback(detected, 300.0, ScenePolicy())
        assert len(merged) == 20


class TestMediaProbe:
    @pytest.mark.asyncio
    async def test_probe_duration_stops_at_first_match(self, fake_engine):
        engine = fake_engine(stream_script=lambda args: (HEADER + ["frame= 10"] * 100, 0))
        probe = MediaProbe(engine)

        assert await probe.probe_duration("in.mp4") == pytest.approx(100.5)
        # Nothing after the duration line is read
        assert engine.lines_delivered == 2

    @pytest.mark.asyncio
    async def test_probe_duration_fallback(self, fake_engine):
        engine = fake_engine(stream_script=lambda args: (["garbage"], 1))
        probe = MediaProbe(engine, ScenePolicy(fallback_duration_s=60.0))

        assert await probe.probe_duration("in.mp4") == 60.0

    @pytest.mark.asyncio
    async def test_scene_detection_filters_out_of_range(self, fake_engine):
        lines = [showinfo(t) for t in (0.0, 5.0, 30.0, 60.0, 99.8, 120.0)]
        engine = fake_engine(stream_script=lambda args: (lines, 0))
        probe = MediaProbe(engine, ScenePolicy(min_detected=0))

        timestamps = await probe.detect_scene_changes("in.mp4", 100.0)

        assert timestamps == [5.0, 30.0, 60.0]
        args = engine.stream_calls[0]
        assert "select='gt(scene,0.35)',showinfo" in args

    @pytest.mark.asyncio
    async def test_scene_detection_stops_after_max(self, fake_engine):
        lines = [showinfo(3.0 * i) for i in range(1, 60)]
        engine = fake_engine(stream_script=lambda args: (lines, 0))
        probe = MediaProbe(engine)

        timestamps = await probe.detect_scene_changes("in.mp4", 500.0)

        assert len(timestamps) == 20
        assert engine.lines_delivered == 20

    @pytest.mark.asyncio
    async def test_scene_detection_failure_falls_back_to_intervals(self, fake_engine):
        engine = fake_engine(stream_script=lambda args: (["Invalid data found"], 1))
        probe = MediaProbe(engine)

        timestamps = await probe.detect_scene_changes("in.mp4", 100.0)

        assert timestamps == generate_interval_timestamps(100.0, 20)

    @pytest.mark.asyncio
    async def test_oversized_diagnostic_line_falls_back_to_intervals(self, tmp_path):
        binary = tmp_path / "ffmpeg"
        binary.write_text(
            f"#!{sys.executable}\n"
            "import sys\n"
            "sys.stderr.write('x' * 3_000_000)\n"
        )
        binary.chmod(binary.stat().st_mode | stat.S_IXUSR)
        probe = MediaProbe(MediaEngine(ffmpeg_path=str(binary), timeout_s=30))

        timestamps = await probe.detect_scene_changes("in.mp4", 30.0)

        assert timestamps == generate_interval_timestamps(30.0, 20)

    @pytest.mark.asyncio
    async def test_missing_engine_degrades_timeline(self):
        probe = MediaProbe(MediaEngine(ffmpeg_path="/nonexistent/ffmpeg-binary"))

        timeline = await probe.build_timeline("in.mp4")

        assert timeline.duration_s == 60.0
        assert timeline.duration_degraded
        assert timeline.scenes_degraded
        assert timeline.timestamps == generate_interval_timestamps(60.0, 20)

    @pytest.mark.asyncio
    async def test_build_timeline(self, fake_engine):
        def script(args):
            if "-vf" in args:
                return [showinfo(t) for t in (12.0, 45.0)], 0
            return HEADER, 0

        probe = MediaProbe(fake_engine(stream_script=script))
        timeline = await probe.build_timeline("in.mp4")

        assert timeline.duration_s == pytest.approx(100.5)
        assert not timeline.duration_degraded
        assert not timeline.scenes_degraded
        assert 12.0 in timeline.timestamps and 45.0 in timeline.timestamps
        assert_timeline_invariants(timeline.timestamps, timeline.duration_s)


@pytest.mark.requires_ffmpeg
class TestMediaProbeWithFFmpeg:
    @pytest.mark.asyncio
    async def test_detects_hard_cuts(self, make_video):
        video = make_video("cuts", ["red", "blue", "green", "white"], seconds_each=3.0)
        probe = MediaProbe(MediaEngine(timeout_s=60))

        timeline = await probe.build_timeline(str(video))

        assert timeline.duration_s == pytest.approx(12.0, abs=0.1)
        assert not timeline.scenes_degraded
        for cut in (3.0, 6.0, 9.0):
            assert any(abs(t - cut) < 0.1 for t in timeline.timestamps)
        assert_timeline_invariants(timeline.timestamps, timeline.duration_s)
