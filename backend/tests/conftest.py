"""
Pytest fixtures for the Aalap media backend tests.

Most tests drive the pipeline through a scripted stand-in for the media
engine, so they run anywhere. Tests that need a real ffmpeg binary are marked
with @pytest.mark.requires_ffmpeg and skipped when it is not on PATH.

CI/CD Note:
Run `pytest -m "not requires_ffmpeg"` to skip the ffmpeg-backed tests.
"""

import os
import shutil
import subprocess
import tempfile
from collections.abc import Callable
from pathlib import Path

import pytest

from aalap.services.storage_service import LocalStorageService
from aalap.services.track_store import InMemoryTrackStore
from aalap.utils.media_engine import EngineResult

FFMPEG_BIN = shutil.which("ffmpeg")


def pytest_configure(config):
    """Register custom markers for CI/CD test filtering."""
    config.addinivalue_line(
        "markers",
        "requires_ffmpeg: mark test as requiring an ffmpeg binary on PATH"
    )


def pytest_collection_modifyitems(config, items):
    if FFMPEG_BIN is not None:
        return
    skip_ffmpeg = pytest.mark.skip(reason="ffmpeg not available")
    for item in items:
        if "requires_ffmpeg" in item.keywords:
            item.add_marker(skip_ffmpeg)


def touch_output(args: list[str]) -> EngineResult:
    """Engine script that writes a small file at the output path (last arg)."""
    Path(args[-1]).write_bytes(b"\xff\xd8fake")
    return EngineResult(returncode=0)


class FakeEngine:
    """Scripted stand-in for MediaEngine.

    ``run_script(args)`` decides the result of every ``run`` call.
    ``stream_script(args)`` returns ``(stderr_lines, returncode)`` for every
    ``stream_stderr`` call; lines are fed to the callback until it asks to
    stop, exactly like the real engine.
    """

    def __init__(
        self,
        run_script: Callable[[list[str]], EngineResult] | None = None,
        stream_script: Callable[[list[str]], tuple[list[str], int]] | None = None,
    ):
        self.ffmpeg_path = "ffmpeg"
        self.run_script = run_script or touch_output
        self.stream_script = stream_script or (lambda args: ([], 0))
        self.run_calls: list[list[str]] = []
        self.stream_calls: list[list[str]] = []
        self.lines_delivered = 0

    async def run(self, args) -> EngineResult:
        args = list(args)
        self.run_calls.append(args)
        return self.run_script(args)

    async def stream_stderr(self, args, on_line) -> EngineResult:
        args = list(args)
        self.stream_calls.append(args)
        lines, returncode = self.stream_script(args)
        for line in lines:
            self.lines_delivered += 1
            if not on_line(line):
                return EngineResult(returncode=-9, stderr=line, stopped_early=True)
        return EngineResult(returncode=returncode, stderr="\n".join(lines))


@pytest.fixture
def fake_engine() -> Callable[..., FakeEngine]:
    """Factory for scripted engines."""
    return FakeEngine


@pytest.fixture
def temp_output_dir():
    """Temporary directory for test outputs."""
    with tempfile.TemporaryDirectory(prefix="aalap_test_") as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def work_root(temp_output_dir: Path) -> Path:
    path = temp_output_dir / "work"
    path.mkdir()
    return path


@pytest.fixture
def store() -> InMemoryTrackStore:
    return InMemoryTrackStore()


@pytest.fixture
def local_storage(temp_output_dir: Path) -> LocalStorageService:
    return LocalStorageService(base_path=str(temp_output_dir / "storage"))


@pytest.fixture
def make_tone(temp_output_dir: Path):
    """Generate a short sine tone with the real ffmpeg binary."""
    def _make(name: str, seconds: float, frequency: int = 440) -> Path:
        output_path = temp_output_dir / f"{name}.mp3"
        subprocess.run(
            [
                FFMPEG_BIN, "-y",
                "-f", "lavfi",
                "-i", f"sine=frequency={frequency}:duration={seconds}",
                "-ac", "2",
                "-ar", "44100",
                "-c:a", "libmp3lame",
                str(output_path),
            ],
            capture_output=True,
            check=True,
        )
        return output_path
    return _make


@pytest.fixture
def make_video(temp_output_dir: Path):
    """Generate a short test-pattern video with hard cuts between colors."""
    def _make(name: str, colors: list[str], seconds_each: float = 3.0) -> Path:
        output_path = temp_output_dir / f"{name}.mp4"
        inputs: list[str] = []
        for color in colors:
            inputs.extend(["-f", "lavfi", "-i", f"color=c={color}:s=320x180:d={seconds_each}:r=25"])
        concat = "".join(f"[{i}:v]" for i in range(len(colors)))
        subprocess.run(
            [
                FFMPEG_BIN, "-y",
                *inputs,
                "-filter_complex", f"{concat}concat=n={len(colors)}:v=1:a=0[v]",
                "-map", "[v]",
                "-c:v", "libx264",
                "-pix_fmt", "yuv420p",
                str(output_path),
            ],
            capture_output=True,
            check=True,
        )
        return output_path
    return _make


def probe_duration_seconds(path: Path) -> float:
    """Container duration via ffprobe, for output-length assertions."""
    ffprobe = shutil.which("ffprobe") or os.path.join(os.path.dirname(FFMPEG_BIN or ""), "ffprobe")
    result = subprocess.run(
        [ffprobe, "-v", "error", "-show_entries", "format=duration", "-of", "csv=p=0", str(path)],
        capture_output=True,
        text=True,
        check=True,
    )
    return float(result.stdout.strip())


@pytest.fixture
def ffprobe_duration() -> Callable[[Path], float]:
    return probe_duration_seconds
