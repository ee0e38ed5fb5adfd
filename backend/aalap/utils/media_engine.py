"""FFmpeg subprocess runner.

All engine invocations go through ``MediaEngine`` so that the binary path and
timeout are explicit construction parameters instead of process-wide state.
Each call launches one subprocess and awaits it without blocking the event
loop.
"""

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from aalap.config import Settings, get_settings
from aalap.exceptions import EngineUnavailableError

logger = logging.getLogger(__name__)

# Returning False from a line callback stops the subprocess.
LineCallback = Callable[[str], bool]

STREAM_LINE_LIMIT = 1024 * 1024


@dataclass
class EngineResult:
    """Outcome of a single engine invocation."""

    returncode: int | None
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False
    stopped_early: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        if self.timed_out or self.error:
            return False
        return self.stopped_early or self.returncode == 0

    def stderr_tail(self, lines: int = 20) -> str:
        return "\n".join(self.stderr.strip().splitlines()[-lines:])


class MediaEngine:
    """Launches ffmpeg with an explicit binary path and timeout."""

    def __init__(self, ffmpeg_path: str = "ffmpeg", timeout_s: float | None = None):
        self.ffmpeg_path = ffmpeg_path
        self.timeout_s = timeout_s or None

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "MediaEngine":
        settings = settings or get_settings()
        return cls(ffmpeg_path=settings.ffmpeg_path, timeout_s=settings.engine_timeout_s)

    async def _spawn(self, args: Sequence[str], stdout: int) -> asyncio.subprocess.Process:
        try:
            return await asyncio.create_subprocess_exec(
                self.ffmpeg_path,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=stdout,
                stderr=asyncio.subprocess.PIPE,
                limit=STREAM_LINE_LIMIT,
            )
        except OSError as e:
            raise EngineUnavailableError(f"Failed to launch {self.ffmpeg_path}: {e}") from e

    @staticmethod
    async def _kill(process: asyncio.subprocess.Process) -> None:
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
        await process.wait()

    async def run(self, args: Sequence[str]) -> EngineResult:
        """Run the engine to completion and collect its output.

        Raises:
            EngineUnavailableError: If the binary cannot be launched
        """
        logger.debug(f"[ENGINE] {self.ffmpeg_path} {' '.join(args)}")
        process = await self._spawn(args, stdout=asyncio.subprocess.PIPE)
        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout_s)
        except asyncio.TimeoutError:
            logger.warning(f"[ENGINE] Timed out after {self.timeout_s}s, killing pid {process.pid}")
            await self._kill(process)
            return EngineResult(returncode=process.returncode, timed_out=True)

        return EngineResult(
            returncode=process.returncode,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )

    async def stream_stderr(self, args: Sequence[str], on_line: LineCallback) -> EngineResult:
        """Run the engine, feeding each diagnostic line to ``on_line``.

        The subprocess is killed as soon as ``on_line`` returns False; the
        result is then marked ``stopped_early`` and counts as a success. A
        diagnostic line longer than ``STREAM_LINE_LIMIT`` ends the run as a
        failure. The subprocess is always reaped before this returns.

        Raises:
            EngineUnavailableError: If the binary cannot be launched
        """
        logger.debug(f"[ENGINE] {self.ffmpeg_path} {' '.join(args)}")
        process = await self._spawn(args, stdout=asyncio.subprocess.DEVNULL)
        tail: list[str] = []
        stopped_early = False
        timed_out = False
        error: str | None = None

        async def _consume() -> None:
            nonlocal stopped_early
            assert process.stderr is not None
            async for raw in process.stderr:
                line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
                tail.append(line)
                del tail[:-50]
                if not on_line(line):
                    stopped_early = True
                    return

        drained = False
        try:
            await asyncio.wait_for(_consume(), timeout=self.timeout_s)
            drained = not stopped_early
        except asyncio.TimeoutError:
            timed_out = True
            logger.warning(f"[ENGINE] Timed out after {self.timeout_s}s, killing pid {process.pid}")
        except ValueError as e:
            # StreamReader raises ValueError once a line overruns the buffer limit
            error = f"Diagnostic line exceeds {STREAM_LINE_LIMIT} bytes: {e}"
            logger.warning(f"[ENGINE] {error}, killing pid {process.pid}")
        finally:
            if drained:
                await process.wait()
            else:
                await self._kill(process)

        return EngineResult(
            returncode=process.returncode,
            stderr="\n".join(tail),
            timed_out=timed_out,
            stopped_early=stopped_early,
            error=error,
        )
