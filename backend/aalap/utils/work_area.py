"""Per-invocation working directories.

Each probe, thumbnail batch, mix or export gets its own directory named after
a fresh random session id, so concurrent invocations never share files.
"""

import logging
import re
import shutil
import uuid
from pathlib import Path

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


def new_session_id() -> str:
    return uuid.uuid4().hex


def sanitize_filename(filename: str) -> str:
    """Replace anything but letters, digits, dots and dashes with underscores."""
    return _UNSAFE_CHARS.sub("_", filename)


class WorkArea:
    """A working directory exclusively owned by one invocation.

    Usable as a context manager; the directory is removed on exit and removal
    failures are logged, never raised.
    """

    def __init__(self, root: str | Path, kind: str, session_id: str | None = None):
        self.session_id = session_id or new_session_id()
        self.path = Path(root) / f"{kind}-{self.session_id}"

    def __enter__(self) -> "WorkArea":
        self.path.mkdir(parents=True, exist_ok=False)
        logger.debug(f"Created work area {self.path}")
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()

    def file(self, filename: str) -> Path:
        """Path for a file inside the work area (filename is sanitized)."""
        return self.path / sanitize_filename(filename)

    def subdir(self, name: str) -> Path:
        subdir = self.path / sanitize_filename(name)
        subdir.mkdir(parents=True, exist_ok=True)
        return subdir

    def contains(self, file_path: str | Path) -> bool:
        """True if file_path resolves inside the work area."""
        try:
            Path(file_path).resolve().relative_to(self.path.resolve())
        except ValueError:
            return False
        return True

    def cleanup(self) -> None:
        if not self.path.exists():
            return
        try:
            shutil.rmtree(self.path)
            logger.debug(f"Removed work area {self.path}")
        except OSError as e:
            logger.warning(f"Failed to remove work area {self.path}: {e}")
