"""Writing rendered files to disk.

Each file is written atomically: the content goes to a temporary file in
the destination directory, which is then renamed over the final path.
Writes run concurrently on worker threads, bounded by a semaphore.
"""

from __future__ import annotations

import asyncio
import logging
import os
import posixpath
import stat
import tempfile
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from stencil.errors import FilesystemError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderedFile:
    """A fully rendered file waiting to be written."""

    path: str  # relative to the destination root, '/'-separated
    content: str
    executable: bool = False
    source: str = ""


def check_relative(relative: str) -> None:
    """Reject a destination that climbs out of the output directory.

    Purely lexical; :meth:`Materializer.target` repeats the check against the
    real filesystem when the file is written.

    Raises:
        FilesystemError: Naming the offending path.
    """
    normalized = posixpath.normpath(relative.replace("\\", "/"))
    if normalized in ("", "."):
        raise FilesystemError(relative, "destination is the output directory itself")
    if posixpath.isabs(normalized) or normalized == ".." or normalized.startswith("../"):
        raise FilesystemError(relative, "destination escapes the output directory")


def _make_executable(path: Path) -> None:
    """Add the executable bit for user, group and others."""
    current = path.stat().st_mode
    path.chmod(current | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


class Materializer:
    """Writes rendered files under one destination root.

    Args:
        root: Destination directory.
        max_workers: Maximum number of concurrent writes.
        overwrite: Allow writing into a non-empty destination.
    """

    def __init__(self, root: str | Path, *, max_workers: int = 8, overwrite: bool = False) -> None:
        self.root = Path(root).resolve()
        self.max_workers = max(1, max_workers)
        self.overwrite = overwrite

    def check_destination(self) -> None:
        """Fail unless the root is absent, an empty directory, or overwrite is on.

        Raises:
            FilesystemError: If the root is a file, or a non-empty directory
                while overwrite is off.
        """
        if not self.root.exists():
            return
        if not self.root.is_dir():
            raise FilesystemError(self.root, "destination exists and is not a directory")
        if not self.overwrite and any(self.root.iterdir()):
            raise FilesystemError(
                self.root, "destination is not empty (use --force to write into it)"
            )

    def target(self, relative: str) -> Path:
        """Absolute path for *relative*, which must stay inside the root.

        Raises:
            FilesystemError: If the path escapes the root.
        """
        path = (self.root / relative).resolve()
        if path != self.root and self.root not in path.parents:
            raise FilesystemError(relative, "destination escapes the output directory")
        if path == self.root:
            raise FilesystemError(relative, "destination is the output directory itself")
        return path

    def write_file(self, relative: str, content: str, executable: bool = False) -> Path:
        """Atomically write one file.

        Raises:
            FilesystemError: On any OS error, naming the path.
        """
        path = self.target(relative)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
                    fh.write(content)
                os.chmod(tmp_name, 0o644)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
            if executable:
                _make_executable(path)
        except OSError as exc:
            raise FilesystemError(path, exc.strerror or str(exc)) from exc
        logger.debug("Wrote %s", path)
        return path

    async def write_all(self, files: Iterable[RenderedFile]) -> list[Path]:
        """Write *files* concurrently and return their paths in input order.

        Every write is attempted.  If any fail, the first error is raised
        once all of them have finished.
        """
        self.check_destination()
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise FilesystemError(self.root, exc.strerror or str(exc)) from exc

        semaphore = asyncio.Semaphore(self.max_workers)

        async def _write(item: RenderedFile) -> Path:
            async with semaphore:
                return await asyncio.to_thread(
                    self.write_file, item.path, item.content, item.executable
                )

        results = await asyncio.gather(*(_write(f) for f in files), return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                raise result
        return list(results)  # type: ignore[arg-type]
