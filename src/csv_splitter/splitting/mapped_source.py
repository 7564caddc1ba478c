"""Read-only memory mapping of the source CSV."""

from __future__ import annotations

import mmap
from pathlib import Path
from typing import Iterator

from csv_splitter.errors import ShardIOError


class MappedSource:
    """Context manager around an ``ACCESS_READ`` mapping of *path*.

    Each worker opens its own instance; writes through :attr:`view` raise
    ``TypeError``.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._file = None
        self.view: mmap.mmap = None

    def __enter__(self) -> "MappedSource":
        try:
            self._file = open(self.path, "rb")
            self.view = mmap.mmap(self._file.fileno(), 0, access=mmap.ACCESS_READ)
        except (OSError, ValueError) as exc:
            if self._file is not None:
                self._file.close()
                self._file = None
            raise ShardIOError(f"Cannot map {self.path}: {exc}") from exc
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self.view is not None:
            self.view.close()
            self.view = None
        if self._file is not None:
            self._file.close()
            self._file = None

    def __len__(self) -> int:
        return len(self.view)

    def read(self, start: int, end: int) -> bytes:
        """Copy of bytes ``[start, end)``."""
        return self.view[start:end]

    def iter_lines(self, start: int, end: int) -> Iterator[bytes]:
        """Yield the lines of ``[start, end)`` one at a time, terminators included.

        *start* must be a line start and *end* a line start or ``len(self)``.
        Only one line is copied out of the mapping at a time.
        """
        self.view.seek(start)
        while self.view.tell() < end:
            line = self.view.readline()
            if not line:
                return
            yield line
