"""Terminator offsets of a mapped source, and the chunk math built on them."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List

import numpy as np

from csv_splitter.models import Chunk

NEWLINE = 0x0A
CARRIAGE_RETURN = 0x0D
SCAN_BLOCK_BYTES = 64 * 1024 * 1024


@dataclass(frozen=True)
class LineIndex:
    """Offsets of every ``\\n`` byte in a source of ``size`` bytes.

    ``offsets`` is a read-only, strictly increasing ``int64`` array.
    """

    offsets: np.ndarray
    size: int

    @property
    def line_count(self) -> int:
        """Number of lines, counting an unterminated final line."""
        n = len(self.offsets)
        if self.size == 0:
            return 0
        if n == 0 or int(self.offsets[-1]) != self.size - 1:
            return n + 1
        return n

    def line_start(self, line: int) -> int:
        """Byte offset where 0-based *line* begins; ``size`` past the last line."""
        if line < 0 or line > self.line_count:
            raise IndexError(f"line {line} outside 0..{self.line_count}")
        if line == 0:
            return 0
        if line - 1 < len(self.offsets):
            return int(self.offsets[line - 1]) + 1
        return self.size


def build_line_index(buffer, block_size: int = SCAN_BLOCK_BYTES) -> LineIndex:
    """Index every line terminator in *buffer* (bytes, mmap or memoryview).

    The buffer is scanned in blocks so the temporary mask stays bounded.
    """
    size = len(buffer)
    parts = []
    for base in range(0, size, block_size):
        count = min(block_size, size - base)
        block = np.frombuffer(buffer, dtype=np.uint8, count=count, offset=base)
        parts.append(np.flatnonzero(block == NEWLINE).astype(np.int64) + base)
        del block

    offsets = np.concatenate(parts) if parts else np.empty(0, dtype=np.int64)
    offsets.setflags(write=False)
    return LineIndex(offsets=offsets, size=size)


def record_lines(index: LineIndex, buffer, first_line: int) -> np.ndarray:
    """0-based numbers of the lines from *first_line* on that hold a record.

    Empty lines and lines holding only ``\\r`` are blank and carry no record.
    """
    n = index.line_count
    if first_line >= n:
        return np.empty(0, dtype=np.int64)

    parts = [np.array([-1], dtype=np.int64), index.offsets]
    if n > len(index.offsets):
        parts.append(np.array([index.size], dtype=np.int64))
    bounds = np.concatenate(parts)  # bounds[i] ends line i - 1
    lengths = np.diff(bounds) - 1
    blank = lengths == 0

    single = np.flatnonzero(lengths == 1)
    if single.size:
        view = np.frombuffer(buffer, dtype=np.uint8)
        blank[single] = view[bounds[single] + 1] == CARRIAGE_RETURN
        del view

    return np.flatnonzero(~blank[first_line:]).astype(np.int64) + first_line


def chunk_stride(data_rows: int, rows_per_file: int, balanced: bool = False) -> int:
    """Rows per chunk.

    ``rows_per_file`` reproduces the sequential shard sizes; *balanced*
    spreads rows evenly over ``ceil(data_rows / rows_per_file)`` chunks.
    Never exceeds ``rows_per_file``.
    """
    if not balanced:
        return rows_per_file
    shard_count = math.ceil(data_rows / rows_per_file)
    return math.ceil(data_rows / shard_count)


def plan_chunks(
    index: LineIndex,
    first_line: int,
    records: np.ndarray,
    rows_per_chunk: int,
) -> List[Chunk]:
    """Partition the data region starting at line *first_line* into chunks.

    *records* holds the numbers of the record lines (see :func:`record_lines`).
    Chunk *k* takes records ``k * rows_per_chunk`` onwards; every boundary is a
    line start and the last chunk runs to the end of the source.  Blank lines
    ride along with the chunk before them.
    """
    if rows_per_chunk <= 0:
        raise ValueError("rows_per_chunk must be positive")
    data_rows = len(records)
    if data_rows and (int(records[0]) < first_line or int(records[-1]) >= index.line_count):
        raise ValueError(
            f"record lines {int(records[0])}..{int(records[-1])} fall outside "
            f"{first_line}..{index.line_count - 1}"
        )

    chunk_count = math.ceil(data_rows / rows_per_chunk)
    chunks: List[Chunk] = []
    for k in range(chunk_count):
        lo = k * rows_per_chunk
        rows = min(rows_per_chunk, data_rows - lo)
        start_line = first_line if k == 0 else int(records[lo])
        last = k == chunk_count - 1
        chunks.append(Chunk(
            chunk_id=k + 1,
            start=index.line_start(start_line),
            end=index.size if last else index.line_start(int(records[lo + rows])),
            row_count=rows,
            first_line=start_line + 1,
        ))
    return chunks
