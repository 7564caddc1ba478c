"""Header resolution, record iteration and shard writing shared by both splitters."""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

from csv_splitter.errors import ParseError, ShardIOError
from csv_splitter.models import HeaderRow

# Shards are written with "\n" terminators and minimal quoting.
SHARD_DIALECT = {"lineterminator": "\n", "quoting": csv.QUOTE_MINIMAL}


def shard_path(output_dir: Path, stem: str, index: int, ext: str = ".csv") -> Path:
    """``<output_dir>/<stem>_<index><ext>`` with a 1-based *index*."""
    return output_dir / f"{stem}_{index}{ext}"


def synthesize_header(width: int) -> HeaderRow:
    """``column_1 .. column_<width>``."""
    return tuple(f"column_{i + 1}" for i in range(width))


def resolve_header(
    records: Iterator[List[str]],
    has_header: bool,
) -> Tuple[HeaderRow, Optional[List[str]]]:
    """Read the header from *records*.

    Returns ``(header, first_data_row)``.  With *has_header* the first record
    is the header and ``first_data_row`` is ``None``; otherwise the header is
    synthesized from the width of the first record, which is handed back so
    the caller can emit it as data.
    """
    try:
        first = next(records, None)
    except (csv.Error, UnicodeDecodeError) as exc:
        raise ParseError(f"Failed to read CSV header: {exc}") from exc

    if first is None:
        raise ParseError("Failed to read CSV header: no records found")
    if not first:
        raise ParseError("CSV file has no valid columns")

    if has_header:
        return tuple(first), None
    return synthesize_header(len(first)), first


def iter_records(
    records: Iterable[List[str]],
    width: int,
    first_line: int = 1,
) -> Iterator[List[str]]:
    """Yield records, skipping blank lines and rejecting rows whose width differs from *width*.

    *first_line* is the 1-based source line of the first record, used in
    error messages only.
    """
    line = first_line
    iterator = iter(records)
    while True:
        try:
            row = next(iterator)
        except StopIteration:
            return
        except (csv.Error, UnicodeDecodeError) as exc:
            raise ParseError(f"Malformed record near line {line}: {exc}") from exc

        if not row:
            line += 1
            continue
        if len(row) != width:
            raise ParseError(
                f"Record at line {line} has {len(row)} fields, expected {width}"
            )
        yield row
        line += 1


class ShardWriter:
    """Write one shard: the header first, then data rows.

    Use as a context manager; every OS-level failure surfaces as
    :class:`ShardIOError`.
    """

    def __init__(
        self,
        path: Path,
        header: Sequence[str],
        encoding: str = "utf-8",
        buffer_size: int = -1,
    ):
        self.path = Path(path)
        self.header = header
        self.encoding = encoding
        self.buffer_size = buffer_size
        self.rows = 0
        self._handle = None
        self._writer = None

    def open(self) -> "ShardWriter":
        try:
            self._handle = open(
                self.path, "w", newline="", encoding=self.encoding,
                buffering=self.buffer_size,
            )
        except OSError as exc:
            raise ShardIOError(f"Cannot create output file {self.path}: {exc}") from exc
        self._writer = csv.writer(self._handle, **SHARD_DIALECT)
        self._write(self.header, "header row")
        return self

    def write(self, row: Sequence[str]) -> None:
        self._write(row, "data row")
        self.rows += 1

    def _write(self, row: Sequence[str], what: str) -> None:
        try:
            self._writer.writerow(row)
        except (OSError, csv.Error) as exc:
            raise ShardIOError(f"Failed to write {what} to {self.path}: {exc}") from exc

    def close(self) -> None:
        if self._handle is None:
            return
        handle, self._handle = self._handle, None
        try:
            handle.flush()
        except OSError as exc:
            raise ShardIOError(f"Failed to flush {self.path}: {exc}") from exc
        finally:
            handle.close()

    def __enter__(self) -> "ShardWriter":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
