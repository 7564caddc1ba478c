"""Memory-mapped splitter that writes line-aligned chunks on a bounded pool."""

from __future__ import annotations

import codecs
import csv
import io
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional

from loguru import logger

from csv_splitter.config import ParallelConfig, SplitterConfig
from csv_splitter.errors import ConcurrencyError, ParseError, ValidationError
from csv_splitter.execution.worker_pool import iter_bounded
from csv_splitter.models import Chunk, HeaderRow, SplitRequest
from csv_splitter.records.csv_io import ShardWriter, iter_records, resolve_header, shard_path
from csv_splitter.splitting.line_index import (
    LineIndex,
    build_line_index,
    chunk_stride,
    plan_chunks,
    record_lines,
)
from csv_splitter.splitting.mapped_source import MappedSource
from csv_splitter.tracking import ShardResult, ShardTracker

_MB = 1024 * 1024

# (upper file size bound, workers); larger files get 3.
_SIZE_TIERS = ((100 * _MB, 1), (500 * _MB, 2))


def worker_count(file_size: int, cfg: ParallelConfig) -> int:
    """Workers allowed to run at once for a source of *file_size* bytes."""
    if not cfg.scale_with_size:
        return cfg.max_workers
    for bound, workers in _SIZE_TIERS:
        if file_size <= bound:
            return min(workers, cfg.max_workers)
    return min(3, cfg.max_workers)


def _decode(data: bytes, encoding: str, what: str) -> str:
    try:
        return data.decode(encoding)
    except UnicodeDecodeError as exc:
        raise ParseError(f"Cannot decode {what} as {encoding}: {exc}") from exc


def _decode_lines(lines: Iterable[bytes], encoding: str, what: str) -> Iterator[str]:
    decoder = codecs.getincrementaldecoder(encoding)()
    try:
        for line in lines:
            yield decoder.decode(line)
        tail = decoder.decode(b"", final=True)
    except UnicodeDecodeError as exc:
        raise ParseError(f"Cannot decode {what} as {encoding}: {exc}") from exc
    if tail:
        yield tail


def read_header(
    source: MappedSource,
    index: LineIndex,
    has_header: bool,
    encoding: str,
) -> HeaderRow:
    """Parse line 0 of the mapped source into the shared header."""
    first_line = _decode(source.read(0, index.line_start(1)), encoding, "header line")
    header, _ = resolve_header(csv.reader(io.StringIO(first_line, newline="")), has_header)
    return header


def write_chunk(
    request: SplitRequest,
    chunk: Chunk,
    header: HeaderRow,
    cfg: SplitterConfig,
) -> int:
    """Worker body: copy *chunk*'s records into shard ``chunk.chunk_id``.

    Opens a private read-only mapping of the source and streams the range
    line by line.  Returns rows written.
    """
    path = shard_path(request.destination, request.stem, chunk.chunk_id)
    what = f"chunk {chunk.chunk_id}"

    with MappedSource(request.source) as source, \
            ShardWriter(path, header, encoding=cfg.shard_encoding,
                        buffer_size=cfg.parallel.write_buffer_bytes) as writer:
        lines = _decode_lines(source.iter_lines(chunk.start, chunk.end), cfg.source_encoding, what)
        for row in iter_records(csv.reader(lines), len(header), chunk.first_line):
            if writer.rows == chunk.row_count:
                raise ParseError(
                    f"Chunk {chunk.chunk_id} holds more than {chunk.row_count} records"
                )
            writer.write(row)

        if writer.rows != chunk.row_count:
            raise ParseError(
                f"Chunk {chunk.chunk_id} held {writer.rows} records, expected "
                f"{chunk.row_count} (multi-line records are not supported in parallel mode)"
            )

    logger.debug(f"Chunk {chunk.chunk_id}: {chunk.size:,} bytes from line {chunk.first_line}")
    return writer.rows


def split_parallel(
    request: SplitRequest,
    cfg: SplitterConfig,
    tracker: Optional[ShardTracker] = None,
) -> List[Path]:
    """Split *request*'s source into line-aligned chunks written concurrently.

    Chunk *i* always becomes shard *i*.  Every outcome is drained and every
    worker joined before this returns or raises.
    """
    tracker = tracker or ShardTracker()

    with MappedSource(request.source) as source:
        index = build_line_index(source.view)
        file_size = len(source)
        header = read_header(source, index, request.has_header, cfg.source_encoding)
        first_data_line = 1 if request.has_header else 0
        records = record_lines(index, source.view, first_data_line)
        data_rows = len(records)
        if data_rows <= 0:
            raise ValidationError(f"CSV file has no data rows: {request.input_path}")

    stride = chunk_stride(data_rows, request.rows_per_file, cfg.parallel.balanced_chunks)
    chunks = plan_chunks(index, first_data_line, records, stride)
    workers = worker_count(file_size, cfg.parallel)
    logger.info(
        f"Parallel split: {data_rows:,} data rows into {len(chunks)} shards "
        f"of up to {stride:,} rows ({workers} workers)"
    )

    tasks = [
        (chunk.chunk_id, lambda chunk=chunk: write_chunk(request, chunk, header, cfg))
        for chunk in chunks
    ]

    first_failure: Optional[ConcurrencyError] = None
    written: Dict[int, Path] = {}
    for outcome in iter_bounded(tasks, workers):
        path = shard_path(request.destination, request.stem, outcome.task_id)
        if outcome.ok:
            written[outcome.task_id] = path
            tracker.add_result(ShardResult(
                shard_index=outcome.task_id,
                strategy="parallel",
                status="success",
                csv_path=str(path),
                rows=outcome.value,
                duration_sec=outcome.duration_sec,
            ))
            logger.debug(f"Wrote {path.name} ({outcome.value:,} rows)")
            continue

        tracker.add_result(ShardResult(
            shard_index=outcome.task_id,
            strategy="parallel",
            status="failed",
            csv_path=str(path),
            duration_sec=outcome.duration_sec,
            error_message=str(outcome.error),
            error_traceback=outcome.error_traceback,
        ))
        logger.error(f"Shard {outcome.task_id} failed: {outcome.error}")
        if first_failure is None:
            first_failure = ConcurrencyError(outcome.task_id, str(outcome.error), outcome.error)

    if first_failure is not None:
        raise first_failure from first_failure.cause

    logger.info(f"Parallel split wrote {len(written)} shards to {request.destination}")
    return [written[i] for i in sorted(written)]
