"""Single-threaded streaming splitter."""

from __future__ import annotations

import csv
import itertools
import time
from pathlib import Path
from typing import List, Optional

from loguru import logger

from csv_splitter.config import SplitterConfig
from csv_splitter.errors import ShardIOError, SplitError, ValidationError
from csv_splitter.models import SplitRequest
from csv_splitter.records.csv_io import ShardWriter, iter_records, resolve_header, shard_path
from csv_splitter.tracking import ShardResult, ShardTracker


def split_sequential(
    request: SplitRequest,
    cfg: SplitterConfig,
    tracker: Optional[ShardTracker] = None,
) -> List[Path]:
    """Stream *request*'s source into ``rows_per_file``-row shards.

    Holds one record and one open shard at a time.  Returns the shard paths
    in index order.
    """
    tracker = tracker or ShardTracker()
    output_dir = request.destination
    shards: List[Path] = []

    try:
        source = open(request.source, newline="", encoding=cfg.source_encoding)
    except OSError as exc:
        raise ShardIOError(f"Cannot open CSV file {request.source}: {exc}") from exc

    with source:
        reader = csv.reader(source)
        header, first_row = resolve_header(reader, request.has_header)
        logger.debug(f"Header has {len(header)} columns")

        rows = reader if first_row is None else itertools.chain([first_row], reader)
        first_line = 2 if request.has_header else 1

        writer: Optional[ShardWriter] = None
        started = 0.0
        counter = 0

        def close_current() -> None:
            writer.close()
            tracker.add_result(ShardResult(
                shard_index=len(shards),
                strategy="sequential",
                status="success",
                csv_path=str(writer.path),
                rows=writer.rows,
                duration_sec=time.perf_counter() - started,
            ))
            logger.debug(f"Wrote {writer.path.name} ({writer.rows:,} rows)")

        try:
            for row in iter_records(rows, len(header), first_line):
                if counter == 0:
                    if writer is not None:
                        close_current()
                    path = shard_path(output_dir, request.stem, len(shards) + 1)
                    writer = ShardWriter(path, header, encoding=cfg.shard_encoding).open()
                    shards.append(path)
                    started = time.perf_counter()

                writer.write(row)
                counter += 1
                if counter >= request.rows_per_file:
                    counter = 0
        except SplitError:
            if writer is not None:
                writer.close()
            raise

        if writer is None:
            raise ValidationError(f"CSV file has no data rows: {request.input_path}")
        close_current()

    logger.info(f"Sequential split wrote {len(shards)} shards to {output_dir}")
    return shards
