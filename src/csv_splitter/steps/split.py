"""Split step: the single entry point behind the command layer."""

from __future__ import annotations

import time
from typing import Optional

from loguru import logger

from csv_splitter.config import SplitterConfig
from csv_splitter.convert.excel import convert_shards
from csv_splitter.errors import SplitError
from csv_splitter.models import SplitRequest, SplitResult
from csv_splitter.splitting.parallel import split_parallel
from csv_splitter.splitting.sequential import split_sequential
from csv_splitter.splitting.strategy import Strategy, select_strategy
from csv_splitter.splitting.validation import prepare_output_dir, validate_request
from csv_splitter.tracking import ShardTracker


def execute_split(
    request: SplitRequest,
    cfg: SplitterConfig,
    tracker: ShardTracker,
) -> int:
    """Validate, split and optionally convert.  Raises :class:`SplitError`.

    Returns the number of shards produced.
    """
    size = validate_request(request)
    prepare_output_dir(request.destination)

    strategy = select_strategy(request.source, cfg.strategy, file_size=size)
    logger.info(
        f"Splitting {request.source.name} ({size:,} bytes) into files of "
        f"{request.rows_per_file:,} rows [{strategy.value}]"
    )

    if strategy is Strategy.PARALLEL:
        shards = split_parallel(request, cfg, tracker)
    else:
        shards = split_sequential(request, cfg, tracker)

    if request.convert_to_excel:
        convert_shards(shards, cfg.excel, tracker=tracker, encoding=cfg.shard_encoding)

    return len(shards)


def run_split(
    request: SplitRequest,
    cfg: Optional[SplitterConfig] = None,
    tracker: Optional[ShardTracker] = None,
) -> SplitResult:
    """Run one split and report it as a :class:`SplitResult`.

    Never raises: every failure becomes ``success=False`` with a message.
    Shards written before a failure are left on disk.  *tracker* must be
    fresh; its records become the shard count.
    """
    cfg = cfg or SplitterConfig()
    tracker = tracker or ShardTracker()
    t0 = time.perf_counter()

    try:
        count = execute_split(request, cfg, tracker)
    except SplitError as exc:
        logger.error(f"Split failed ({exc.kind}): {exc}")
        return SplitResult.failed(str(exc), kind=exc.kind)
    except OSError as exc:
        logger.error(f"Split failed (io): {exc}")
        return SplitResult.failed(f"File operation failed: {exc}", kind="io")
    except Exception as exc:
        logger.exception(f"Unexpected error while splitting {request.input_path}")
        return SplitResult.failed(f"Unexpected error: {exc}", kind="internal")

    result = tracker.to_split_result()
    logger.info(
        f"Done: {count} files from {request.source.name} "
        f"in {time.perf_counter() - t0:.1f}s"
    )
    return result
