"""Choose between the sequential and parallel splitters."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional

from loguru import logger

from csv_splitter.config import StrategyConfig


class Strategy(str, Enum):
    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"


def estimate_line_count(path: Path, cap: int, buffer_size: int = 8192) -> int:
    """Count ``\\n`` bytes in *path*, stopping once the count exceeds *cap*.

    Large files are never read past the first ``cap`` terminators.
    """
    count = 0
    with open(path, "rb") as f:
        while True:
            block = f.read(buffer_size)
            if not block:
                break
            count += block.count(b"\n")
            if count > cap:
                break
    return count


def select_strategy(
    path: Path,
    cfg: StrategyConfig,
    file_size: Optional[int] = None,
) -> Strategy:
    """Parallel for files over ``large_file_bytes`` or with more than
    ``row_threshold`` lines, sequential otherwise."""
    if cfg.force:
        strategy = Strategy(cfg.force)
        logger.debug(f"Strategy forced to {strategy.value}")
        return strategy

    size = Path(path).stat().st_size if file_size is None else file_size
    if size > cfg.large_file_bytes:
        logger.info(f"File is {size / 1024 / 1024:.1f} MB; using parallel strategy")
        return Strategy.PARALLEL

    lines = estimate_line_count(path, cfg.row_threshold, cfg.scan_buffer_bytes)
    if lines > cfg.row_threshold:
        logger.info(f"More than {cfg.row_threshold:,} lines; using parallel strategy")
        return Strategy.PARALLEL

    logger.debug(f"{lines:,} lines, {size:,} bytes; using sequential strategy")
    return Strategy.SEQUENTIAL
