"""YAML config loading with dataclass defaults."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml
from loguru import logger

DEFAULT_CONFIG_NAME = "csv_splitter.yaml"

STRATEGY_CHOICES = ("sequential", "parallel")


@dataclass
class StrategyConfig:
    large_file_bytes: int = 100 * 1024 * 1024
    row_threshold: int = 500_000
    scan_buffer_bytes: int = 8192
    force: Optional[str] = None  # "sequential" | "parallel" | None (auto)


@dataclass
class ParallelConfig:
    max_workers: int = 2
    scale_with_size: bool = True  # 1/2/3 workers by file size, capped by max_workers
    balanced_chunks: bool = False
    write_buffer_bytes: int = 256 * 1024


@dataclass
class ExcelConfig:
    max_columns: int = 100
    max_cell_chars: int = 500
    read_buffer_bytes: int = 4 * 1024
    row_height_interval: int = 5000
    row_height: float = 15
    column_width: float = 12
    sheet_title: str = "Sheet1"


@dataclass
class SplitterConfig:
    source_encoding: str = "utf-8-sig"
    shard_encoding: str = "utf-8"
    strategy: StrategyConfig = field(default_factory=StrategyConfig)
    parallel: ParallelConfig = field(default_factory=ParallelConfig)
    excel: ExcelConfig = field(default_factory=ExcelConfig)


def _apply(section, raw: dict, keys) -> None:
    for key in keys:
        if raw.get(key) is not None:
            setattr(section, key, raw[key])


def load_config(path: Optional[str] = None) -> SplitterConfig:
    """Load config from YAML, falling back to defaults for missing keys."""
    if path is None:
        default = Path(DEFAULT_CONFIG_NAME)
        if not default.exists():
            logger.warning(f"No {DEFAULT_CONFIG_NAME} found; using built-in defaults")
            return SplitterConfig()
        path = str(default)

    logger.info(f"Using config: {path}")
    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    cfg = SplitterConfig()

    io_section = raw.get("io", {})
    _apply(cfg, io_section, ("source_encoding", "shard_encoding"))

    _apply(cfg.strategy, raw.get("strategy", {}),
           ("large_file_bytes", "row_threshold", "scan_buffer_bytes", "force"))
    if cfg.strategy.force is not None and cfg.strategy.force not in STRATEGY_CHOICES:
        raise ValueError(
            f"strategy.force must be one of {STRATEGY_CHOICES}, got {cfg.strategy.force!r}"
        )

    _apply(cfg.parallel, raw.get("parallel", {}),
           ("max_workers", "scale_with_size", "balanced_chunks", "write_buffer_bytes"))
    if cfg.parallel.max_workers < 1:
        raise ValueError("parallel.max_workers must be at least 1")

    _apply(cfg.excel, raw.get("excel", {}),
           ("max_columns", "max_cell_chars", "read_buffer_bytes",
            "row_height_interval", "row_height", "column_width", "sheet_title"))

    return cfg
