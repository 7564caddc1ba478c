"""Request checks that run before any shard is written."""

from __future__ import annotations

import tempfile
from pathlib import Path

from loguru import logger

from csv_splitter.errors import ValidationError
from csv_splitter.models import SplitRequest

# Worksheet limit is 1,048,576 rows including the header row.
MAX_SHEET_DATA_ROWS = 1_048_575


def validate_request(request: SplitRequest) -> int:
    """Validate *request* against the filesystem.

    Returns the input file size in bytes.
    """
    if isinstance(request.rows_per_file, bool) or not isinstance(request.rows_per_file, int) \
            or request.rows_per_file <= 0:
        raise ValidationError(
            f"Rows per file must be greater than 0 (got {request.rows_per_file!r})"
        )

    source = request.source
    if not source.exists():
        raise ValidationError(f"Input file does not exist: {request.input_path}")
    if not source.is_file():
        raise ValidationError(f"Input path is not a file: {request.input_path}")
    if source.suffix.lower() != ".csv":
        raise ValidationError(f"Input must be a .csv file: {request.input_path}")

    size = source.stat().st_size
    if size == 0:
        raise ValidationError(f"CSV file is empty: {request.input_path}")

    if request.convert_to_excel and request.rows_per_file > MAX_SHEET_DATA_ROWS:
        raise ValidationError(
            f"Rows per file ({request.rows_per_file:,}) exceeds the worksheet limit "
            f"of {MAX_SHEET_DATA_ROWS:,} data rows"
        )
    return size


def prepare_output_dir(path: Path) -> Path:
    """Create *path* if needed and probe that it accepts new files."""
    path = Path(path)
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ValidationError(f"Cannot create output directory {path}: {exc}") from exc
    if not path.is_dir():
        raise ValidationError(f"Output path is not a directory: {path}")

    try:
        with tempfile.NamedTemporaryFile(dir=path, prefix=".write_probe_", suffix=".tmp"):
            pass
    except OSError as exc:
        raise ValidationError(f"Output directory is not writable: {path} ({exc})") from exc

    logger.debug(f"Output directory ready: {path}")
    return path
