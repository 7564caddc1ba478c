"""Convert finished CSV shards to XLSX workbooks, one at a time.

The workbook is written with openpyxl's write-only mode so memory stays
flat regardless of shard size:

* header cells are bold and centered;
* a cell whose text is a finite decimal number is written as a number,
  anything else as text truncated to ``max_cell_chars``;
* only the first ``max_columns`` columns are kept;
* the shard CSV is deleted once its workbook is saved.
"""

from __future__ import annotations

import csv
import math
import os
import re
import time
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional, Sequence, Union

from loguru import logger
from openpyxl import Workbook
from openpyxl.cell import WriteOnlyCell
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Alignment, Font
from openpyxl.utils import get_column_letter

from csv_splitter.config import ExcelConfig
from csv_splitter.errors import ConversionError, ParseError, ShardIOError
from csv_splitter.models import ConversionResult

if TYPE_CHECKING:
    from csv_splitter.tracking import ShardTracker

_NUMBER_RE = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?", re.ASCII)

_HEADER_FONT = Font(bold=True)
_HEADER_ALIGNMENT = Alignment(horizontal="center")


def parse_number(text: str) -> Optional[float]:
    """Float value of *text* if it is a plain finite decimal literal.

    Leading zeros are accepted (``"007"`` -> ``7.0``); whitespace, digit
    separators, ``nan`` and ``inf`` are not.
    """
    if not _NUMBER_RE.fullmatch(text):
        return None
    value = float(text)
    if not math.isfinite(value):
        return None
    return value


def cell_value(field: str, max_chars: int) -> Union[float, str, None]:
    """Worksheet value for one CSV field."""
    if field == "":
        return None
    truncated = field[:max_chars]
    number = parse_number(truncated)
    if number is not None:
        return number
    return ILLEGAL_CHARACTERS_RE.sub("", truncated)


def _header_cells(ws, header: Sequence[str], cfg: ExcelConfig) -> List[WriteOnlyCell]:
    cells = []
    for name in header[:cfg.max_columns]:
        cell = WriteOnlyCell(ws, value=ILLEGAL_CHARACTERS_RE.sub("", name[:cfg.max_cell_chars]))
        cell.font = _HEADER_FONT
        cell.alignment = _HEADER_ALIGNMENT
        cells.append(cell)
    return cells


def convert_shard(
    csv_path: Union[str, Path],
    xlsx_path: Union[str, Path],
    cfg: Optional[ExcelConfig] = None,
    encoding: str = "utf-8",
) -> ConversionResult:
    """Write *csv_path* as a formatted workbook at *xlsx_path*, then delete the CSV.

    Raises :class:`ConversionError` if the workbook cannot be produced; the
    CSV is left in place in that case.
    """
    cfg = cfg or ExcelConfig()
    csv_path = Path(csv_path)
    xlsx_path = Path(xlsx_path)

    wb = Workbook(write_only=True)
    ws = wb.create_sheet(title=cfg.sheet_title)
    rows = 0

    try:
        source = open(csv_path, newline="", encoding=encoding, buffering=cfg.read_buffer_bytes)
    except OSError as exc:
        raise ShardIOError(f"Cannot open shard {csv_path}: {exc}") from exc

    with source:
        reader = csv.reader(source)
        try:
            header = next(reader, None)
            if header is None:
                raise ParseError(f"Shard {csv_path} has no header row")

            width = min(len(header), cfg.max_columns)
            # Write-only sheets need column dimensions before the first row.
            for col in range(1, width + 1):
                ws.column_dimensions[get_column_letter(col)].width = cfg.column_width
            ws.append(_header_cells(ws, header, cfg))

            sheet_row = 1
            for record in reader:
                sheet_row += 1
                if cfg.row_height_interval and sheet_row % cfg.row_height_interval == 0:
                    ws.row_dimensions[sheet_row].height = cfg.row_height
                ws.append([cell_value(f, cfg.max_cell_chars) for f in record[:cfg.max_columns]])
                rows += 1
        except (csv.Error, UnicodeDecodeError) as exc:
            raise ParseError(f"Malformed record in shard {csv_path}: {exc}") from exc
        except (ValueError, TypeError) as exc:
            raise ConversionError(f"Failed to write cell in {xlsx_path.name}: {exc}") from exc

    try:
        wb.save(xlsx_path)
    except (OSError, ValueError) as exc:
        raise ConversionError(f"Failed to save workbook {xlsx_path}: {exc}") from exc

    try:
        os.remove(csv_path)
    except OSError as exc:
        raise ShardIOError(f"Converted {csv_path.name} but could not delete it: {exc}") from exc

    return ConversionResult(
        shard_path=str(csv_path),
        xlsx_path=str(xlsx_path),
        success=True,
        rows=rows,
    )


def convert_shards(
    csv_paths: Sequence[Union[str, Path]],
    cfg: Optional[ExcelConfig] = None,
    tracker: Optional[ShardTracker] = None,
    encoding: str = "utf-8",
) -> List[ConversionResult]:
    """Convert every shard in order, serially.

    Stops at the first failure; shards converted before it stay converted.
    """
    results: List[ConversionResult] = []
    for csv_path in csv_paths:
        csv_path = Path(csv_path)
        xlsx_path = csv_path.with_suffix(".xlsx")
        t0 = time.perf_counter()
        try:
            result = convert_shard(csv_path, xlsx_path, cfg, encoding=encoding)
        except (ConversionError, ParseError, ShardIOError) as exc:
            failed = ConversionResult(shard_path=str(csv_path), success=False, error=str(exc))
            if tracker is not None:
                tracker.record_conversion(failed)
            logger.error(f"Conversion of {csv_path.name} failed: {exc}")
            raise
        results.append(result)
        if tracker is not None:
            tracker.record_conversion(result)
        logger.debug(
            f"Converted {csv_path.name} -> {xlsx_path.name} "
            f"({result.rows:,} rows, {time.perf_counter() - t0:.1f}s)"
        )

    logger.info(f"Converted {len(results)} shards to XLSX")
    return results
