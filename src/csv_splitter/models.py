"""Request/response dataclasses exchanged at the split boundary."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

HeaderRow = Tuple[str, ...]


@dataclass(frozen=True)
class SplitRequest:
    """One split invocation.

    Mirrors the boundary request ``{input_path, output_dir, rows_per_file,
    has_header, convert_to_excel}``.
    """

    input_path: str
    output_dir: str
    rows_per_file: int
    has_header: bool = True
    convert_to_excel: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SplitRequest":
        return cls(
            input_path=str(data["input_path"]),
            output_dir=str(data["output_dir"]),
            rows_per_file=int(data["rows_per_file"]),
            has_header=bool(data.get("has_header", True)),
            convert_to_excel=bool(data.get("convert_to_excel", False)),
        )

    @property
    def source(self) -> Path:
        return Path(self.input_path)

    @property
    def destination(self) -> Path:
        return Path(self.output_dir)

    @property
    def stem(self) -> str:
        return self.source.stem or "output"


@dataclass(frozen=True)
class Chunk:
    """Line-aligned byte range ``[start, end)`` assigned to one worker."""

    chunk_id: int  # 1-based, equals the shard index
    start: int
    end: int
    row_count: int
    first_line: int = 1  # 1-based source line the range starts on

    @property
    def size(self) -> int:
        return self.end - self.start


@dataclass
class ConversionResult:
    """Outcome of converting one shard CSV to XLSX."""

    shard_path: str
    xlsx_path: Optional[str] = None
    success: bool = False
    error: Optional[str] = None
    rows: int = 0


@dataclass
class SplitResult:
    """Boundary response.

    ``error_kind`` is kept for exit-code mapping and is not part of
    :meth:`to_dict`.
    """

    success: bool
    file_count: int = 0
    error: Optional[str] = None
    error_kind: Optional[str] = None

    @classmethod
    def ok(cls, file_count: int) -> "SplitResult":
        return cls(success=True, file_count=file_count)

    @classmethod
    def failed(cls, error: str, kind: str = "error") -> "SplitResult":
        return cls(success=False, file_count=0, error=error, error_kind=kind)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.pop("error_kind")
        return data
