"""Per-shard outcome record."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional


@dataclass
class ShardResult:
    """One shard written (or not) by a splitter."""

    shard_index: int
    strategy: str  # 'sequential' or 'parallel'
    status: str  # 'success', 'failed', 'converted', 'conversion_failed'
    csv_path: Optional[str] = None
    rows: int = 0
    duration_sec: Optional[float] = None
    error_message: Optional[str] = None
    error_traceback: Optional[str] = None
    xlsx_path: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status in ("success", "converted")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
