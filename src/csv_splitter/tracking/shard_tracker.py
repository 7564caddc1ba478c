"""Collect shard outcomes and write run reports."""

from __future__ import annotations

import csv
import json
import os
import threading
from datetime import datetime
from typing import Dict, List, Optional

from loguru import logger

from csv_splitter.models import ConversionResult, SplitResult
from csv_splitter.tracking.shard_result import ShardResult


class ShardTracker:
    """Centralized shard tracking and reporting.

    ``add_result`` may be called from worker threads.
    """

    def __init__(self, run_id: Optional[str] = None):
        self.run_id = run_id
        self.results: List[ShardResult] = []
        self.start_time = datetime.now()
        self._lock = threading.Lock()

    def add_result(self, result: ShardResult) -> None:
        with self._lock:
            self.results.append(result)

    def record_conversion(self, conversion: ConversionResult) -> None:
        """Attach a conversion outcome to the shard whose CSV it consumed."""
        with self._lock:
            for r in self.results:
                if r.csv_path == conversion.shard_path:
                    r.status = "converted" if conversion.success else "conversion_failed"
                    r.xlsx_path = conversion.xlsx_path
                    if conversion.error:
                        r.error_message = conversion.error
                    return

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    def ordered(self) -> List[ShardResult]:
        return sorted(self.results, key=lambda r: r.shard_index)

    @property
    def failures(self) -> List[ShardResult]:
        return [r for r in self.ordered() if not r.ok]

    @property
    def total_rows(self) -> int:
        return sum(r.rows for r in self.results if r.ok)

    def to_split_result(self) -> SplitResult:
        """Build the boundary response from the recorded shards."""
        failed = self.failures
        if failed:
            first = failed[0]
            return SplitResult.failed(
                f"Processing shard {first.shard_index} failed: {first.error_message}",
                kind="concurrency" if first.strategy == "parallel" else "io",
            )
        return SplitResult.ok(len(self.results))

    # ------------------------------------------------------------------
    # Report generation
    # ------------------------------------------------------------------

    def save_reports(self, output_dir: str) -> None:
        """Save JSON, CSV and text reports into *output_dir*."""
        os.makedirs(output_dir, exist_ok=True)
        timestamp = self.start_time.strftime("%Y%m%d_%H%M%S")
        suffix = f"{timestamp}_{self.run_id}" if self.run_id else timestamp

        json_path = os.path.join(output_dir, f"split_report_{suffix}.json")
        with open(json_path, "w") as f:
            json.dump([r.to_dict() for r in self.ordered()], f, indent=2, default=str)

        self._save_csv_summary(os.path.join(output_dir, f"split_summary_{suffix}.csv"))
        self._save_text_report(os.path.join(output_dir, f"split_report_{suffix}.txt"))

        logger.info(f"Reports saved to {output_dir}/")

    def _save_csv_summary(self, path: str) -> None:
        fieldnames = [
            "shard_index", "strategy", "status", "rows", "duration_sec",
            "csv_path", "xlsx_path", "error_message",
        ]
        with open(path, "w", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=fieldnames)
            writer.writeheader()
            for r in self.ordered():
                writer.writerow({
                    "shard_index": r.shard_index,
                    "strategy": r.strategy,
                    "status": r.status,
                    "rows": r.rows,
                    "duration_sec": r.duration_sec,
                    "csv_path": r.csv_path,
                    "xlsx_path": r.xlsx_path,
                    "error_message": r.error_message[:100] if r.error_message else None,
                })

    def _save_text_report(self, path: str) -> None:
        total = len(self.results)
        if total == 0:
            with open(path, "w") as f:
                f.write("No shards were written.\n")
            return

        by_status: Dict[str, int] = {}
        for r in self.results:
            by_status[r.status] = by_status.get(r.status, 0) + 1

        durations = [r.duration_sec for r in self.results if r.duration_sec]
        avg_dur = sum(durations) / len(durations) if durations else 0
        max_dur = max(durations) if durations else 0

        with open(path, "w") as f:
            f.write("=" * 60 + "\n")
            f.write("CSV SPLIT REPORT\n")
            f.write(f"Generated: {datetime.now():%Y-%m-%d %H:%M:%S}\n")
            if self.run_id:
                f.write(f"Run ID: {self.run_id}\n")
            f.write("=" * 60 + "\n\n")

            f.write("OVERALL SUMMARY\n")
            f.write("-" * 40 + "\n")
            f.write(f"Shards:         {total}\n")
            f.write(f"Data rows:      {self.total_rows:,}\n")
            for status, cnt in sorted(by_status.items()):
                f.write(f"{status + ':':<16}{cnt} ({cnt / total * 100:.1f}%)\n")
            f.write(f"\nAvg Duration:   {avg_dur:.2f} sec\n")
            f.write(f"Max Duration:   {max_dur:.2f} sec\n")

            failed = self.failures
            if failed:
                f.write("\nFAILED SHARDS\n")
                f.write("-" * 40 + "\n")
                for r in failed[:20]:
                    f.write(f"\nShard {r.shard_index} ({r.strategy}): {r.status}\n")
                    f.write(f"  File: {r.csv_path}\n")
                    f.write(f"  Error: {r.error_message[:200] if r.error_message else 'Unknown'}\n")
                if len(failed) > 20:
                    f.write(f"\n... and {len(failed) - 20} more failed shards\n")
