"""Shard result tracking and reporting."""

from csv_splitter.tracking.shard_result import ShardResult
from csv_splitter.tracking.shard_tracker import ShardTracker

__all__ = [
    "ShardResult",
    "ShardTracker",
]
