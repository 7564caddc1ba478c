"""Error kinds raised by the splitting pipeline.

Every error carries a short ``kind`` tag; :func:`csv_splitter.steps.split.run_split`
turns any of them into a failed :class:`~csv_splitter.models.SplitResult`.
"""

from __future__ import annotations

from typing import Optional


class SplitError(Exception):
    """Base class for all recoverable split failures."""

    kind = "error"


class ValidationError(SplitError):
    """Bad request or unusable input/output location."""

    kind = "validation"


class ParseError(SplitError):
    """A record or header could not be parsed."""

    kind = "parse"


class ShardIOError(SplitError):
    """Creating, writing, flushing or deleting a file failed."""

    kind = "io"


class ConversionError(SplitError):
    """Writing a shard as a spreadsheet failed."""

    kind = "conversion"


class ConcurrencyError(SplitError):
    """A parallel worker reported a failure.

    Attributes:
        chunk_id: Shard index of the failing chunk.
    """

    kind = "concurrency"

    def __init__(self, chunk_id: int, message: str, cause: Optional[BaseException] = None) -> None:
        self.chunk_id = chunk_id
        self.cause = cause
        super().__init__(f"Processing shard {chunk_id} failed: {message}")
