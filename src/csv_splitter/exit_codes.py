"""Process exit codes for the ``csv-split`` command."""

from __future__ import annotations

from enum import IntEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from csv_splitter.models import SplitResult


class ExitCode(IntEnum):
    SUCCESS = 0
    FAILURE = 1  # parse, io, conversion or worker failure
    BAD_INPUT = 3  # request rejected before any shard was written


def exit_code_from_result(result: SplitResult) -> ExitCode:
    """Map a :class:`SplitResult` to an exit code."""
    if result.success:
        return ExitCode.SUCCESS
    if result.error_kind == "validation":
        return ExitCode.BAD_INPUT
    return ExitCode.FAILURE
