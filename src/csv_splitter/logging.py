"""Loguru setup shared by the CLI and library callers."""

from __future__ import annotations

import sys
import uuid
from typing import Optional

from loguru import logger

_TEXT_FORMAT = "<level>{level: <8}</level> | {extra[run_id]:>8} | {message}"


def setup_logging(
    level: str = "INFO",
    fmt: str = "text",
    log_file: Optional[str] = None,
) -> None:
    """Route loguru output to stderr (and optionally *log_file*).

    *fmt* is ``"text"`` for the human format or ``"json"`` for one
    serialized record per line.  Call once, after :func:`bind_run_context`,
    so the ``run_id`` extra is always present.
    """
    logger.remove()
    serialize = fmt == "json"
    if serialize:
        logger.add(sys.stderr, level=level.upper(), serialize=True)
    else:
        logger.add(sys.stderr, level=level.upper(), format=_TEXT_FORMAT)

    if log_file:
        logger.add(
            log_file,
            level="DEBUG",
            serialize=serialize,
            format=_TEXT_FORMAT,
            rotation="50 MB",
            enqueue=True,
        )


def new_run_id() -> str:
    """8-char hex identifier for one split run."""
    return uuid.uuid4().hex[:8]


def bind_run_context(run_id: str) -> None:
    """Tag every subsequent log record with *run_id*."""
    logger.configure(extra={"run_id": run_id})
