"""Bounded thread pool with a fan-in completion queue."""

from __future__ import annotations

import queue
import time
import traceback
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional, Sequence, Tuple

from loguru import logger

Task = Tuple[int, Callable[[], Any]]


@dataclass
class TaskOutcome:
    """What one task sent back over the completion queue."""

    task_id: int
    value: Any = None
    error: Optional[BaseException] = None
    error_traceback: Optional[str] = None
    duration_sec: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


def _invoke_task(task_id: int, fn: Callable[[], Any], results: "queue.Queue") -> None:
    """Run *fn* and put ``(task_id, outcome)`` on *results*, whatever happens.

    An exception outside ``Exception`` is recorded and then re-raised.
    """
    t0 = time.perf_counter()
    outcome = TaskOutcome(task_id=task_id)
    try:
        outcome.value = fn()
    except BaseException as exc:
        outcome.error = exc
        outcome.error_traceback = traceback.format_exc()
        if not isinstance(exc, Exception):
            raise
    finally:
        outcome.duration_sec = time.perf_counter() - t0
        results.put((task_id, outcome))


def iter_bounded(tasks: Sequence[Task], max_workers: int) -> Iterator[TaskOutcome]:
    """Run *tasks* with at most *max_workers* active and yield outcomes as they finish.

    Every dispatched task is drained before the pool is shut down, so no
    worker outlives the generator once it is exhausted.
    """
    if not tasks:
        return

    max_workers = max(1, min(max_workers, len(tasks)))
    results: "queue.Queue[Tuple[int, TaskOutcome]]" = queue.Queue()
    logger.debug(f"Dispatching {len(tasks)} tasks (max_workers={max_workers})")

    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="shard") as pool:
        for task_id, fn in tasks:
            pool.submit(_invoke_task, task_id, fn, results)

        for _ in range(len(tasks)):
            _, outcome = results.get()
            yield outcome