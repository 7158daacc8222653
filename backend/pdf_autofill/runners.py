"""
Background task submission.

`submit` never waits for the task. Tasks are expected to record their own
failures (the orchestrator writes them into the job); anything that still
escapes is logged here so it never disappears silently.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable

logger = logging.getLogger(__name__)


class TaskRunner(ABC):
    @abstractmethod
    def submit(self, fn: Callable[..., Any], *args: Any) -> None:
        ...

    def shutdown(self, wait: bool = True) -> None:
        pass


class ThreadTaskRunner(TaskRunner):
    def __init__(self, max_workers: int = 2):
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="bulk-fill")

    def submit(self, fn: Callable[..., Any], *args: Any) -> None:
        future = self._executor.submit(fn, *args)
        future.add_done_callback(_log_failure)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


class InlineTaskRunner(TaskRunner):
    """Runs the task before returning; for the CLI and tests."""

    def submit(self, fn: Callable[..., Any], *args: Any) -> None:
        try:
            fn(*args)
        except Exception:
            logger.exception("Background task %s failed", getattr(fn, "__name__", fn))


def _log_failure(future: Future) -> None:
    exc = future.exception()
    if exc is not None:
        logger.error("Background task failed: %s", exc, exc_info=exc)


def run_later(delay: float, fn: Callable[..., Any], *args: Any) -> threading.Timer:
    """Call `fn` once after `delay` seconds on a daemon timer thread."""
    timer = threading.Timer(delay, fn, args=args)
    timer.daemon = True
    timer.start()
    return timer
