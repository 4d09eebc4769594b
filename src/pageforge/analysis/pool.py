"""Bounded pool of isolated analysis workers."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from concurrent.futures import Executor, Future, ProcessPoolExecutor, ThreadPoolExecutor
from typing import Any, Protocol, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AnalysisPool(Protocol):
    def submit(self, fn: Callable[..., T], /, *args: Any) -> Future[T]: ...

    def end(self) -> None: ...


class ExecutorAnalysisPool:
    """Analysis pool backed by a process pool, or threads when requested.

    Submissions beyond ``num_workers`` queue inside the executor until a
    worker is free.
    """

    def __init__(self, num_workers: int | None = None, *, worker_threads: bool = False) -> None:
        self._num_workers = max(1, num_workers or os.cpu_count() or 1)
        self._worker_threads = worker_threads
        self._executor: Executor
        if worker_threads:
            self._executor = ThreadPoolExecutor(
                max_workers=self._num_workers,
                thread_name_prefix="pageforge-analysis",
            )
        else:
            self._executor = ProcessPoolExecutor(max_workers=self._num_workers)
        self._ended = False
        logger.debug(
            "Started analysis pool with %d %s",
            self._num_workers,
            "threads" if worker_threads else "processes",
        )

    @property
    def num_workers(self) -> int:
        return self._num_workers

    def submit(self, fn: Callable[..., T], /, *args: Any) -> Future[T]:
        if self._ended:
            raise RuntimeError("analysis pool has ended")
        return self._executor.submit(fn, *args)

    def end(self) -> None:
        if self._ended:
            return
        self._ended = True
        self._executor.shutdown(wait=True, cancel_futures=True)

    def __enter__(self) -> ExecutorAnalysisPool:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.end()
