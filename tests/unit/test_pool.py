import asyncio
import threading
import time

import pytest

from pageforge.analysis.pool import ExecutorAnalysisPool


def _square(value: int) -> int:
    return value * value


def test_thread_pool_runs_submissions() -> None:
    with ExecutorAnalysisPool(2, worker_threads=True) as pool:
        futures = [pool.submit(_square, n) for n in range(5)]
        assert [future.result() for future in futures] == [0, 1, 4, 9, 16]


def test_pool_bounds_concurrency() -> None:
    lock = threading.Lock()
    active = 0
    peak = 0

    def work() -> None:
        nonlocal active, peak
        with lock:
            active += 1
            peak = max(peak, active)
        time.sleep(0.02)
        with lock:
            active -= 1

    pool = ExecutorAnalysisPool(2, worker_threads=True)
    futures = [pool.submit(work) for _ in range(8)]
    for future in futures:
        future.result()
    pool.end()
    assert peak <= 2


def test_submit_after_end_is_rejected() -> None:
    pool = ExecutorAnalysisPool(1, worker_threads=True)
    pool.end()
    pool.end()
    with pytest.raises(RuntimeError, match="ended"):
        pool.submit(_square, 2)


def test_num_workers_defaults_to_at_least_one() -> None:
    pool = ExecutorAnalysisPool(0, worker_threads=True)
    try:
        assert pool.num_workers >= 1
    finally:
        pool.end()


def test_process_pool_runs_picklable_callables() -> None:
    with ExecutorAnalysisPool(1) as pool:
        assert pool.submit(pow, 7, 2).result(timeout=60) == 49


@pytest.mark.asyncio
async def test_futures_can_be_awaited() -> None:
    with ExecutorAnalysisPool(2, worker_threads=True) as pool:
        results = await asyncio.gather(
            *(asyncio.wrap_future(pool.submit(_square, n)) for n in (2, 3))
        )
    assert results == [4, 9]
