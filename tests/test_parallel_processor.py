"""Tests for the bounded-concurrency priority scheduler."""

import asyncio
import time

import pytest

from blogbatch.parallel import ParallelProcessor, TaskResult, WorkItem

pytestmark = pytest.mark.anyio


def _sleeper(item_id, delay, log=None, value=None):
    async def fn():
        if log is not None:
            log.append(item_id)
        await asyncio.sleep(delay)
        return value if value is not None else item_id

    return WorkItem(id=item_id, fn=fn)


def _failing(item_id, delay=0.0, message="failed"):
    async def fn():
        await asyncio.sleep(delay)
        raise RuntimeError(message)

    return WorkItem(id=item_id, fn=fn)


class TestExecuteParallel:

    async def test_bounded_concurrency(self):
        running = 0
        peak = 0

        def tracked(i):
            async def fn():
                nonlocal running, peak
                running += 1
                peak = max(peak, running)
                await asyncio.sleep(0.1)
                running -= 1
                return i

            return WorkItem(id=str(i), fn=fn)

        processor = ParallelProcessor(max_concurrency=2)
        t0 = time.monotonic()
        results = await processor.execute_parallel([tracked(i) for i in range(6)], continue_on_error=True)
        elapsed = time.monotonic() - t0

        assert peak == 2
        assert len(results) == 6
        assert 0.28 <= elapsed < 0.6

    async def test_priority_dispatch_is_stable(self):
        log: list[str] = []
        a = _sleeper("a", 0, log)
        a.priority = 1
        b = _sleeper("b", 0, log)
        b.priority = 5
        c = _sleeper("c", 0, log)
        c.priority = 1

        processor = ParallelProcessor(max_concurrency=1)
        await processor.execute_parallel([a, b, c])
        assert log == ["b", "a", "c"]

    async def test_continue_mode_reports_every_task(self):
        processor = ParallelProcessor(max_concurrency=3)
        tasks = [_sleeper("ok1", 0.01), _failing("bad", message="nope"), _sleeper("ok2", 0.02)]
        results = await processor.execute_parallel(tasks, continue_on_error=True)

        assert sorted(r.id for r in results) == ["bad", "ok1", "ok2"]
        failed = ParallelProcessor.get_failed(results)
        assert [r.id for r in failed] == ["bad"]
        assert failed[0].error_message == "nope"
        assert sorted(ParallelProcessor.get_successful(results)) == ["ok1", "ok2"]

    async def test_strict_mode_raises_first_failure(self):
        log: list[str] = []
        processor = ParallelProcessor(max_concurrency=1)
        tasks = [_failing("bad", message="first"), _sleeper("never", 0, log)]
        with pytest.raises(RuntimeError, match="first"):
            await processor.execute_all(tasks)
        # remaining queue is dropped once the run aborts
        await asyncio.sleep(0.01)
        assert log == []

    async def test_strict_mode_lets_in_flight_sibling_finish(self):
        started: list[str] = []
        finished: list[str] = []

        def logged(item_id, delay):
            async def fn():
                started.append(item_id)
                await asyncio.sleep(delay)
                finished.append(item_id)
                return item_id

            return WorkItem(id=item_id, fn=fn)

        processor = ParallelProcessor(max_concurrency=2)
        tasks = [_failing("bad", delay=0.01, message="boom"), logged("slow", 0.05), logged("q1", 0), logged("q2", 0)]

        with pytest.raises(RuntimeError, match="boom"):
            await processor.execute_all(tasks)
        # raised before the sibling finished, and the sibling was not cancelled
        assert finished == []

        await asyncio.sleep(0.1)
        assert finished == ["slow"]
        assert started == ["slow"]

    async def test_empty_input(self):
        assert await ParallelProcessor().execute_parallel([]) == []

    def test_rejects_zero_concurrency(self):
        with pytest.raises(ValueError):
            ParallelProcessor(max_concurrency=0)


class TestVariants:

    async def test_all_settled_preserves_submission_order(self):
        processor = ParallelProcessor(max_concurrency=3)
        tasks = [_sleeper("slow", 0.05), _failing("bad"), _sleeper("fast", 0.0)]
        results = await processor.execute_all_settled(tasks)
        assert [r.id for r in results] == ["slow", "bad", "fast"]
        assert [r.success for r in results] == [True, False, True]

    async def test_in_batches_runs_consecutive_slices(self):
        log: list[str] = []
        processor = ParallelProcessor(max_concurrency=5, batch_delay=0)
        tasks = [_sleeper(str(i), 0, log) for i in range(5)]
        results = await processor.execute_in_batches(tasks, batch_size=2)
        assert len(results) == 5
        assert sorted(log[:2]) == ["0", "1"]
        assert sorted(log[2:4]) == ["2", "3"]

    async def test_with_timeout_returns_when_fast(self):
        processor = ParallelProcessor(max_concurrency=2)
        results = await processor.execute_with_timeout([_sleeper("x", 0.01)], timeout=1)
        assert [r.data for r in results] == ["x"]

    async def test_with_timeout_strict_raises(self):
        processor = ParallelProcessor(max_concurrency=1)
        with pytest.raises(TimeoutError):
            await processor.execute_with_timeout([_sleeper("slow", 0.3)], timeout=0.05, continue_on_error=False)

    async def test_with_timeout_continue_reruns(self):
        processor = ParallelProcessor(max_concurrency=1)
        results = await processor.execute_with_timeout([_sleeper("slow", 0.1)], timeout=0.02)
        assert [r.id for r in results] == ["slow"]
        assert results[0].success


def test_stats_shape():
    stats = ParallelProcessor(max_concurrency=4).get_stats()
    assert stats == {"queue_length": 0, "running": 0, "max_concurrency": 4}


def test_task_result_error_message():
    assert TaskResult(id="x", success=True).error_message is None
    assert TaskResult(id="x", success=False, error=ValueError("bad")).error_message == "bad"
