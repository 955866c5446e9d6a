"""Run work items under a concurrency cap with priority dispatch.

Tasks are sorted once by descending priority (stable, so ties keep submission
order) into a queue shared by ``max_concurrency`` worker loops. Each worker
dequeues and awaits one task at a time until the queue is empty.

With ``continue_on_error=True`` every task yields exactly one ``TaskResult``.
With ``continue_on_error=False`` the first failure is raised promptly; sibling
workers are not cancelled but finish the task they already hold and then stop
dequeuing, and their results are discarded. Nothing is retried here.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Any, Sequence

from blogbatch.parallel.models import TaskResult, WorkItem

logger = logging.getLogger(__name__)


class _RunState:
    def __init__(self, items: list[WorkItem]):
        self.queue: deque[WorkItem] = deque(items)
        self.results: list[TaskResult] = []
        self.aborted = False


class ParallelProcessor:
    def __init__(self, max_concurrency: int = 3, batch_delay: float = 0.5):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self.max_concurrency = max_concurrency
        self.batch_delay = batch_delay
        self._running = 0
        self._queued = 0
        # Strong refs to work left running after a strict-mode abort or a timeout
        self._background: set[asyncio.Future[Any]] = set()

    async def execute_parallel(
        self,
        tasks: Sequence[WorkItem],
        continue_on_error: bool = False,
    ) -> list[TaskResult]:
        """Execute tasks with bounded concurrency. Results are in completion order."""
        ordered = sorted(tasks, key=lambda t: t.priority or 0, reverse=True)
        state = _RunState(ordered)
        if not ordered:
            return []

        self._queued += len(ordered)
        workers = [
            asyncio.ensure_future(self._worker(state, continue_on_error))
            for _ in range(min(self.max_concurrency, len(ordered)))
        ]
        try:
            await asyncio.gather(*workers)
        except BaseException:
            state.aborted = True
            for w in workers:
                if not w.done():
                    self._keep_alive(w)
            raise
        finally:
            self._queued -= len(state.queue)
            state.queue.clear()
        return state.results

    async def _worker(self, state: _RunState, continue_on_error: bool) -> None:
        while state.queue and not state.aborted:
            task = state.queue.popleft()
            self._queued -= 1
            self._running += 1
            try:
                data = await task.fn()
            except Exception as e:
                state.results.append(TaskResult(id=task.id, success=False, error=e))
                if not continue_on_error:
                    if state.aborted:
                        return
                    state.aborted = True
                    raise
                logger.debug("Task %s failed: %s", task.id, e)
            else:
                state.results.append(TaskResult(id=task.id, success=True, data=data))
            finally:
                self._running -= 1

    async def execute_all(self, tasks: Sequence[WorkItem]) -> list[TaskResult]:
        """All tasks must succeed; the first failure is raised."""
        return await self.execute_parallel(tasks, continue_on_error=False)

    async def execute_all_settled(self, tasks: Sequence[WorkItem]) -> list[TaskResult]:
        """Never raises; one result per task, in submission order."""
        remaining = await self.execute_parallel(tasks, continue_on_error=True)
        ordered: list[TaskResult] = []
        for task in tasks:
            for idx, r in enumerate(remaining):
                if r.id == task.id:
                    ordered.append(remaining.pop(idx))
                    break
        ordered.extend(remaining)
        return ordered

    async def execute_in_batches(
        self,
        tasks: Sequence[WorkItem],
        batch_size: int = 5,
        continue_on_error: bool = True,
    ) -> list[TaskResult]:
        """Run consecutive slices of ``batch_size`` with a pause between slices."""
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        all_results: list[TaskResult] = []
        for start in range(0, len(tasks), batch_size):
            batch = tasks[start : start + batch_size]
            all_results.extend(await self.execute_parallel(batch, continue_on_error))
            if start + batch_size < len(tasks) and self.batch_delay > 0:
                await asyncio.sleep(self.batch_delay)
        return all_results

    async def execute_with_timeout(
        self,
        tasks: Sequence[WorkItem],
        timeout: float,
        continue_on_error: bool = True,
    ) -> list[TaskResult]:
        """Race the run against ``timeout`` seconds.

        On timeout the first attempt is left running (its external side effects
        may still happen) and, in continue mode, a full second continue-mode run
        is returned instead. Otherwise ``TimeoutError`` is raised.
        """
        first = asyncio.ensure_future(self.execute_parallel(tasks, continue_on_error))
        done, _ = await asyncio.wait({first}, timeout=timeout)
        if first in done:
            return first.result()

        self._keep_alive(first)
        logger.warning("Parallel run timed out after %.2fs", timeout)
        if continue_on_error:
            return await self.execute_parallel(tasks, continue_on_error=True)
        raise TimeoutError(f"Parallel run exceeded {timeout}s")

    def _keep_alive(self, fut: asyncio.Future[Any]) -> None:
        self._background.add(fut)
        fut.add_done_callback(self._forget)

    def _forget(self, fut: asyncio.Future[Any]) -> None:
        self._background.discard(fut)
        if not fut.cancelled() and fut.exception() is not None:
            logger.debug("Abandoned parallel work finished with error: %s", fut.exception())

    @staticmethod
    def get_successful(results: Sequence[TaskResult]) -> list[Any]:
        return [r.data for r in results if r.success and r.data is not None]

    @staticmethod
    def get_failed(results: Sequence[TaskResult]) -> list[TaskResult]:
        return [r for r in results if not r.success]

    def get_stats(self) -> dict[str, int]:
        return {
            "queue_length": self._queued,
            "running": self._running,
            "max_concurrency": self.max_concurrency,
        }
