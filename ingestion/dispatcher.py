"""
Fixed-size task dispatcher with caller-runs backpressure
"""

import asyncio
from typing import Any, Awaitable, Callable, Iterable, Optional, Set
import logging

logger = logging.getLogger(__name__)


class CallerRunsDispatcher:
    """
    Run coroutines with at most ``pool_size`` in flight and no queue.

    ``submit`` takes a free permit and starts the task in the background.
    When every permit is taken the submitter runs the task itself, as soon
    as a permit frees up, instead of queueing or rejecting it. The submitter
    is held for the duration of that task, which throttles the dispatch loop
    to the pool's pace. No task is ever dropped.

    Tasks are expected to handle their own errors; anything that escapes is
    logged and swallowed so that one task cannot stop the dispatch loop.
    """

    def __init__(self, pool_size: int = 2):
        if pool_size < 1:
            raise ValueError("pool_size must be at least 1")
        self.pool_size = pool_size
        self._semaphore = asyncio.Semaphore(pool_size)
        self._tasks: Set[asyncio.Task] = set()
        self._running = 0

    @property
    def in_flight(self) -> int:
        """Tasks currently executing, background and caller-run alike"""
        return self._running

    async def submit(self, fn: Callable[..., Awaitable[Any]], *args: Any) -> Optional[asyncio.Task]:
        """
        Start ``fn(*args)`` and return its background task, or None when the
        pool was full and the task already ran in the caller.
        """
        if self._semaphore.locked():
            logger.debug("Pool is full, running task in the caller")
            async with self._semaphore:
                await self._run(fn, *args)
            return None

        await self._semaphore.acquire()
        task = asyncio.create_task(self._run_and_release(fn, *args))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def join(self, tasks: Optional[Iterable[asyncio.Task]] = None) -> None:
        """
        Wait for the given background tasks, or for every background task
        submitted so far when none are given.
        """
        if tasks is not None:
            await asyncio.gather(*tasks)
            return
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def _run_and_release(self, fn: Callable[..., Awaitable[Any]], *args: Any) -> None:
        try:
            await self._run(fn, *args)
        finally:
            self._semaphore.release()

    async def _run(self, fn: Callable[..., Awaitable[Any]], *args: Any) -> None:
        self._running += 1
        try:
            await fn(*args)
        except Exception:
            logger.exception(f"Dispatched task {getattr(fn, '__name__', fn)!r} failed")
        finally:
            self._running -= 1
