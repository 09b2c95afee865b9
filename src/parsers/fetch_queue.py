"""Request pacing for quota-limited data sources.

Two disciplines:
- PacedFetchQueue: strict FIFO, one request in flight, fixed gap between
  requests. Default for the explorer API.
- BoundedFetchPool: N workers over a shared cursor, for independent
  per-address lookups where order doesn't matter but total concurrency
  must stay capped.

Both isolate failures per task and report explicit success/failure counts.
"""

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable, Hashable, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from loguru import logger

from src.parsers.exceptions import SourceUnavailable

T = TypeVar("T")
K = TypeVar("K", bound=Hashable)

DEFAULT_MIN_INTERVAL_SEC = 0.25
DEFAULT_TASK_TIMEOUT_SEC = 15.0
DEFAULT_POOL_CONCURRENCY = 3


@dataclass
class FetchStats:
    submitted: int = 0
    succeeded: int = 0
    failed: int = 0
    timed_out: int = 0  # also counted in failed
    cancelled: int = 0


class PacedFetchQueue:
    """FIFO queue with a single pump and a minimum gap between tasks.

    The gap is measured from the end of one task to the start of the next,
    so a slow or timed-out task never shortens it.
    """

    def __init__(
        self,
        min_interval_sec: float = DEFAULT_MIN_INTERVAL_SEC,
        task_timeout_sec: float | None = DEFAULT_TASK_TIMEOUT_SEC,
    ) -> None:
        self._min_interval = min_interval_sec
        self._timeout = task_timeout_sec
        self._pending: deque[tuple[Callable[[], Awaitable[Any]], asyncio.Future]] = deque()
        self._pump: asyncio.Task | None = None
        self._last_finished: float | None = None
        self._closed = False
        self.stats = FetchStats()

    def __len__(self) -> int:
        return len(self._pending)

    def enqueue(self, task: Callable[[], Awaitable[T]]) -> "asyncio.Future[T]":
        """Queue a task. Must be called from a running event loop."""
        if self._closed:
            raise RuntimeError("fetch queue is closed")
        loop = asyncio.get_running_loop()
        future: asyncio.Future[T] = loop.create_future()
        self._pending.append((task, future))
        self.stats.submitted += 1
        if self._pump is None or self._pump.done():
            self._pump = loop.create_task(self._run(), name="fetch_queue_pump")
        return future

    async def submit(self, task: Callable[[], Awaitable[T]]) -> T:
        """Enqueue and wait for the result."""
        return await self.enqueue(task)

    def cancel(self, future: asyncio.Future) -> bool:
        """Drop a task that hasn't been dispatched yet. Returns False if it already ran."""
        for entry in self._pending:
            if entry[1] is future:
                self._pending.remove(entry)
                future.cancel()
                self.stats.cancelled += 1
                return True
        return False

    async def drain(self) -> None:
        """Wait until every queued task has resolved."""
        while self._pump is not None and not self._pump.done():
            await asyncio.wait({self._pump})

    async def close(self) -> None:
        """Cancel the pump and every queued task."""
        self._closed = True
        while self._pending:
            _, future = self._pending.popleft()
            if not future.done():
                future.cancel()
                self.stats.cancelled += 1
        if self._pump is not None and not self._pump.done():
            self._pump.cancel()
            try:
                await self._pump
            except asyncio.CancelledError:
                pass
        self._pump = None

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        while self._pending:
            if self._last_finished is not None:
                wait = self._min_interval - (loop.time() - self._last_finished)
                if wait > 0:
                    await asyncio.sleep(wait)
            if not self._pending:
                break

            task, future = self._pending.popleft()
            if future.done():  # consumer cancelled it while queued
                self.stats.cancelled += 1
                continue

            try:
                result = await asyncio.wait_for(task(), timeout=self._timeout)
            except asyncio.TimeoutError:
                self.stats.failed += 1
                self.stats.timed_out += 1
                logger.debug(f"[FETCH] Task timed out after {self._timeout}s")
                if not future.done():
                    future.set_exception(
                        SourceUnavailable(f"request timed out after {self._timeout}s")
                    )
            except asyncio.CancelledError:
                if not future.done():
                    future.cancel()
                raise
            except Exception as e:
                self.stats.failed += 1
                logger.debug(f"[FETCH] Task failed: {type(e).__name__}: {e}")
                if not future.done():
                    future.set_exception(e)
            else:
                self.stats.succeeded += 1
                if not future.done():
                    future.set_result(result)
            finally:
                self._last_finished = loop.time()


@dataclass
class PoolResult(Generic[K, T]):
    results: dict[K, T] = field(default_factory=dict)
    errors: dict[K, str] = field(default_factory=dict)

    @property
    def succeeded(self) -> int:
        return len(self.results)

    @property
    def failed(self) -> int:
        return len(self.errors)

    @property
    def failure_ratio(self) -> float:
        total = self.succeeded + self.failed
        return self.failed / total if total else 0.0

    def exceeds(self, threshold: float) -> bool:
        return self.failed > 0 and self.failure_ratio > threshold


class BoundedFetchPool:
    """Fixed number of workers pulling from one shared cursor."""

    def __init__(
        self,
        concurrency: int = DEFAULT_POOL_CONCURRENCY,
        task_timeout_sec: float | None = DEFAULT_TASK_TIMEOUT_SEC,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self._concurrency = concurrency
        self._timeout = task_timeout_sec

    async def run(
        self,
        items: Sequence[K],
        fn: Callable[[K], Awaitable[T]],
    ) -> PoolResult[K, T]:
        """Run ``fn`` over every item. Failures are recorded, never raised.

        Cancelling the caller cancels all workers.
        """
        result: PoolResult[K, T] = PoolResult()
        cursor = 0

        async def worker() -> None:
            nonlocal cursor
            while cursor < len(items):
                # no await between read and bump: the event loop keeps this atomic
                item = items[cursor]
                cursor += 1
                try:
                    result.results[item] = await asyncio.wait_for(fn(item), timeout=self._timeout)
                except asyncio.TimeoutError:
                    result.errors[item] = f"timed out after {self._timeout}s"
                except Exception as e:
                    result.errors[item] = f"{type(e).__name__}: {e}"
                    logger.debug(f"[FETCH] Pool task failed for {item}: {e}")

        workers = min(self._concurrency, len(items))
        if workers:
            await asyncio.gather(*(worker() for _ in range(workers)))

        if result.failed:
            logger.info(
                f"[FETCH] Pool finished: {result.succeeded} ok, {result.failed} failed"
            )
        return result
