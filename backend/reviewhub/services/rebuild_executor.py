"""
Bounded background executor for cache rebuild jobs.

A fixed number of worker tasks drain a bounded queue. Submission never
blocks: when the queue is full the job is rejected and the caller keeps
serving what it already has.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

RebuildJob = Callable[[], Awaitable[Any]]


@dataclass
class RebuildStats:
    """Counters for submitted and finished rebuild jobs."""
    submitted: int = 0
    rejected: int = 0
    completed: int = 0
    failed: int = 0
    discarded: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "submitted": self.submitted,
            "rejected": self.rejected,
            "completed": self.completed,
            "failed": self.failed,
            "discarded": self.discarded,
        }


class RebuildExecutor:
    """
    Fixed pool of asyncio workers over a bounded queue.

    Usage:
        executor = RebuildExecutor(pool_size=10, queue_size=100)
        await executor.start()
        executor.submit(job, name="cache:shop:1", on_discard=release)
        await executor.stop()
    """

    def __init__(self, pool_size: int = 10, queue_size: int = 100):
        if pool_size < 1:
            raise ValueError("pool_size must be at least 1")
        if queue_size < 1:
            raise ValueError("queue_size must be at least 1")

        self.pool_size = pool_size
        self.queue_size = queue_size
        self.stats = RebuildStats()

        self._queue: Optional[asyncio.Queue] = None
        self._workers: List[asyncio.Task] = []

    @property
    def is_running(self) -> bool:
        return bool(self._workers)

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue else 0

    async def start(self) -> None:
        """Spawn the worker tasks. Calling twice is a no-op."""
        if self._workers:
            return

        self._queue = asyncio.Queue(maxsize=self.queue_size)
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"rebuild-worker-{i}")
            for i in range(self.pool_size)
        ]
        logger.info(f"RebuildExecutor started ({self.pool_size} workers, queue {self.queue_size})")

    def submit(self, job: RebuildJob, name: str = "rebuild", on_discard: Optional[RebuildJob] = None) -> bool:
        """
        Queue a job without waiting.

        Args:
            job: Coroutine function to run on a worker
            name: Label for logs
            on_discard: Awaited instead of ``job`` if the job is dropped
                from the queue by ``stop(drain=False)``

        Returns:
            True if queued, False if the executor is stopped or full
        """
        if not self._workers or self._queue is None:
            logger.warning(f"Rebuild rejected, executor not running: {name}")
            self.stats.rejected += 1
            return False

        try:
            self._queue.put_nowait((name, job, on_discard))
        except asyncio.QueueFull:
            logger.warning(f"Rebuild rejected, queue full: {name}")
            self.stats.rejected += 1
            return False

        self.stats.submitted += 1
        return True

    async def _worker(self, index: int) -> None:
        while True:
            name, job, _ = await self._queue.get()
            try:
                await job()
                self.stats.completed += 1
                logger.debug(f"Rebuild finished on worker {index}: {name}")
            except Exception as e:
                self.stats.failed += 1
                logger.error(f"Rebuild failed on worker {index}: {name}: {e}", exc_info=True)
            finally:
                self._queue.task_done()

    async def join(self) -> None:
        """Wait until every queued job has finished."""
        if self._queue is not None:
            await self._queue.join()

    async def _discard_pending(self) -> None:
        while not self._queue.empty():
            name, _, on_discard = self._queue.get_nowait()
            self._queue.task_done()
            self.stats.discarded += 1
            logger.info(f"Rebuild discarded on shutdown: {name}")

            if on_discard is None:
                continue
            try:
                await on_discard()
            except Exception as e:
                logger.error(f"Discard callback failed for {name}: {e}", exc_info=True)

    async def stop(self, drain: bool = True) -> None:
        """
        Stop the workers.

        Args:
            drain: Finish queued jobs first; otherwise drop them and run
                each dropped job's ``on_discard`` callback
        """
        if not self._workers:
            return

        if drain:
            await self.join()

        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)

        if not drain:
            await self._discard_pending()

        self._workers = []
        self._queue = None
        logger.info("RebuildExecutor stopped")
